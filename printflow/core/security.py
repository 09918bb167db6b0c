from __future__ import annotations

import hmac
import logging
from typing import Protocol

from fastapi import Header, HTTPException

from printflow.core.config import Settings, get_settings
from printflow.core.session import SessionContext
from printflow.domain.pipeline import Role

logger = logging.getLogger(__name__)


def _auth_error(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def _extract_api_key(authorization: str | None, x_api_key: str | None) -> str | None:
    if authorization:
        scheme, _, token = authorization.partition(" ")
        if scheme.lower() != "bearer" or not token.strip():
            raise _auth_error("invalid authorization header")
        return token.strip()
    if x_api_key and x_api_key.strip():
        return x_api_key.strip()
    return None


def session_from_api_key(api_key: str, settings: Settings | None = None) -> SessionContext | None:
    settings = settings or get_settings()
    key_map = {
        settings.admin_api_key: SessionContext(role=Role.ADMIN, user_id=settings.admin_user_id),
        settings.superadmin_api_key: SessionContext(role=Role.SUPERADMIN, user_id=settings.superadmin_user_id),
        settings.operations_api_key: SessionContext(role=Role.OPERATIONS, user_id=settings.operations_user_id),
    }
    for client_key, customer_id in settings.client_api_keys.items():
        key_map[client_key] = SessionContext(role=Role.CLIENT, user_id=customer_id, customer_id=customer_id)
    return key_map.get(api_key)


def get_session_context(
    authorization: str | None = Header(default=None),
    x_api_key: str | None = Header(default=None),
) -> SessionContext:
    settings = get_settings()
    if not settings.auth_enabled:
        return SessionContext(role=Role.ADMIN, user_id=settings.admin_user_id)

    api_key = _extract_api_key(authorization, x_api_key)
    if not api_key:
        raise _auth_error("missing api key")

    session = session_from_api_key(api_key, settings)
    if session is None:
        raise _auth_error("invalid api key")
    return session


class SupervisorAuthorizer(Protocol):
    def authorize(self, credential: str | None, session: SessionContext | None = None) -> bool:
        ...


class KeyringSupervisorAuthorizer:
    """Accepts a credential only when it equals one of the configured supervisor keys."""

    def __init__(self, keys: list[str] | None = None):
        self._keys = [k.encode("utf-8") for k in (keys if keys is not None else get_settings().supervisor_keys)]

    def authorize(self, credential: str | None, session: SessionContext | None = None) -> bool:
        if not credential:
            return False
        given = credential.encode("utf-8")
        # Constant-time over every configured key.
        matched = False
        for key in self._keys:
            matched = hmac.compare_digest(given, key) or matched
        if not matched:
            logger.warning(
                "supervisor override rejected for user=%s",
                session.user_id if session is not None else "-",
            )
        return matched
