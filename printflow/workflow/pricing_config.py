from __future__ import annotations

import logging
import threading
from typing import Any, Callable

from pydantic import ValidationError

from printflow.core.errors import PermissionDenied, QuoteValidationError
from printflow.core.session import SessionContext
from printflow.domain.models import PricingConfig

logger = logging.getLogger(__name__)


ConfigListener = Callable[[PricingConfig], None]


class PricingConfigStore:
    def __init__(self, config: PricingConfig | None = None):
        self._lock = threading.RLock()
        self._config = config or PricingConfig()
        self._listeners: list[ConfigListener] = []

    def subscribe(self, listener: ConfigListener) -> None:
        self._listeners.append(listener)

    def get(self) -> PricingConfig:
        with self._lock:
            return self._config.model_copy(deep=True)

    def replace(self, config: PricingConfig) -> None:
        with self._lock:
            self._config = config.model_copy(deep=True)

    def update(self, changes: dict[str, Any], session: SessionContext) -> PricingConfig:
        if not session.is_admin:
            raise PermissionDenied(f"role={session.role} cannot change pricing configuration")
        unknown = sorted(set(changes) - set(PricingConfig.model_fields))
        if unknown:
            raise QuoteValidationError(f"unknown pricing fields: {unknown}", fields=unknown)
        with self._lock:
            try:
                merged = PricingConfig.model_validate({**self._config.model_dump(), **changes})
            except ValidationError as exc:
                fields = [".".join(str(p) for p in err["loc"]) for err in exc.errors()]
                raise QuoteValidationError("invalid pricing configuration", fields=fields) from exc
            self._config = merged
            logger.info("pricing config updated by user=%s fields=%s", session.user_id, sorted(changes))
        for listener in self._listeners:
            listener(merged.model_copy(deep=True))
        return merged.model_copy(deep=True)
