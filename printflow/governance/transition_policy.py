from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, Field

from printflow.core.errors import PrintflowError
from printflow.domain.pipeline import DRAG_ENABLED_ROLES, PIPELINE_VERSION, Role, Stage

logger = logging.getLogger(__name__)

Intent = Literal["drag", "action", "approve"]

OPERATIONS_STAGES = [Stage.PENDING_APPROVAL, Stage.IN_PRODUCTION, Stage.DISPATCH, Stage.DONE]


class InvalidTransition(PrintflowError, PermissionError):
    code = "invalid_transition"

    def __init__(self, decision: TransitionDecision):
        super().__init__(decision.reason)
        self.decision = decision

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["decision"] = self.decision.to_audit_dict()
        return payload


class TransitionRule(BaseModel):
    rule_id: str
    description: str
    roles: list[Role]
    intents: list[Intent]
    # None means any stage.
    from_stages: list[Stage] | None = None
    to_stages: list[Stage] | None = None
    require_ownership: bool = False


class TransitionPolicy(BaseModel):
    policy_id: str
    version: str
    pipeline_version: str = PIPELINE_VERSION
    rules: list[TransitionRule] = Field(default_factory=list)

    def policy_hash(self) -> str:
        body = json.dumps(self.model_dump(mode="json"), sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(body.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class TransitionDecision:
    allowed: bool
    role: Role
    intent: Intent
    current: Stage
    target: Stage
    matched_rule_id: str | None
    reason: str
    policy_version: str

    def to_audit_dict(self) -> dict[str, Any]:
        return {
            "allowed": self.allowed,
            "role": self.role.value,
            "intent": self.intent,
            "current": self.current.value,
            "target": self.target.value,
            "matched_rule_id": self.matched_rule_id,
            "reason": self.reason,
            "policy_version": self.policy_version,
        }


DEFAULT_TRANSITION_POLICY = TransitionPolicy(
    policy_id="pipeline_transitions",
    version="1.0.0",
    rules=[
        TransitionRule(
            rule_id="admin_any",
            description="Administrators may move any order to any stage, including manual corrections",
            roles=[Role.ADMIN, Role.SUPERADMIN],
            intents=["drag", "action", "approve"],
        ),
        TransitionRule(
            rule_id="operations_floor",
            description="Operations moves orders only between approval and completion stages",
            roles=[Role.OPERATIONS],
            intents=["drag", "action"],
            from_stages=list(OPERATIONS_STAGES),
            to_stages=list(OPERATIONS_STAGES),
        ),
        TransitionRule(
            rule_id="client_approve",
            description="Clients approve their own orders into production",
            roles=[Role.CLIENT],
            intents=["approve"],
            from_stages=[Stage.PENDING_APPROVAL],
            to_stages=[Stage.IN_PRODUCTION],
            require_ownership=True,
        ),
    ],
)


def _stage_allowed(stages: list[Stage] | None, stage: Stage) -> bool:
    return stages is None or stage in stages


class TransitionGuard:
    def __init__(self, policy: TransitionPolicy | None = None):
        self.policy = policy or DEFAULT_TRANSITION_POLICY
        self._policy_hash = self.policy.policy_hash()

    def policy_manifest(self) -> dict[str, Any]:
        data = self.policy.model_dump(mode="json")
        data["policy_hash"] = self._policy_hash
        return data

    def can_reorder(self, role: Role) -> bool:
        return Role(role) in DRAG_ENABLED_ROLES

    def evaluate(
        self,
        role: Role,
        current: Stage,
        target: Stage,
        order_owner_id: str | None = None,
        acting_customer_id: str | None = None,
        intent: Intent = "drag",
    ) -> TransitionDecision:
        role = Role(role)
        current = Stage(current)
        target = Stage(target)

        def decide(allowed: bool, rule_id: str | None, reason: str) -> TransitionDecision:
            decision = TransitionDecision(
                allowed=allowed,
                role=role,
                intent=intent,
                current=current,
                target=target,
                matched_rule_id=rule_id,
                reason=reason,
                policy_version=self.policy.version,
            )
            logger.debug("transition decision %s", decision.to_audit_dict())
            if not allowed:
                logger.info("transition denied: %s", reason)
            return decision

        if current == target:
            # Same-column drops are reorders and never change status.
            if intent == "drag" and self.can_reorder(role):
                return decide(True, None, "same-stage reorder")
            return decide(False, None, f"role={role} cannot reorder within {current}")

        for rule in self.policy.rules:
            if role not in rule.roles or intent not in rule.intents:
                continue
            if not _stage_allowed(rule.from_stages, current):
                return decide(False, rule.rule_id, f"{current} is outside the stages allowed for role={role}")
            if not _stage_allowed(rule.to_stages, target):
                return decide(False, rule.rule_id, f"{target} is outside the stages allowed for role={role}")
            if rule.require_ownership and (
                order_owner_id is None or acting_customer_id is None or order_owner_id != acting_customer_id
            ):
                return decide(False, rule.rule_id, "order is not owned by the acting customer")
            return decide(True, rule.rule_id, "allowed by matched rule")

        return decide(False, None, f"denied by default: no rule for role={role} intent={intent}")

    def can_transition(
        self,
        role: Role,
        current: Stage,
        target: Stage,
        order_owner_id: str | None = None,
        acting_customer_id: str | None = None,
        intent: Intent = "drag",
    ) -> bool:
        return self.evaluate(role, current, target, order_owner_id, acting_customer_id, intent).allowed

    def enforce(
        self,
        role: Role,
        current: Stage,
        target: Stage,
        order_owner_id: str | None = None,
        acting_customer_id: str | None = None,
        intent: Intent = "drag",
    ) -> TransitionDecision:
        decision = self.evaluate(role, current, target, order_owner_id, acting_customer_id, intent)
        if not decision.allowed:
            raise InvalidTransition(decision)
        return decision


def get_transition_guard() -> TransitionGuard:
    return TransitionGuard()
