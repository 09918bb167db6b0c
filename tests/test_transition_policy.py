from __future__ import annotations

import itertools

import pytest

from printflow.domain.pipeline import PIPELINE, Role, Stage
from printflow.governance import DEFAULT_TRANSITION_POLICY, InvalidTransition, TransitionGuard

FLOOR_STAGES = {Stage.PENDING_APPROVAL, Stage.IN_PRODUCTION, Stage.DISPATCH, Stage.DONE}
INTENTS = ("drag", "action", "approve")


def expected_allowed(role: Role, current: Stage, target: Stage, intent: str) -> bool:
    if current == target:
        return intent == "drag" and role != Role.CLIENT
    if role in (Role.ADMIN, Role.SUPERADMIN):
        return True
    if role == Role.OPERATIONS:
        return intent in ("drag", "action") and current in FLOOR_STAGES and target in FLOOR_STAGES
    return intent == "approve" and current == Stage.PENDING_APPROVAL and target == Stage.IN_PRODUCTION


@pytest.mark.parametrize("role", list(Role))
@pytest.mark.parametrize("intent", INTENTS)
def test_can_transition_matches_permission_table(role, intent):
    guard = TransitionGuard()
    acting = "c1" if role == Role.CLIENT else None
    for current, target in itertools.product(PIPELINE, PIPELINE):
        allowed = guard.can_transition(
            role,
            current,
            target,
            order_owner_id="c1",
            acting_customer_id=acting,
            intent=intent,
        )
        assert allowed is expected_allowed(role, current, target, intent), (role, current, target, intent)


def test_operations_cannot_leave_request():
    guard = TransitionGuard()
    decision = guard.evaluate(Role.OPERATIONS, Stage.REQUEST, Stage.PENDING_APPROVAL)
    assert decision.allowed is False
    assert decision.matched_rule_id == "operations_floor"
    assert "Request" in decision.reason


def test_client_approval_requires_ownership():
    guard = TransitionGuard()
    assert guard.can_transition(
        Role.CLIENT, Stage.PENDING_APPROVAL, Stage.IN_PRODUCTION, "c1", "c1", intent="approve"
    )
    assert not guard.can_transition(
        Role.CLIENT, Stage.PENDING_APPROVAL, Stage.IN_PRODUCTION, "c1", "c2", intent="approve"
    )
    assert not guard.can_transition(
        Role.CLIENT, Stage.PENDING_APPROVAL, Stage.IN_PRODUCTION, "c1", None, intent="approve"
    )


def test_client_drag_is_denied_by_default():
    decision = TransitionGuard().evaluate(Role.CLIENT, Stage.PENDING_APPROVAL, Stage.IN_PRODUCTION, "c1", "c1")
    assert decision.allowed is False
    assert "denied by default" in decision.reason


def test_reorder_permission_follows_drag_roles():
    guard = TransitionGuard()
    assert guard.can_reorder(Role.ADMIN)
    assert guard.can_reorder(Role.SUPERADMIN)
    assert guard.can_reorder(Role.OPERATIONS)
    assert not guard.can_reorder(Role.CLIENT)


def test_enforce_raises_with_decision_payload():
    guard = TransitionGuard()
    with pytest.raises(InvalidTransition) as exc_info:
        guard.enforce(Role.OPERATIONS, Stage.DONE, Stage.REQUEST, intent="action")
    payload = exc_info.value.to_payload()
    assert payload["error"] == "invalid_transition"
    assert payload["decision"]["allowed"] is False
    assert payload["decision"]["target"] == "Request"
    assert isinstance(exc_info.value, PermissionError)


def test_policy_manifest_hash_is_stable():
    first = TransitionGuard().policy_manifest()
    second = TransitionGuard(DEFAULT_TRANSITION_POLICY.model_copy(deep=True)).policy_manifest()
    assert first["policy_hash"] == second["policy_hash"]
    assert [r["rule_id"] for r in first["rules"]] == ["admin_any", "operations_floor", "client_approve"]
