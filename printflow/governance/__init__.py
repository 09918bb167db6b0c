from printflow.governance.transition_policy import (
    DEFAULT_TRANSITION_POLICY,
    Intent,
    InvalidTransition,
    TransitionDecision,
    TransitionGuard,
    TransitionPolicy,
    TransitionRule,
    get_transition_guard,
)

__all__ = [
    "DEFAULT_TRANSITION_POLICY",
    "Intent",
    "InvalidTransition",
    "TransitionDecision",
    "TransitionGuard",
    "TransitionPolicy",
    "TransitionRule",
    "get_transition_guard",
]
