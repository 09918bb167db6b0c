from __future__ import annotations

import pytest

from printflow.core.errors import CapacityOverrideRequired, DragSessionConflict, PermissionDenied, QuoteValidationError
from printflow.domain.pipeline import FileStatus, Stage
from printflow.governance import InvalidTransition
from printflow.workflow.board import ClientApproval
from printflow.workflow.capacity_gate import CapacityOverride
from tests.factories import SUPERVISOR_KEY, make_order

SIGNED = ClientApproval(signer_id="12.345.678-9", signed=True)


def test_operations_cannot_drag_out_of_request(workflow, sessions):
    store, board, _ = workflow([make_order("o1", Stage.REQUEST)])
    with pytest.raises(InvalidTransition):
        board.move("o1", Stage.PENDING_APPROVAL, sessions["operations"])
    assert store.get("o1").status == Stage.REQUEST
    assert board.active_drag is None


def test_operations_moves_between_floor_stages(workflow, sessions):
    store, board, _ = workflow([make_order("o1", Stage.IN_PRODUCTION, 200_000)])
    moved = board.move("o1", Stage.DISPATCH, sessions["operations"])
    assert moved.status == Stage.DISPATCH
    assert store.column_ids(Stage.DISPATCH) == ["o1"]


def test_client_cannot_approve_foreign_order(workflow, sessions):
    store, board, _ = workflow([make_order("o1", Stage.PENDING_APPROVAL, customer_id="c1")])
    before = store.get("o1")
    with pytest.raises(InvalidTransition):
        board.approve("o1", SIGNED, sessions["c2"])
    assert store.get("o1") == before


def test_client_approves_own_order(workflow, sessions):
    store, board, _ = workflow([make_order("o1", Stage.PENDING_APPROVAL, customer_id="c1")])
    approved = board.approve("o1", SIGNED, sessions["c1"])
    assert approved.status == Stage.IN_PRODUCTION


@pytest.mark.parametrize(
    "approval,missing",
    [
        (ClientApproval(signer_id="", signed=True), ["signer_id"]),
        (ClientApproval(signer_id="12.345.678-9", signed=False), ["signed"]),
    ],
)
def test_approval_needs_signer_and_signature(workflow, sessions, approval, missing):
    store, board, _ = workflow([make_order("o1", Stage.PENDING_APPROVAL, customer_id="c1")])
    with pytest.raises(QuoteValidationError) as exc_info:
        board.approve("o1", approval, sessions["c1"])
    assert exc_info.value.fields == missing
    assert store.get("o1").status == Stage.PENDING_APPROVAL


def test_client_cannot_start_a_drag(workflow, sessions):
    _, board, _ = workflow([make_order("o1", Stage.PENDING_APPROVAL)])
    with pytest.raises(InvalidTransition):
        board.begin_drag("o1", sessions["c1"])
    assert board.active_drag is None


def test_only_one_drag_at_a_time(workflow, sessions):
    _, board, _ = workflow([make_order("a", Stage.DISPATCH), make_order("b", Stage.DISPATCH)])
    board.begin_drag("a", sessions["admin"])
    with pytest.raises(DragSessionConflict):
        board.begin_drag("b", sessions["operations"])
    board.cancel_drag()
    drag = board.begin_drag("b", sessions["operations"])
    assert drag.order_id == "b"
    assert drag.source_stage == Stage.DISPATCH
    assert drag.source_index == 1
    assert board.active_drag == drag


def test_preview_and_cancelled_drop_leave_store_untouched(workflow, sessions):
    store, board, _ = workflow([make_order("a", Stage.REQUEST), make_order("b", Stage.IN_PRODUCTION)])
    before = store.export_state()

    board.begin_drag("b", sessions["operations"])
    allowed = board.preview(Stage.DONE)
    denied = board.preview(Stage.REQUEST)
    assert allowed.allowed is True
    assert denied.allowed is False
    assert store.export_state() == before

    board.end_drag(None)
    assert store.export_state() == before
    assert board.active_drag is None


def test_denied_drop_closes_the_session(workflow, sessions):
    _, board, _ = workflow([make_order("b", Stage.IN_PRODUCTION)])
    board.begin_drag("b", sessions["operations"])
    with pytest.raises(InvalidTransition):
        board.end_drag(Stage.REQUEST)
    assert board.active_drag is None


def test_same_stage_drop_reorders_without_status_change(workflow, sessions):
    store, board, _ = workflow([make_order(i, Stage.DISPATCH) for i in ("a", "b", "c")])
    events = []
    store.subscribe(lambda action, order: events.append(action))

    board.move("a", Stage.DISPATCH, sessions["operations"], target_index=9)
    assert store.column_ids(Stage.DISPATCH) == ["b", "c", "a"]
    assert events == ["reorder"]


def test_reorder_requires_drag_role(workflow, sessions):
    _, board, _ = workflow([make_order(i, Stage.DISPATCH) for i in ("a", "b")])
    assert board.reorder(Stage.DISPATCH, 1, 0, sessions["admin"]) == ["b", "a"]
    with pytest.raises(InvalidTransition):
        board.reorder(Stage.DISPATCH, 1, 0, sessions["c1"])


def test_advance_uses_next_stage(workflow, sessions):
    store, board, _ = workflow([make_order("a", Stage.DISPATCH), make_order("z", Stage.DONE)])
    assert board.advance("a", sessions["operations"]).status == Stage.DONE
    with pytest.raises(QuoteValidationError):
        board.advance("z", sessions["admin"])


def test_production_entry_is_gated_when_saturated(workflow, sessions):
    store, board, _ = workflow(
        [
            make_order("busy", Stage.IN_PRODUCTION, 4_600_000),
            make_order("next", Stage.PENDING_APPROVAL, 300_000, customer_id="c1"),
        ]
    )
    with pytest.raises(CapacityOverrideRequired):
        board.move("next", Stage.IN_PRODUCTION, sessions["admin"])
    with pytest.raises(CapacityOverrideRequired):
        board.approve("next", SIGNED, sessions["c1"])
    assert store.get("next").status == Stage.PENDING_APPROVAL

    override = CapacityOverride(confirmed=True, supervisor_key=SUPERVISOR_KEY)
    moved = board.move("next", Stage.IN_PRODUCTION, sessions["admin"], override=override)
    assert moved.status == Stage.IN_PRODUCTION


def test_file_status_is_staff_only(workflow, sessions):
    store, board, _ = workflow([make_order("a", Stage.REQUEST)])
    assert board.set_file_status("a", FileStatus.GREEN, sessions["operations"]).file_status == FileStatus.GREEN
    with pytest.raises(PermissionDenied):
        board.set_file_status("a", FileStatus.RED, sessions["c1"])
