from __future__ import annotations

from typing import Any


class PrintflowError(Exception):
    """Base class for recoverable domain errors surfaced to the caller."""

    code = "printflow_error"

    def to_payload(self) -> dict[str, Any]:
        return {"detail": str(self), "error": self.code}


class OrderNotFound(PrintflowError, LookupError):
    code = "order_not_found"

    def __init__(self, order_id: str):
        super().__init__(f"order not found: {order_id}")
        self.order_id = order_id


class InfeasibleGeometry(PrintflowError, ValueError):
    code = "infeasible_geometry"

    def __init__(self, piece_width: float, piece_height: float, plate_width: float, plate_height: float):
        super().__init__(
            f"piece {piece_width:g}x{piece_height:g}cm does not fit plate "
            f"{plate_width:g}x{plate_height:g}cm in either orientation"
        )
        self.piece = (piece_width, piece_height)
        self.plate = (plate_width, plate_height)


class QuoteValidationError(PrintflowError, ValueError):
    code = "validation_error"

    def __init__(self, message: str, fields: list[str] | None = None):
        super().__init__(message)
        self.fields = fields or []

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["fields"] = self.fields
        return payload


class ExternalDraftFailure(PrintflowError, RuntimeError):
    code = "external_draft_failure"

    def __init__(self, message: str, original_text: str):
        super().__init__(message)
        self.original_text = original_text

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["original_text"] = self.original_text
        return payload


class CapacityOverrideRequired(PrintflowError):
    code = "capacity_override_required"

    def __init__(self, message: str, load_percent: int, supervisor_required: bool):
        super().__init__(message)
        self.load_percent = load_percent
        self.supervisor_required = supervisor_required

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["load_percent"] = self.load_percent
        payload["supervisor_required"] = self.supervisor_required
        return payload


class DragSessionConflict(PrintflowError):
    code = "drag_session_conflict"


class PermissionDenied(PrintflowError, PermissionError):
    code = "permission_denied"


class SnapshotCorrupted(PrintflowError):
    code = "snapshot_corrupted"
