from __future__ import annotations

import pytest

from printflow.domain.models import Order
from printflow.domain.pipeline import (
    PIPELINE,
    FileStatus,
    Stage,
    is_first,
    is_last,
    next_stage,
    normalize_file_status,
    normalize_stage,
    previous_stage,
)


def test_pipeline_order_is_total():
    assert PIPELINE == (
        Stage.REQUEST,
        Stage.PENDING_APPROVAL,
        Stage.IN_PRODUCTION,
        Stage.DISPATCH,
        Stage.DONE,
    )
    assert previous_stage(Stage.REQUEST) is None
    assert next_stage(Stage.DONE) is None
    for earlier, later in zip(PIPELINE, PIPELINE[1:]):
        assert next_stage(earlier) == later
        assert previous_stage(later) == earlier
    assert is_first(Stage.REQUEST) and is_last(Stage.DONE)


@pytest.mark.parametrize(
    "label,stage",
    [
        ("Quoting", Stage.REQUEST),
        ("En Cotización", Stage.REQUEST),
        ("Por Aprobar", Stage.PENDING_APPROVAL),
        ("En Producción", Stage.IN_PRODUCTION),
        ("Despacho", Stage.DISPATCH),
        ("Collections", Stage.DONE),
        ("InProduction", Stage.IN_PRODUCTION),
    ],
)
def test_legacy_labels_are_normalised(label, stage):
    assert normalize_stage(label) == stage


def test_unknown_label_lands_in_first_stage(caplog):
    assert normalize_stage("Archivado") == Stage.REQUEST
    assert "unknown stage label" in caplog.text


def test_file_status_accepts_spanish_labels():
    assert normalize_file_status("Amarillo") == FileStatus.YELLOW
    with pytest.raises(ValueError):
        normalize_file_status("Azul")


def test_order_model_normalises_persisted_labels():
    order = Order.model_validate(
        {
            "id": "legacy",
            "customer_id": "c1",
            "campaign_name": "Old board",
            "status": "Por Aprobar",
            "file_status": "Verde",
            "delivery_date": "",
            "created_at": "2024-01-01",
            "total_amount": 1000,
        }
    )
    assert order.status == Stage.PENDING_APPROVAL
    assert order.file_status == FileStatus.GREEN
    assert order.delivery_date is None
