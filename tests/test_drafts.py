from __future__ import annotations

import json
from datetime import date

import httpx
import pytest

from printflow.core.config import Settings
from printflow.core.errors import ExternalDraftFailure, PermissionDenied, QuoteValidationError
from printflow.domain.models import DeliveryTier
from printflow.domain.pipeline import FileStatus, Stage
from printflow.integrations.drafts import (
    DraftService,
    GeminiHTTPDraftProvider,
    LocalDraftProvider,
    OrderDraft,
    build_draft_provider,
    parse_draft_reply,
)

EMAIL = "Hola, necesito 50 carteles de 120x240 en Foam para la campaña de verano. Saludos."


class FixedDraftProvider:
    backend_name = "fixed"

    def __init__(self, draft: OrderDraft):
        self._draft = draft

    def extract(self, text: str) -> OrderDraft:
        return self._draft


def _service(workflow, provider) -> DraftService:
    _, _, quoting = workflow([])
    return DraftService(provider, quoting.registry, quoting, quoting.store, today=lambda: date(2024, 3, 1))


def test_local_provider_extracts_geometry_and_material():
    draft = LocalDraftProvider().extract(EMAIL)
    assert draft.width == 120
    assert draft.height == 240
    assert draft.quantity == 50
    assert draft.material_name == "Foam"
    assert draft.campaign_name == "Verano"


def test_parse_draft_reply_strips_code_fences():
    reply = '```json\n{"campaignName": "Verano", "materialName": "Vinyl", "width": 50, "height": 70, "quantity": 3, "estimatedCost": 45000}\n```'
    draft = parse_draft_reply(reply)
    assert draft.campaign_name == "Verano"
    assert draft.estimated_cost == 45000


def test_gemini_provider_parses_candidate_text(monkeypatch):
    provider = GeminiHTTPDraftProvider(Settings(gemini_api_key="test-key"))
    body = {"campaignName": "Verano", "description": "50 carteles", "materialName": "Foam",
            "width": 120, "height": 240, "quantity": 50, "estimatedCost": 900000}
    calls = []

    def fake_request(payload):
        calls.append(payload)
        return {"candidates": [{"content": {"parts": [{"text": "```json\n" + json.dumps(body) + "\n```"}]}}]}

    monkeypatch.setattr(provider, "_request", fake_request)
    draft = provider.extract(EMAIL)
    assert draft.material_name == "Foam"
    assert draft.quantity == 50
    assert EMAIL in calls[0]["contents"][0]["parts"][0]["text"]


def test_gemini_failure_keeps_original_text(monkeypatch):
    provider = GeminiHTTPDraftProvider(Settings(gemini_api_key="test-key"))

    def broken_request(payload):
        raise httpx.ConnectError("connection refused")

    monkeypatch.setattr(provider, "_request", broken_request)
    with pytest.raises(ExternalDraftFailure) as exc_info:
        provider.extract(EMAIL)
    assert exc_info.value.original_text == EMAIL


def test_gemini_rejects_non_json_reply(monkeypatch):
    provider = GeminiHTTPDraftProvider(Settings(gemini_api_key="test-key"))
    monkeypatch.setattr(
        provider, "_request", lambda payload: {"candidates": [{"content": {"parts": [{"text": "lo siento"}]}}]}
    )
    with pytest.raises(ExternalDraftFailure):
        provider.extract(EMAIL)


def test_gemini_without_key_fails_before_calling_out():
    with pytest.raises(ExternalDraftFailure):
        GeminiHTTPDraftProvider(Settings(gemini_api_key=None)).extract(EMAIL)


def test_build_draft_provider_follows_settings():
    assert build_draft_provider(Settings(draft_backend="local")).backend_name == "local"
    assert build_draft_provider(Settings(draft_backend="gemini_http")).backend_name == "gemini_http"


def test_draft_is_repriced_by_the_engine(workflow):
    service = _service(workflow, LocalDraftProvider())
    result = service.draft(EMAIL, "c1")
    assert result.material.id == "m1"
    assert result.price_source == "pricing_engine"
    assert result.amount == result.estimate.option(DeliveryTier.STANDARD).amount


def test_create_from_draft_enters_pending_approval(workflow, sessions):
    service = _service(workflow, LocalDraftProvider())
    order = service.create_from_draft(EMAIL, "c1", sessions["admin"])
    assert order.status == Stage.PENDING_APPROVAL
    assert order.file_status == FileStatus.YELLOW
    assert order.delivery_tier == DeliveryTier.STANDARD
    assert order.delivery_date == date(2024, 3, 8)
    assert order.total_amount == 1_254_219
    assert order.items[0].material_id == "m1"


def test_unresolved_material_falls_back_to_suggested_price(workflow, sessions):
    draft = OrderDraft(campaign_name="Acrílicos", material_name="Acrílico", width=40, height=40, quantity=3,
                       estimated_cost=88_000)
    service = _service(workflow, FixedDraftProvider(draft))
    order = service.create_from_draft("tres placas de acrílico", "c3", sessions["admin"])
    assert order.total_amount == 88_000


def test_draft_without_dimensions_is_not_created(workflow, sessions):
    service = _service(workflow, LocalDraftProvider())
    with pytest.raises(QuoteValidationError):
        service.create_from_draft("necesito algo bonito para la vitrina", "c1", sessions["admin"])
    assert service.store.all() == []


def test_draft_rejects_empty_text_and_foreign_clients(workflow, sessions):
    service = _service(workflow, LocalDraftProvider())
    with pytest.raises(QuoteValidationError):
        service.draft("   ", "c1")
    with pytest.raises(PermissionDenied):
        service.create_from_draft(EMAIL, "c1", sessions["c2"])
    with pytest.raises(PermissionDenied):
        service.draft(EMAIL, "c1", sessions["c2"])
    assert service.draft(EMAIL, "c1", sessions["c1"]).material.id == "m1"
