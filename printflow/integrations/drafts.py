"""Free-text order drafts.

A draft provider turns a customer e-mail into a structured candidate order.
The suggested price it returns is informational; whenever the material can be
resolved the pricing engine recomputes the amount from the same dimensions.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Callable, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from printflow.core.config import Settings, get_settings
from printflow.core.errors import ExternalDraftFailure, PermissionDenied, QuoteValidationError
from printflow.core.session import SessionContext
from printflow.domain.models import DeliveryTier, Material, Order, OrderItem
from printflow.domain.orders.store import OrderStore
from printflow.domain.pipeline import FileStatus, Stage
from printflow.domain.registry import ReferenceRegistry
from printflow.workflow.quoting import QuoteEstimate, QuoteItem, QuoteRequest, QuoteService, new_order_id

logger = logging.getLogger(__name__)

DRAFT_PROMPT = """
Act as an expert estimator for a large format printing company.
Analyze the following customer request text and extract the technical requirements.

Request: "{text}"

Return ONLY a raw JSON object (no markdown formatting, no code blocks) with the following structure:
{{
  "campaignName": "Short catchy name for the campaign",
  "description": "Brief summary of the request",
  "materialName": "Suggested material (e.g. Foam, Vinyl, Banner, PVC)",
  "width": Number (width in cm, default to 0 if unknown),
  "height": Number (height in cm, default to 0 if unknown),
  "quantity": Number (default to 1),
  "estimatedCost": Number (Estimate in CLP, e.g. 50000)
}}
"""

_FENCE = re.compile(r"```(?:json)?", re.IGNORECASE)


class OrderDraft(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    campaign_name: str = ""
    description: str = ""
    material_name: str = ""
    width: float = Field(default=0, ge=0)
    height: float = Field(default=0, ge=0)
    quantity: int = Field(default=1, ge=0)
    estimated_cost: int = Field(default=0, ge=0)

    @property
    def has_geometry(self) -> bool:
        return self.width > 0 and self.height > 0 and self.quantity > 0


def parse_draft_reply(reply: str) -> OrderDraft:
    cleaned = _FENCE.sub("", reply).strip()
    return OrderDraft.model_validate(json.loads(cleaned))


class DraftProvider(Protocol):
    backend_name: str

    def extract(self, text: str) -> OrderDraft:
        ...


class GeminiHTTPDraftProvider:
    backend_name = "gemini_http"

    def __init__(self, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.base_url = self.settings.gemini_base_url.rstrip("/")
        self.model = self.settings.gemini_model
        self.timeout = max(1, self.settings.gemini_timeout_seconds)

    def _request(self, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}/models/{self.model}:generateContent"
        headers = {"Content-Type": "application/json", "x-goog-api-key": self.settings.gemini_api_key or ""}
        with httpx.Client(timeout=self.timeout) as client:
            response = client.post(url, headers=headers, json=body)
        response.raise_for_status()
        return response.json()

    @staticmethod
    def _reply_text(payload: dict[str, Any]) -> str:
        candidates = payload.get("candidates") or []
        if not candidates:
            raise ValueError(f"model returned no candidates: {payload}")
        parts = candidates[0].get("content", {}).get("parts") or []
        return "".join(str(part.get("text", "")) for part in parts)

    def extract(self, text: str) -> OrderDraft:
        if not self.settings.gemini_api_key:
            raise ExternalDraftFailure("gemini api key is not configured", original_text=text)
        body = {"contents": [{"parts": [{"text": DRAFT_PROMPT.format(text=text)}]}]}
        try:
            payload = self._request(body)
            return parse_draft_reply(self._reply_text(payload))
        except (httpx.HTTPError, ValueError, AttributeError) as exc:
            logger.warning("gemini draft failed: %s", exc)
            raise ExternalDraftFailure(f"draft service failed: {exc}", original_text=text) from exc


_DIMENSIONS = re.compile(r"(\d+(?:[.,]\d+)?)\s*(?:cm)?\s*[x×]\s*(\d+(?:[.,]\d+)?)", re.IGNORECASE)
_QUANTITY = re.compile(
    r"(\d+)\s+(?:carteles|letreros|pendones|piezas|unidades|unds?|pcs|pieces|units|signs|posters|banners)",
    re.IGNORECASE,
)
_CAMPAIGN = re.compile(r"(?:campaña|campaign)\s+(?:de\s+|for\s+)?([\wáéíóúñ ]{3,40})", re.IGNORECASE)
_MATERIAL_KEYWORDS = (
    ("foam", "Foam"),
    ("fomex", "Foam"),
    ("sintra", "Sintra PVC"),
    ("alveolar", "PP Alveolar"),
    ("coroplast", "PP Alveolar"),
    ("adhesivo", "Adhesivo"),
    ("adhesive", "Adhesivo"),
    ("vinilo", "Vinilo"),
    ("vinyl", "Vinilo"),
    ("banner", "Tela PVC"),
    ("tela", "Tela PVC"),
    ("pvc", "Sintra PVC"),
)


def _number(value: str) -> float:
    return float(value.replace(",", "."))


class LocalDraftProvider:
    """Keyword and pattern extraction, no network."""

    backend_name = "local"

    def extract(self, text: str) -> OrderDraft:
        lowered = text.lower()

        width = height = 0.0
        dims = _DIMENSIONS.search(text)
        if dims:
            width, height = _number(dims.group(1)), _number(dims.group(2))

        quantity = 1
        qty = _QUANTITY.search(text)
        if qty:
            quantity = int(qty.group(1))

        material_name = next((name for keyword, name in _MATERIAL_KEYWORDS if keyword in lowered), "")

        campaign = _CAMPAIGN.search(text)
        if campaign:
            campaign_name = " ".join(campaign.group(1).split()[:3]).title()
        else:
            campaign_name = " ".join(text.split()[:5])

        return OrderDraft(
            campaign_name=campaign_name,
            description=" ".join(text.split())[:280],
            material_name=material_name,
            width=width,
            height=height,
            quantity=quantity,
        )


def build_draft_provider(settings: Settings | None = None) -> DraftProvider:
    cfg = settings or get_settings()
    if cfg.draft_backend == "gemini_http":
        return GeminiHTTPDraftProvider(cfg)
    return LocalDraftProvider()


@dataclass(frozen=True)
class DraftResult:
    text: str
    customer_id: str
    draft: OrderDraft
    material: Material | None
    estimate: QuoteEstimate | None

    @property
    def amount(self) -> int:
        if self.estimate is not None:
            return self.estimate.option(DeliveryTier.STANDARD).amount
        return self.draft.estimated_cost

    @property
    def price_source(self) -> str:
        return "pricing_engine" if self.estimate is not None else "draft_estimate"

    def to_dict(self) -> dict[str, Any]:
        return {
            "customer_id": self.customer_id,
            "draft": self.draft.model_dump(by_alias=True),
            "material_id": self.material.id if self.material else None,
            "amount": self.amount,
            "price_source": self.price_source,
            "estimate": self.estimate.to_dict() if self.estimate else None,
        }


class DraftService:
    def __init__(
        self,
        provider: DraftProvider,
        registry: ReferenceRegistry,
        quoting: QuoteService,
        store: OrderStore,
        standard_lead_days: int = 7,
        today: Callable[[], date] = date.today,
    ):
        self.provider = provider
        self.registry = registry
        self.quoting = quoting
        self.store = store
        self.standard_lead_days = standard_lead_days
        self.today = today

    def draft(self, text: str, customer_id: str, session: SessionContext | None = None) -> DraftResult:
        if session is not None and not session.acts_for(customer_id):
            raise PermissionDenied("clients may only draft orders for their own account")
        if not text.strip():
            raise QuoteValidationError("draft text is empty", fields=["text"])
        if self.registry.customer(customer_id) is None:
            raise QuoteValidationError(f"unknown customer: {customer_id}", fields=["customer_id"])

        try:
            draft = self.provider.extract(text)
        except ValidationError as exc:
            raise ExternalDraftFailure(f"draft reply has the wrong shape: {exc}", original_text=text) from exc

        material = self.registry.match_material(draft.material_name) if draft.material_name else None
        estimate = None
        if material is not None and draft.has_geometry:
            estimate = self.quoting.estimate(
                QuoteRequest(
                    customer_id=customer_id,
                    campaign_name=draft.campaign_name or "Draft",
                    description=draft.description,
                    items=[
                        QuoteItem(
                            material_id=material.id,
                            width=draft.width,
                            height=draft.height,
                            quantity=draft.quantity,
                        )
                    ],
                )
            )
        logger.info(
            "draft extracted backend=%s customer=%s material=%s priced=%s",
            self.provider.backend_name,
            customer_id,
            material.id if material else None,
            estimate is not None,
        )
        return DraftResult(text=text, customer_id=customer_id, draft=draft, material=material, estimate=estimate)

    def create_from_draft(self, text: str, customer_id: str, session: SessionContext) -> Order:
        result = self.draft(text, customer_id, session)
        draft = result.draft
        if not draft.has_geometry:
            raise QuoteValidationError(
                "draft is missing dimensions or quantity", fields=["width", "height", "quantity"]
            )

        material = result.material or self.registry.materials()[0]
        today = self.today()
        order = Order(
            id=new_order_id(),
            customer_id=customer_id,
            campaign_name=draft.campaign_name or "Draft",
            description=draft.description,
            status=Stage.PENDING_APPROVAL,
            items=[OrderItem(material_id=material.id, width=draft.width, height=draft.height, quantity=draft.quantity)],
            total_amount=result.amount,
            delivery_date=today + timedelta(days=self.standard_lead_days),
            created_at=today,
            file_status=FileStatus.YELLOW,
            delivery_tier=DeliveryTier.STANDARD,
        )
        created = self.store.create(order)
        logger.info("order created from draft id=%s price_source=%s", created.id, result.price_source)
        return created
