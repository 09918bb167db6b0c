"""Flat snapshot of the board kept as a single row per store name.

The row holds every order, the card order inside each stage column and the
pricing configuration. Older rows may carry six-stage or Spanish stage labels;
they are normalised while loading.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from pydantic import BaseModel, Field

from printflow.core.errors import SnapshotCorrupted
from printflow.domain.models import Order, PricingConfig
from printflow.domain.orders.store import OrderStore
from printflow.domain.pipeline import PIPELINE_VERSION, Stage, normalize_stage
from printflow.domain.seed import seed_orders
from printflow.persistence import db
from printflow.persistence.models import StoreSnapshotModel

logger = logging.getLogger(__name__)


class SnapshotPayload(BaseModel):
    pipeline_version: str = PIPELINE_VERSION
    orders: list[Order] = Field(default_factory=list)
    columns: dict[str, list[str]] = Field(default_factory=dict)
    pricing_config: PricingConfig = Field(default_factory=PricingConfig)


@dataclass
class SnapshotState:
    orders: list[Order]
    columns: dict[Stage, list[str]] = field(default_factory=dict)
    pricing_config: PricingConfig = field(default_factory=PricingConfig)
    seeded: bool = False


def seed_state() -> SnapshotState:
    return SnapshotState(orders=seed_orders(), pricing_config=PricingConfig(), seeded=True)


def _normalize_columns(columns: dict[str, list[str]]) -> dict[Stage, list[str]]:
    merged: dict[Stage, list[str]] = {}
    for label, ids in columns.items():
        merged.setdefault(normalize_stage(label), []).extend(ids)
    return merged


def decode_payload(raw: str) -> SnapshotState:
    try:
        payload = SnapshotPayload.model_validate(json.loads(raw))
    except ValueError as exc:
        raise SnapshotCorrupted(f"snapshot payload is unreadable: {exc}") from exc
    ids = [o.id for o in payload.orders]
    if len(ids) != len(set(ids)):
        raise SnapshotCorrupted("snapshot payload repeats order ids")
    if payload.pipeline_version != PIPELINE_VERSION:
        logger.info("migrating snapshot from pipeline version=%s", payload.pipeline_version)
    return SnapshotState(
        orders=payload.orders,
        columns=_normalize_columns(payload.columns),
        pricing_config=payload.pricing_config,
    )


def encode_payload(store: OrderStore, pricing_config: PricingConfig) -> str:
    state = store.export_state()
    return json.dumps(
        {
            "pipeline_version": PIPELINE_VERSION,
            "orders": state["orders"],
            "columns": state["columns"],
            "pricing_config": pricing_config.model_dump(mode="json"),
        },
        ensure_ascii=False,
        sort_keys=True,
    )


class SnapshotRepository:
    def __init__(self, store_name: str):
        self.store_name = store_name

    def load(self) -> SnapshotState:
        with db.session_scope() as session:
            row = session.get(StoreSnapshotModel, self.store_name)
            raw = row.payload if row is not None else None

        if raw is None:
            logger.info("no snapshot for store=%s, starting from seed data", self.store_name)
            return seed_state()

        try:
            return decode_payload(raw)
        except SnapshotCorrupted:
            logger.exception("snapshot for store=%s is corrupted, reseeding", self.store_name)

        state = seed_state()
        self._write(self._seed_payload(state))
        return state

    def _seed_payload(self, state: SnapshotState) -> str:
        return encode_payload(OrderStore(state.orders), state.pricing_config)

    def save(self, store: OrderStore, pricing_config: PricingConfig) -> None:
        self._write(encode_payload(store, pricing_config))

    def _write(self, payload: str) -> None:
        with db.session_scope() as session:
            row = session.get(StoreSnapshotModel, self.store_name)
            if row is None:
                row = StoreSnapshotModel(store_name=self.store_name, pipeline_version=PIPELINE_VERSION, payload=payload)
                session.add(row)
            else:
                row.pipeline_version = PIPELINE_VERSION
                row.payload = payload
                row.updated_at = datetime.now(timezone.utc)
        logger.debug("snapshot saved store=%s bytes=%s", self.store_name, len(payload))
