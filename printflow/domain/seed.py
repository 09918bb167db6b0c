from __future__ import annotations

from datetime import date

from printflow.domain.models import Customer, CustomerType, Material, MaterialType, Order, OrderItem
from printflow.domain.pipeline import FileStatus, Stage

SEED_CUSTOMERS: tuple[Customer, ...] = (
    Customer(id="c1", name="Fashion Park", type=CustomerType.COMPLEX, contact="Paulina", debt=4_500_000),
    Customer(id="c2", name="La Guinda", type=CustomerType.RECURRENT, contact="Maria Paz", debt=0),
    Customer(id="c3", name="Puzle Partner", type=CustomerType.SPORADIC, contact="Juan", debt=120_000),
)

SEED_MATERIALS: tuple[Material, ...] = (
    Material(id="m1", name="Foam 5MM (Fomex)", type=MaterialType.RIGID, stock=120, unit="planchas", price_per_unit=15000),
    Material(id="m2", name="Sintra 3MM (PVC)", type=MaterialType.RIGID, stock=85, unit="planchas", price_per_unit=12000),
    Material(id="m3", name="Sintra 5MM (PVC)", type=MaterialType.RIGID, stock=40, unit="planchas", price_per_unit=18000),
    Material(id="m4", name="PP Alveolar 6MM", type=MaterialType.RIGID, stock=200, unit="planchas", price_per_unit=8000),
    Material(id="m5", name="Adhesivo Laminado", type=MaterialType.FLEXIBLE, stock=500, unit="m", price_per_unit=4500),
    Material(id="m6", name="Vinilo Blanco Plotter", type=MaterialType.FLEXIBLE, stock=300, unit="m", price_per_unit=3800),
    Material(id="m7", name="Tela PVC", type=MaterialType.FLEXIBLE, stock=150, unit="m", price_per_unit=6000),
)


def seed_orders() -> list[Order]:
    return [
        Order(
            id="o1",
            customer_id="c1",
            campaign_name="Campaña Escolar 2024",
            status=Stage.PENDING_APPROVAL,
            items=[OrderItem(material_id="m1", width=120, height=240, quantity=50, finishing=frozenset({"Corte Recto"}))],
            total_amount=2_500_000,
            delivery_date=date(2024, 3, 1),
            created_at=date(2024, 2, 10),
            file_status=FileStatus.YELLOW,
        ),
        Order(
            id="o2",
            customer_id="c2",
            campaign_name="Lanzamiento Verano",
            status=Stage.IN_PRODUCTION,
            items=[OrderItem(material_id="m5", width=50, height=50, quantity=200, finishing=frozenset({"Troquelado"}))],
            total_amount=850_000,
            delivery_date=date(2024, 2, 20),
            created_at=date(2024, 2, 5),
            file_status=FileStatus.GREEN,
        ),
        Order(
            id="o3",
            customer_id="c3",
            campaign_name="Cartelería Evento",
            status=Stage.DONE,
            items=[OrderItem(material_id="m2", width=60, height=90, quantity=10)],
            total_amount=120_000,
            delivery_date=date(2024, 1, 15),
            created_at=date(2024, 1, 10),
            file_status=FileStatus.GREEN,
        ),
        Order(
            id="o4",
            customer_id="c1",
            campaign_name="Remodelación Tienda Centro",
            status=Stage.REQUEST,
            items=[],
            total_amount=0,
            delivery_date=None,
            created_at=date(2024, 2, 12),
            file_status=FileStatus.RED,
        ),
    ]
