from __future__ import annotations

from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from printflow.domain.pipeline import FileStatus, Stage, normalize_file_status, normalize_stage


class MaterialType(str, Enum):
    RIGID = "Rigid"
    FLEXIBLE = "Flexible"

    def __str__(self):
        return self.value


class CustomerType(str, Enum):
    COMPLEX = "Complex"
    RECURRENT = "Recurrent"
    SPORADIC = "Sporadic"

    def __str__(self):
        return self.value


class DeliveryTier(str, Enum):
    ECONOMIC = "Economic"
    STANDARD = "Standard"
    EXPRESS = "Express"

    def __str__(self):
        return self.value


class Material(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: MaterialType
    stock: int = Field(ge=0)
    unit: str
    price_per_unit: int = Field(ge=0, description="CLP per plate or linear metre")


class Customer(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: CustomerType
    contact: str = ""
    debt: int = Field(default=0, ge=0)


class OrderItem(BaseModel):
    material_id: str
    width: float = Field(gt=0, description="cm")
    height: float = Field(gt=0, description="cm")
    quantity: int = Field(gt=0)
    finishing: frozenset[str] = Field(default_factory=frozenset)


class Order(BaseModel):
    id: str
    customer_id: str
    campaign_name: str
    description: str = ""
    status: Stage = Stage.REQUEST
    items: list[OrderItem] = Field(default_factory=list)
    total_amount: int = Field(default=0, ge=0, description="CLP, no minor units")
    delivery_date: date | None = None
    created_at: date
    file_status: FileStatus = FileStatus.RED
    delivery_tier: DeliveryTier | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _canonical_stage(cls, value):
        if isinstance(value, str):
            return normalize_stage(value)
        return value

    @field_validator("file_status", mode="before")
    @classmethod
    def _canonical_file_status(cls, value):
        if isinstance(value, str):
            return normalize_file_status(value)
        return value

    @field_validator("delivery_date", mode="before")
    @classmethod
    def _blank_date(cls, value):
        if value == "":
            return None
        return value


def default_segment_margins() -> dict[CustomerType, float]:
    return {
        CustomerType.COMPLEX: 1.25,
        CustomerType.RECURRENT: 1.35,
        CustomerType.SPORADIC: 1.40,
    }


class PricingConfig(BaseModel):
    foam_price: int = Field(default=15000, ge=0)
    vinyl_price: int = Field(default=3800, ge=0)
    labor_cost_per_hour: float = Field(default=21000, ge=0)
    margin: float = Field(default=1.40, gt=0, description="fallback margin multiplier")
    segment_margins: dict[CustomerType, float] = Field(default_factory=default_segment_margins)

    def margin_for(self, customer_type: CustomerType) -> float:
        return self.segment_margins.get(customer_type, self.margin)
