from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from stockbook.schemas.common import PaginationMeta


class NewProductIn(BaseModel):
    name: str
    selling_price: Decimal = Field(gt=0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name is required")
        return cleaned


class PurchaseCreate(BaseModel):
    supplier_id: str
    product_id: Optional[str] = None
    new_product: Optional[NewProductIn] = None
    quantity: int = Field(gt=0)
    total_cost: Decimal = Field(gt=0)
    purchase_date: date

    @model_validator(mode="after")
    def validate_product_reference(self) -> "PurchaseCreate":
        if (self.product_id is None) == (self.new_product is None):
            raise ValueError("Provide exactly one of product_id or new_product")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "supplier_id": "supplier-id-here",
                "new_product": {"name": "Widget", "selling_price": 15.0},
                "quantity": 5,
                "total_cost": 50.0,
                "purchase_date": "2026-03-01",
            }
        }
    )


class PurchaseCreateOut(BaseModel):
    id: str
    product_id: str
    cost_per_unit: float
    stock: int


class PurchaseOut(BaseModel):
    id: str
    supplier_id: str
    supplier_name: Optional[str] = None
    product_id: str
    product_name: Optional[str] = None
    quantity: int
    total_cost: float
    cost_per_unit: float
    purchase_date: date
    created_at: datetime


class PurchaseDeleteOut(BaseModel):
    id: str
    deleted: bool = True
    remaining_stock: int


class PurchaseListOut(BaseModel):
    pagination: PaginationMeta
    start_date: date | None = None
    end_date: date | None = None
    items: list[PurchaseOut]
