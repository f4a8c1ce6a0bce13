from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from stockbook.schemas.common import PaginationMeta


class SaleCreate(BaseModel):
    """A sale either references a stocked product or names an ad-hoc item."""

    product_id: Optional[str] = None
    product_name: Optional[str] = None
    quantity: int = Field(gt=0)
    amount: Decimal | None = Field(default=None, gt=0)
    unit_price: Decimal | None = Field(default=None, gt=0)
    sale_date: date

    @field_validator("product_id", "product_name")
    @classmethod
    def normalize_optional_text(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @model_validator(mode="after")
    def validate_ad_hoc_sale(self) -> "SaleCreate":
        if self.product_id is None:
            if self.product_name is None:
                raise ValueError("product_name is required when product_id is not provided")
            if self.amount is None and self.unit_price is None:
                raise ValueError("amount or unit_price is required for ad-hoc sales")
        return self

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "product_id": "product-id-here",
                "quantity": 4,
                "sale_date": "2026-03-01",
            }
        }
    )


class SaleCreateOut(BaseModel):
    id: str
    amount: float
    remaining_stock: Optional[int] = None


class SaleOut(BaseModel):
    id: str
    product_id: Optional[str] = None
    product_name: str
    quantity: int
    amount: float
    sale_date: date
    created_at: datetime


class SaleDeleteOut(BaseModel):
    id: str
    deleted: bool = True
    restored_stock: Optional[int] = None


class SaleListOut(BaseModel):
    pagination: PaginationMeta
    start_date: date | None = None
    end_date: date | None = None
    items: list[SaleOut]
