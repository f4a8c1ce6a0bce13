from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from stockbook.schemas.common import PaginationMeta


class ProductCreate(BaseModel):
    name: str
    selling_price: Decimal = Field(gt=0)
    purchase_price: Decimal = Field(default=Decimal("0"), ge=0)
    quantity: int = Field(default=0, ge=0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name is required")
        return cleaned

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Olive Oil 1L",
                "selling_price": 12.5,
                "purchase_price": 80.0,
                "quantity": 10,
            }
        }
    )


class ProductUpdate(BaseModel):
    name: Optional[str] = None
    selling_price: Decimal | None = Field(default=None, gt=0)
    purchase_price: Decimal | None = Field(default=None, ge=0)
    quantity: int | None = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name cannot be empty")
        return cleaned

    @model_validator(mode="after")
    def validate_has_update(self) -> "ProductUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class ProductCreateOut(BaseModel):
    id: str


class ProductOut(BaseModel):
    id: str
    name: str
    purchase_price: float
    selling_price: float
    cost_per_unit: Optional[float] = None
    unit_profit: Optional[float] = None
    quantity: int
    active: bool
    created_at: datetime


class ProductListOut(BaseModel):
    items: list[ProductOut]
    pagination: PaginationMeta


class ProductDuplicateIn(BaseModel):
    """Overrides for the copy; anything omitted is taken from the source product."""

    name: Optional[str] = None
    selling_price: Decimal | None = Field(default=None, gt=0)
    purchase_price: Decimal | None = Field(default=None, ge=0)
    quantity: int | None = Field(default=None, ge=0)

    @field_validator("name")
    @classmethod
    def normalize_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None
