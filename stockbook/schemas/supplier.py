from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from stockbook.schemas.common import PaginationMeta


def _strip_or_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    cleaned = value.strip()
    return cleaned or None


class SupplierCreate(BaseModel):
    name: str
    product_types: Optional[str] = None
    purchase_days: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name is required")
        return cleaned

    @field_validator("product_types", "purchase_days")
    @classmethod
    def normalize_optional_text(cls, value: Optional[str]) -> Optional[str]:
        return _strip_or_none(value)

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Fresh Farms Ltd",
                "product_types": "produce, dairy",
                "purchase_days": "Mon, Thu",
            }
        }
    )


class SupplierUpdate(BaseModel):
    name: Optional[str] = None
    product_types: Optional[str] = None
    purchase_days: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("name cannot be empty")
        return cleaned

    @field_validator("product_types", "purchase_days")
    @classmethod
    def normalize_optional_text(cls, value: Optional[str]) -> Optional[str]:
        return _strip_or_none(value)

    @model_validator(mode="after")
    def validate_has_update(self) -> "SupplierUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class SupplierCreateOut(BaseModel):
    id: str


class SupplierOut(BaseModel):
    id: str
    name: str
    product_types: Optional[str] = None
    purchase_days: Optional[str] = None
    created_at: datetime


class SupplierListOut(BaseModel):
    items: list[SupplierOut]
    pagination: PaginationMeta
