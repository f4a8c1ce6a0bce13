from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

from stockbook.schemas.common import PaginationMeta

LedgerReason = Literal[
    "opening_stock",
    "purchase",
    "sale",
    "sale_delete",
    "purchase_delete",
    "adjustment",
]


class InventoryLedgerEntryOut(BaseModel):
    id: str
    product_id: str
    qty_delta: int
    reason: LedgerReason
    reference_id: str | None = None
    note: str | None = None
    unit_cost: float | None = None
    created_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
        json_schema_extra={
            "example": {
                "id": "c0a8e4d2-0f1b-4c55-9d3e-2b7a6f1e8c90",
                "product_id": "product-id-here",
                "qty_delta": -2,
                "reason": "sale",
                "reference_id": "sale-id-here",
                "note": None,
                "unit_cost": 4.5,
                "created_at": "2026-10-18T09:30:00Z",
            }
        }
    )


class InventoryLedgerListOut(BaseModel):
    items: list[InventoryLedgerEntryOut]
    pagination: PaginationMeta


class StockLevelOut(BaseModel):
    """Stored quantity and the ledger sum it must equal."""

    product_id: str
    quantity: int
    ledger_total: int
    consistent: bool


class LowStockProductOut(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    threshold: int


class LowStockListOut(BaseModel):
    items: list[LowStockProductOut]
    pagination: PaginationMeta
