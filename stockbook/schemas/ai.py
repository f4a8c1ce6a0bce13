from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from stockbook.schemas.common import PaginationMeta


class SmartBuySuggestionIn(BaseModel):
    """Five pre-serialized text blobs substituted verbatim into the Smart Buy prompt."""

    daily_sales: str
    expenses: str
    product_purchases: str
    product_catalog: str
    supplier_info: str

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "daily_sales": '[{"sale_date": "2026-03-01", "product_name": "Olive Oil 1L", "quantity": 4, "amount": 50.0}]',
                "expenses": '[{"category": "rent", "amount": 300.0}]',
                "product_purchases": '[{"product_name": "Olive Oil 1L", "quantity": 10, "total_cost": 80.0}]',
                "product_catalog": '[{"name": "Olive Oil 1L", "quantity": 6, "selling_price": 12.5}]',
                "supplier_info": '[{"name": "Fresh Farms Ltd", "purchase_days": "Mon, Thu"}]',
            }
        }
    )


class AITokenUsageOut(BaseModel):
    prompt_tokens: Optional[int] = None
    completion_tokens: Optional[int] = None
    total_tokens: Optional[int] = None


class SmartBuySuggestionOut(BaseModel):
    suggestion: str


class SmartBuyGenerateOut(SmartBuySuggestionOut):
    id: str
    provider: str
    model: str
    used_fallback: bool
    token_usage: Optional[AITokenUsageOut] = None
    estimated_cost_usd: Optional[float] = None


class SmartBuyLogOut(BaseModel):
    id: str
    suggestion: str
    provider: str
    model: str
    used_fallback: bool
    source: Optional[str] = None
    created_at: datetime


class SmartBuyLogListOut(BaseModel):
    items: list[SmartBuyLogOut]
    pagination: PaginationMeta
