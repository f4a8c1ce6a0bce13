from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from stockbook.schemas.common import PaginationMeta


class ExpenseCreate(BaseModel):
    category: str
    description: Optional[str] = None
    amount: Decimal = Field(gt=0)
    expense_date: date

    @field_validator("category")
    @classmethod
    def validate_category(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("category is required")
        return cleaned

    @field_validator("description")
    @classmethod
    def normalize_description(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "category": "rent",
                "description": "March shop rent",
                "amount": 300.0,
                "expense_date": "2026-03-01",
            }
        }
    )


class ExpenseUpdate(BaseModel):
    category: Optional[str] = None
    description: Optional[str] = None
    amount: Decimal | None = Field(default=None, gt=0)
    expense_date: date | None = None

    @field_validator("category")
    @classmethod
    def validate_category(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("category cannot be empty")
        return cleaned

    @field_validator("description")
    @classmethod
    def normalize_description(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        cleaned = value.strip()
        return cleaned or None

    @model_validator(mode="after")
    def validate_has_update(self) -> "ExpenseUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class ExpenseCreateOut(BaseModel):
    id: str


class ExpenseOut(BaseModel):
    id: str
    category: str
    description: Optional[str] = None
    amount: float
    expense_date: date
    created_at: datetime


class ExpenseListOut(BaseModel):
    pagination: PaginationMeta
    start_date: date | None = None
    end_date: date | None = None
    items: list[ExpenseOut]


class ExpenseFeedExpenseOut(BaseModel):
    kind: Literal["expense"] = "expense"
    id: str
    entry_date: date
    category: str
    description: Optional[str] = None
    amount: float
    deletable: bool = True


class ExpenseFeedPurchaseOut(BaseModel):
    """Purchases show up in the expense feed but are managed from /purchases."""

    kind: Literal["purchase"] = "purchase"
    id: str
    entry_date: date
    category: str = "purchase"
    description: Optional[str] = None
    amount: float
    product_id: str
    supplier_id: str
    quantity: int
    deletable: bool = False


ExpenseFeedEntryOut = Annotated[
    Union[ExpenseFeedExpenseOut, ExpenseFeedPurchaseOut],
    Field(discriminator="kind"),
]


class ExpenseFeedOut(BaseModel):
    pagination: PaginationMeta
    start_date: date | None = None
    end_date: date | None = None
    total_amount: float
    items: list[ExpenseFeedEntryOut]
