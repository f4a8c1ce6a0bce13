from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict

from stockbook.schemas.common import PaginationMeta

AuditTargetType = Literal[
    "account",
    "product",
    "supplier",
    "purchase",
    "sale",
    "expense",
    "ai_insight_log",
]


class AuditLogOut(BaseModel):
    id: str
    actor_user_id: str
    action: str
    target_type: AuditTargetType
    target_id: str | None = None
    metadata_json: dict[str, Any] | None = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class AuditLogListOut(BaseModel):
    items: list[AuditLogOut]
    pagination: PaginationMeta
