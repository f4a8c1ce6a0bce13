from pydantic import BaseModel, ConfigDict


class PaginationMeta(BaseModel):
    """Offset pagination block returned next to every list's ``items``."""

    total: int
    limit: int
    offset: int
    count: int
    has_next: bool

    model_config = ConfigDict(
        json_schema_extra={
            "example": {"total": 23, "limit": 20, "offset": 0, "count": 20, "has_next": True}
        }
    )


class ValidationIssueOut(BaseModel):
    field: str
    message: str
    type: str | None = None


class ErrorDetailOut(BaseModel):
    code: str
    message: str
    request_id: str
    path: str
    # field-level issues; stock conflicts report requested vs available here
    details: list[ValidationIssueOut] | None = None


class ErrorOut(BaseModel):
    """Every non-2xx response body."""

    error: ErrorDetailOut

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "error": {
                    "code": "insufficient_stock",
                    "message": "Not enough stock for Olive Oil 1L. Available: 2",
                    "request_id": "3f6a1c2e-9d7b-4e15-a0c8-5b2f7e9d1a44",
                    "path": "/sales",
                    "details": [
                        {
                            "field": "quantity",
                            "message": "requested 5, available 2",
                            "type": "insufficient_stock",
                        }
                    ],
                }
            }
        }
    )
