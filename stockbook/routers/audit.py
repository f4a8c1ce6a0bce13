from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from stockbook.core.api_docs import error_responses
from stockbook.core.deps import get_db
from stockbook.core.security_current import get_current_business
from stockbook.models.business import Business
from stockbook.schemas.audit import AuditLogListOut, AuditLogOut, AuditTargetType
from stockbook.schemas.common import PaginationMeta
from stockbook.services.audit_service import list_audit_events

router = APIRouter(prefix="/audit-logs", tags=["audit"])


@router.get(
    "",
    response_model=AuditLogListOut,
    summary="List audit logs",
    description=(
        "Every sale, purchase, product, supplier, expense and Smart Buy change leaves a row here. "
        "Filter by `target_type` and `target_id` to see the history of one record."
    ),
    responses=error_responses(400, 401, 422, 500),
)
def list_audit_logs(
    action: str | None = Query(default=None, description="e.g. sale.create, purchase.delete"),
    target_type: AuditTargetType | None = Query(default=None),
    target_id: str | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
):
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date cannot be before start_date")

    total, rows = list_audit_events(
        db,
        biz.id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset,
    )
    items = [AuditLogOut.model_validate(row) for row in rows]
    count = len(items)
    return AuditLogListOut(
        items=items,
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
    )
