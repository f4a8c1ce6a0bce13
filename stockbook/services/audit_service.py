from datetime import date
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockbook.core.id_utils import new_id
from stockbook.models.audit_log import AuditLog

AUDIT_TARGET_TYPES = (
    "account",
    "product",
    "supplier",
    "purchase",
    "sale",
    "expense",
    "ai_insight_log",
)


def log_audit_event(
    db: Session,
    *,
    business_id: str,
    actor_user_id: str,
    action: str,
    target_type: str,
    target_id: str | None = None,
    metadata_json: dict[str, Any] | None = None,
) -> AuditLog:
    """Stage an audit row in the caller's transaction; it is committed with the change it describes."""
    if target_type not in AUDIT_TARGET_TYPES:
        raise ValueError(f"Unknown audit target type: {target_type}")
    event = AuditLog(
        id=new_id(),
        business_id=business_id,
        actor_user_id=actor_user_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        metadata_json=metadata_json,
    )
    db.add(event)
    return event


def list_audit_events(
    db: Session,
    business_id: str,
    *,
    action: str | None = None,
    target_type: str | None = None,
    target_id: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[AuditLog]]:
    """Newest first. Returns the unpaginated total alongside the requested page."""
    conditions = [AuditLog.business_id == business_id]
    if action:
        conditions.append(AuditLog.action == action)
    if target_type:
        conditions.append(AuditLog.target_type == target_type)
    if target_id:
        conditions.append(AuditLog.target_id == target_id)
    if start_date:
        conditions.append(func.date(AuditLog.created_at) >= start_date)
    if end_date:
        conditions.append(func.date(AuditLog.created_at) <= end_date)

    total = int(db.execute(select(func.count(AuditLog.id)).where(*conditions)).scalar_one())
    rows = db.execute(
        select(AuditLog)
        .where(*conditions)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return total, list(rows)
