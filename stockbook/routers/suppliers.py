from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockbook.core.api_docs import error_responses
from stockbook.core.deps import get_db
from stockbook.core.id_utils import new_id
from stockbook.core.security_current import get_current_business, get_current_user
from stockbook.models.business import Business
from stockbook.models.purchase import Purchase
from stockbook.models.supplier import Supplier
from stockbook.models.user import User
from stockbook.schemas.common import PaginationMeta
from stockbook.schemas.supplier import (
    SupplierCreate,
    SupplierCreateOut,
    SupplierListOut,
    SupplierOut,
    SupplierUpdate,
)
from stockbook.services.audit_service import log_audit_event

router = APIRouter(prefix="/suppliers", tags=["suppliers"])


def _get_supplier(db: Session, business_id: str, supplier_id: str) -> Supplier:
    supplier = db.execute(
        select(Supplier).where(Supplier.id == supplier_id, Supplier.business_id == business_id)
    ).scalar_one_or_none()
    if not supplier:
        raise HTTPException(status_code=404, detail="Supplier not found")
    return supplier


def _supplier_out(supplier: Supplier) -> SupplierOut:
    return SupplierOut(
        id=supplier.id,
        name=supplier.name,
        product_types=supplier.product_types,
        purchase_days=supplier.purchase_days,
        created_at=supplier.created_at,
    )


@router.post(
    "",
    response_model=SupplierCreateOut,
    summary="Create supplier",
    responses=error_responses(400, 401, 404, 422, 500),
)
def create_supplier(
    payload: SupplierCreate,
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
    actor: User = Depends(get_current_user),
):
    supplier = Supplier(
        id=new_id(),
        business_id=biz.id,
        name=payload.name,
        product_types=payload.product_types,
        purchase_days=payload.purchase_days,
    )
    db.add(supplier)
    log_audit_event(
        db,
        business_id=biz.id,
        actor_user_id=actor.id,
        action="supplier.create",
        target_type="supplier",
        target_id=supplier.id,
        metadata_json={"name": supplier.name},
    )
    db.commit()
    return SupplierCreateOut(id=supplier.id)


@router.get(
    "",
    response_model=SupplierListOut,
    summary="List suppliers",
    responses=error_responses(401, 422, 500),
)
def list_suppliers(
    q: str | None = Query(default=None, description="Case-insensitive name search"),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
):
    count_stmt = select(func.count(Supplier.id)).where(Supplier.business_id == biz.id)
    data_stmt = select(Supplier).where(Supplier.business_id == biz.id)
    if q and q.strip():
        pattern = f"%{q.strip().lower()}%"
        count_stmt = count_stmt.where(func.lower(Supplier.name).like(pattern))
        data_stmt = data_stmt.where(func.lower(Supplier.name).like(pattern))

    total = int(db.execute(count_stmt).scalar_one())
    rows = db.execute(
        data_stmt.order_by(Supplier.name.asc()).offset(offset).limit(limit)
    ).scalars().all()
    items = [_supplier_out(row) for row in rows]
    count = len(items)
    return SupplierListOut(
        items=items,
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
    )


@router.patch(
    "/{supplier_id}",
    response_model=SupplierOut,
    summary="Update supplier",
    responses=error_responses(400, 401, 404, 422, 500),
)
def update_supplier(
    supplier_id: str,
    payload: SupplierUpdate,
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
    actor: User = Depends(get_current_user),
):
    supplier = _get_supplier(db, biz.id, supplier_id)
    updates = payload.model_dump(exclude_unset=True)
    if "name" in updates and updates["name"] is None:
        raise HTTPException(status_code=400, detail="name cannot be empty")
    for field, value in updates.items():
        setattr(supplier, field, value)

    log_audit_event(
        db,
        business_id=biz.id,
        actor_user_id=actor.id,
        action="supplier.update",
        target_type="supplier",
        target_id=supplier.id,
        metadata_json={"updated_fields": sorted(updates.keys())},
    )
    db.commit()
    db.refresh(supplier)
    return _supplier_out(supplier)


@router.delete(
    "/{supplier_id}",
    summary="Delete supplier",
    description="Deletes a supplier that no purchase references.",
    responses=error_responses(401, 404, 409, 500, conflict="conflict"),
)
def delete_supplier(
    supplier_id: str,
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
    actor: User = Depends(get_current_user),
):
    supplier = _get_supplier(db, biz.id, supplier_id)
    purchase_count = int(
        db.execute(
            select(func.count(Purchase.id)).where(
                Purchase.business_id == biz.id,
                Purchase.supplier_id == supplier.id,
            )
        ).scalar_one()
    )
    if purchase_count:
        raise HTTPException(
            status_code=409,
            detail=f"Supplier is referenced by {purchase_count} purchase(s)",
        )

    log_audit_event(
        db,
        business_id=biz.id,
        actor_user_id=actor.id,
        action="supplier.delete",
        target_type="supplier",
        target_id=supplier.id,
        metadata_json={"name": supplier.name},
    )
    db.delete(supplier)
    db.commit()
    return {"ok": True, "id": supplier_id}
