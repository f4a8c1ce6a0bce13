from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockbook.core.api_docs import error_responses
from stockbook.core.deps import get_db
from stockbook.core.money import to_money
from stockbook.core.security_current import get_current_business, get_current_user
from stockbook.models.business import Business
from stockbook.models.product import Product
from stockbook.models.purchase import Purchase
from stockbook.models.supplier import Supplier
from stockbook.models.user import User
from stockbook.schemas.common import PaginationMeta
from stockbook.schemas.purchase import (
    PurchaseCreate,
    PurchaseCreateOut,
    PurchaseDeleteOut,
    PurchaseListOut,
    PurchaseOut,
)
from stockbook.services import stock_ledger_service
from stockbook.services.audit_service import log_audit_event

router = APIRouter(prefix="/purchases", tags=["purchases"])


@router.post(
    "",
    response_model=PurchaseCreateOut,
    summary="Record purchase",
    description=(
        "Records a purchase from a supplier against an existing product (product_id) or a "
        "new one created on the fly (new_product). Stock goes up by quantity and the "
        "product's cost basis is set from this purchase."
    ),
    responses={
        200: {
            "description": "Recorded purchase",
            "content": {
                "application/json": {
                    "example": {
                        "id": "purchase-id",
                        "product_id": "product-id",
                        "cost_per_unit": 10.0,
                        "stock": 5,
                    }
                }
            },
        },
        **error_responses(400, 401, 404, 422, 500, 503),
    },
)
def create_purchase(
    payload: PurchaseCreate,
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
    actor: User = Depends(get_current_user),
):
    try:
        result = stock_ledger_service.record_purchase(
            db,
            business_id=biz.id,
            supplier_id=payload.supplier_id,
            quantity=payload.quantity,
            total_cost=payload.total_cost,
            purchase_date=payload.purchase_date,
            product_id=payload.product_id,
            new_product_name=payload.new_product.name if payload.new_product else None,
            new_product_selling_price=(
                payload.new_product.selling_price if payload.new_product else None
            ),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    purchase = result.purchase
    out = PurchaseCreateOut(
        id=purchase.id,
        product_id=purchase.product_id,
        cost_per_unit=float(to_money(purchase.cost_per_unit)),
        stock=result.stock,
    )
    log_audit_event(
        db,
        business_id=biz.id,
        actor_user_id=actor.id,
        action="purchase.create",
        target_type="purchase",
        target_id=purchase.id,
        metadata_json={
            "supplier_id": purchase.supplier_id,
            "product_id": purchase.product_id,
            "new_product": payload.new_product is not None,
            "quantity": purchase.quantity,
            "total_cost": float(to_money(purchase.total_cost)),
        },
    )
    db.commit()
    return out


@router.delete(
    "/{purchase_id}",
    response_model=PurchaseDeleteOut,
    summary="Delete purchase",
    description=(
        "Deletes a purchase and removes its units from stock. Fails with 409 negative_stock "
        "when some of those units have already been sold."
    ),
    responses=error_responses(401, 404, 409, 500, 503, conflict="negative_stock"),
)
def delete_purchase(
    purchase_id: str,
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
    actor: User = Depends(get_current_user),
):
    result = stock_ledger_service.delete_purchase(db, business_id=biz.id, purchase_id=purchase_id)
    purchase = result.purchase
    log_audit_event(
        db,
        business_id=biz.id,
        actor_user_id=actor.id,
        action="purchase.delete",
        target_type="purchase",
        target_id=purchase_id,
        metadata_json={
            "product_id": purchase.product_id,
            "quantity": purchase.quantity,
            "total_cost": float(to_money(purchase.total_cost)),
        },
    )
    db.commit()
    return PurchaseDeleteOut(id=purchase_id, remaining_stock=result.stock)


@router.get(
    "",
    response_model=PurchaseListOut,
    summary="List purchases",
    responses=error_responses(400, 401, 422, 500),
)
def list_purchases(
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD)"),
    supplier_id: str | None = Query(default=None),
    product_id: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
):
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date cannot be before start_date")

    count_stmt = select(func.count(Purchase.id)).where(Purchase.business_id == biz.id)
    data_stmt = (
        select(Purchase, Supplier.name, Product.name)
        .join(Supplier, Supplier.id == Purchase.supplier_id)
        .join(Product, Product.id == Purchase.product_id)
        .where(Purchase.business_id == biz.id)
    )

    if supplier_id:
        count_stmt = count_stmt.where(Purchase.supplier_id == supplier_id)
        data_stmt = data_stmt.where(Purchase.supplier_id == supplier_id)
    if product_id:
        count_stmt = count_stmt.where(Purchase.product_id == product_id)
        data_stmt = data_stmt.where(Purchase.product_id == product_id)
    if start_date:
        count_stmt = count_stmt.where(Purchase.purchase_date >= start_date)
        data_stmt = data_stmt.where(Purchase.purchase_date >= start_date)
    if end_date:
        count_stmt = count_stmt.where(Purchase.purchase_date <= end_date)
        data_stmt = data_stmt.where(Purchase.purchase_date <= end_date)

    total_count = int(db.execute(count_stmt).scalar_one())
    rows = db.execute(
        data_stmt.order_by(Purchase.purchase_date.desc(), Purchase.created_at.desc())
        .offset(offset)
        .limit(limit)
    ).all()

    items = [
        PurchaseOut(
            id=purchase.id,
            supplier_id=purchase.supplier_id,
            supplier_name=supplier_name,
            product_id=purchase.product_id,
            product_name=product_name,
            quantity=purchase.quantity,
            total_cost=float(to_money(purchase.total_cost)),
            cost_per_unit=float(to_money(purchase.cost_per_unit)),
            purchase_date=purchase.purchase_date,
            created_at=purchase.created_at,
        )
        for purchase, supplier_name, product_name in rows
    ]
    count = len(items)

    return PurchaseListOut(
        pagination=PaginationMeta(
            total=total_count,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total_count,
        ),
        start_date=start_date,
        end_date=end_date,
        items=items,
    )
