from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockbook.core.api_docs import error_responses
from stockbook.core.deps import get_db
from stockbook.core.money import to_money
from stockbook.core.security_current import get_current_business, get_current_user
from stockbook.models.business import Business
from stockbook.models.sales import Sale
from stockbook.models.user import User
from stockbook.schemas.common import PaginationMeta
from stockbook.schemas.sales import (
    SaleCreate,
    SaleCreateOut,
    SaleDeleteOut,
    SaleListOut,
    SaleOut,
)
from stockbook.services import stock_ledger_service
from stockbook.services.audit_service import log_audit_event

router = APIRouter(prefix="/sales", tags=["sales"])


@router.post(
    "",
    response_model=SaleCreateOut,
    summary="Record sale",
    description=(
        "Records a sale. With product_id, stock is checked and decremented in the same "
        "transaction and an insufficient quantity fails with 409 insufficient_stock. "
        "Without product_id the sale is ad-hoc and does not touch stock."
    ),
    responses={
        200: {
            "description": "Recorded sale",
            "content": {
                "application/json": {
                    "example": {"id": "sale-id", "amount": 50.0, "remaining_stock": 6}
                }
            },
        },
        **error_responses(400, 401, 404, 409, 422, 500, 503),
    },
)
def create_sale(
    payload: SaleCreate,
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
    actor: User = Depends(get_current_user),
):
    try:
        result = stock_ledger_service.record_sale(
            db,
            business_id=biz.id,
            product_id=payload.product_id,
            product_name=payload.product_name,
            quantity=payload.quantity,
            amount=payload.amount,
            unit_price=payload.unit_price,
            sale_date=payload.sale_date,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    sale = result.sale
    out = SaleCreateOut(
        id=sale.id,
        amount=float(to_money(sale.amount)),
        remaining_stock=result.stock,
    )
    log_audit_event(
        db,
        business_id=biz.id,
        actor_user_id=actor.id,
        action="sale.create",
        target_type="sale",
        target_id=sale.id,
        metadata_json={
            "product_id": sale.product_id,
            "product_name": sale.product_name,
            "quantity": sale.quantity,
            "amount": out.amount,
        },
    )
    db.commit()
    return out


@router.delete(
    "/{sale_id}",
    response_model=SaleDeleteOut,
    summary="Delete sale",
    description="Deletes a sale and returns its units to stock.",
    responses=error_responses(401, 404, 500, 503),
)
def delete_sale(
    sale_id: str,
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
    actor: User = Depends(get_current_user),
):
    result = stock_ledger_service.delete_sale(db, business_id=biz.id, sale_id=sale_id)
    sale = result.sale
    log_audit_event(
        db,
        business_id=biz.id,
        actor_user_id=actor.id,
        action="sale.delete",
        target_type="sale",
        target_id=sale_id,
        metadata_json={
            "product_id": sale.product_id,
            "quantity": sale.quantity,
            "amount": float(to_money(sale.amount)),
        },
    )
    db.commit()
    return SaleDeleteOut(id=sale_id, restored_stock=result.stock)


@router.get(
    "",
    response_model=SaleListOut,
    summary="List sales",
    responses={
        200: {
            "description": "Paginated sales",
            "content": {
                "application/json": {
                    "example": {
                        "pagination": {
                            "total": 1,
                            "limit": 50,
                            "offset": 0,
                            "count": 1,
                            "has_next": False,
                        },
                        "start_date": None,
                        "end_date": None,
                        "items": [
                            {
                                "id": "sale-id",
                                "product_id": "product-id",
                                "product_name": "Olive Oil 1L",
                                "quantity": 4,
                                "amount": 50.0,
                                "sale_date": "2026-03-01",
                                "created_at": "2026-03-01T10:00:00Z",
                            }
                        ],
                    }
                }
            },
        },
        **error_responses(400, 401, 422, 500),
    },
)
def list_sales(
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD)"),
    product_id: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
):
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date cannot be before start_date")

    count_stmt = select(func.count(Sale.id)).where(Sale.business_id == biz.id)
    data_stmt = select(Sale).where(Sale.business_id == biz.id)

    if product_id:
        count_stmt = count_stmt.where(Sale.product_id == product_id)
        data_stmt = data_stmt.where(Sale.product_id == product_id)
    if start_date:
        count_stmt = count_stmt.where(Sale.sale_date >= start_date)
        data_stmt = data_stmt.where(Sale.sale_date >= start_date)
    if end_date:
        count_stmt = count_stmt.where(Sale.sale_date <= end_date)
        data_stmt = data_stmt.where(Sale.sale_date <= end_date)

    total_count = int(db.execute(count_stmt).scalar_one())
    rows = db.execute(
        data_stmt.order_by(Sale.sale_date.desc(), Sale.created_at.desc()).offset(offset).limit(limit)
    ).scalars().all()

    items = [
        SaleOut(
            id=row.id,
            product_id=row.product_id,
            product_name=row.product_name,
            quantity=row.quantity,
            amount=float(to_money(row.amount)),
            sale_date=row.sale_date,
            created_at=row.created_at,
        )
        for row in rows
    ]
    count = len(items)

    return SaleListOut(
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
