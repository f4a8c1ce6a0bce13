from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import select
from sqlalchemy.orm import Session

from stockbook.core.api_docs import error_responses
from stockbook.core.config import settings
from stockbook.core.deps import get_db
from stockbook.core.security_current import get_current_business
from stockbook.models.business import Business
from stockbook.models.product import Product
from stockbook.schemas.common import PaginationMeta
from stockbook.schemas.inventory import (
    InventoryLedgerEntryOut,
    InventoryLedgerListOut,
    LedgerReason,
    LowStockListOut,
    LowStockProductOut,
    StockLevelOut,
)
from stockbook.services import inventory_service

router = APIRouter(prefix="/inventory", tags=["inventory"])


def _require_product(db: Session, business_id: str, product_id: str) -> Product:
    # inactive products still have a ledger worth reading
    product = db.execute(
        select(Product).where(Product.id == product_id, Product.business_id == business_id)
    ).scalar_one_or_none()
    if product is None:
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.get(
    "/stock/{product_id}",
    response_model=StockLevelOut,
    summary="Get stock level for a product",
    description=(
        "Returns the stored on-hand quantity next to the sum of the product's ledger "
        "movements. The two always agree unless the data was edited outside the API."
    ),
    responses=error_responses(401, 404, 422, 500),
)
def get_stock(
    product_id: str,
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
):
    product = _require_product(db, biz.id, product_id)
    quantity = int(product.quantity)
    ledger_total = inventory_service.get_ledger_total(db, biz.id, product_id)
    return StockLevelOut(
        product_id=product_id,
        quantity=quantity,
        ledger_total=ledger_total,
        consistent=quantity == ledger_total,
    )


@router.get(
    "/ledger",
    response_model=InventoryLedgerListOut,
    summary="List inventory ledger entries",
    description=(
        "Stock movements, newest first. Sales and purchases appear with their id as "
        "`reference_id`; deleting either appends a compensating `*_delete` row."
    ),
    responses=error_responses(401, 404, 422, 500),
)
def list_inventory_ledger(
    product_id: str | None = Query(default=None, description="Only movements of this product"),
    reason: LedgerReason | None = Query(default=None, description="Only movements with this reason"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
):
    if product_id:
        _require_product(db, biz.id, product_id)

    total, rows = inventory_service.list_ledger_entries(
        db,
        biz.id,
        product_id=product_id,
        reason=reason,
        limit=limit,
        offset=offset,
    )
    items = [InventoryLedgerEntryOut.model_validate(row) for row in rows]
    return InventoryLedgerListOut(
        items=items,
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=len(items),
            has_next=(offset + len(items)) < total,
        ),
    )


@router.get(
    "/low-stock",
    response_model=LowStockListOut,
    summary="List low-stock products",
    description="Active products whose on-hand quantity is at or below the threshold.",
    responses=error_responses(401, 422, 500),
)
def list_low_stock_products(
    threshold: int | None = Query(
        default=None,
        ge=0,
        description="Defaults to the configured LOW_STOCK_DEFAULT_THRESHOLD.",
    ),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
):
    cutoff = settings.low_stock_default_threshold if threshold is None else threshold
    total, rows = inventory_service.list_low_stock(
        db, biz.id, threshold=cutoff, limit=limit, offset=offset
    )
    items = [
        LowStockProductOut(
            product_id=row.id,
            product_name=row.name,
            quantity=int(row.quantity),
            threshold=cutoff,
        )
        for row in rows
    ]
    return LowStockListOut(
        items=items,
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=len(items),
            has_next=(offset + len(items)) < total,
        ),
    )
