from decimal import Decimal

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockbook.core.api_docs import error_responses
from stockbook.core.deps import get_db
from stockbook.core.id_utils import new_id
from stockbook.core.money import to_money, unit_cost
from stockbook.core.security_current import get_current_business, get_current_user
from stockbook.models.business import Business
from stockbook.models.product import Product
from stockbook.models.user import User
from stockbook.schemas.common import PaginationMeta
from stockbook.schemas.product import (
    ProductCreate,
    ProductCreateOut,
    ProductDuplicateIn,
    ProductListOut,
    ProductOut,
    ProductUpdate,
)
from stockbook.services.audit_service import log_audit_event
from stockbook.services.inventory_service import add_ledger_entry
from stockbook.services.stock_ledger_service import adjust_stock, get_active_product

router = APIRouter(prefix="/products", tags=["products"])
MAX_PRODUCT_PAGE_SIZE = 500
COPY_SUFFIX = " (Copy)"


def _product_out(product: Product) -> ProductOut:
    cost_per_unit = to_money(product.cost_per_unit) if product.cost_per_unit is not None else None
    return ProductOut(
        id=product.id,
        name=product.name,
        purchase_price=float(to_money(product.purchase_price or 0)),
        selling_price=float(to_money(product.selling_price)),
        cost_per_unit=float(cost_per_unit) if cost_per_unit is not None else None,
        unit_profit=(
            float(to_money(Decimal(product.selling_price) - cost_per_unit))
            if cost_per_unit is not None
            else None
        ),
        quantity=int(product.quantity),
        active=bool(product.active),
        created_at=product.created_at,
    )


def _opening_cost_per_unit(purchase_price: Decimal, quantity: int) -> Decimal | None:
    if quantity <= 0 or purchase_price <= 0:
        return None
    return unit_cost(purchase_price, quantity)


def _create_product_row(
    db: Session,
    *,
    business_id: str,
    name: str,
    selling_price: Decimal,
    purchase_price: Decimal,
    quantity: int,
) -> Product:
    product = Product(
        id=new_id(),
        business_id=business_id,
        name=name,
        selling_price=to_money(selling_price),
        purchase_price=to_money(purchase_price),
        cost_per_unit=_opening_cost_per_unit(purchase_price, quantity),
        quantity=quantity,
        active=True,
    )
    db.add(product)
    db.flush()
    if quantity > 0:
        add_ledger_entry(
            db,
            business_id=business_id,
            product_id=product.id,
            qty_delta=quantity,
            reason="opening_stock",
            unit_cost=product.cost_per_unit,
        )
    return product


@router.post(
    "",
    response_model=ProductCreateOut,
    summary="Create product",
    description="Creates a product. A non-zero opening quantity is recorded as opening stock.",
    responses=error_responses(400, 401, 404, 422, 500),
)
def create_product(
    payload: ProductCreate,
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
    actor: User = Depends(get_current_user),
):
    product = _create_product_row(
        db,
        business_id=biz.id,
        name=payload.name,
        selling_price=payload.selling_price,
        purchase_price=payload.purchase_price,
        quantity=payload.quantity,
    )
    log_audit_event(
        db,
        business_id=biz.id,
        actor_user_id=actor.id,
        action="product.create",
        target_type="product",
        target_id=product.id,
        metadata_json={"name": product.name, "quantity": payload.quantity},
    )
    db.commit()
    return ProductCreateOut(id=product.id)


@router.get(
    "",
    response_model=ProductListOut,
    summary="List products",
    responses={
        200: {
            "description": "Paginated products",
            "content": {
                "application/json": {
                    "example": {
                        "items": [
                            {
                                "id": "product-id",
                                "name": "Olive Oil 1L",
                                "purchase_price": 80.0,
                                "selling_price": 12.5,
                                "cost_per_unit": 8.0,
                                "unit_profit": 4.5,
                                "quantity": 6,
                                "active": True,
                                "created_at": "2026-03-01T09:00:00Z",
                            }
                        ],
                        "pagination": {
                            "total": 1,
                            "limit": 50,
                            "offset": 0,
                            "count": 1,
                            "has_next": False,
                        },
                    }
                }
            },
        },
        **error_responses(401, 422, 500),
    },
)
def list_products(
    q: str | None = Query(default=None, description="Case-insensitive name search"),
    include_inactive: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=MAX_PRODUCT_PAGE_SIZE, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
):
    count_stmt = select(func.count(Product.id)).where(Product.business_id == biz.id)
    data_stmt = select(Product).where(Product.business_id == biz.id)
    if not include_inactive:
        count_stmt = count_stmt.where(Product.active.is_(True))
        data_stmt = data_stmt.where(Product.active.is_(True))
    if q and q.strip():
        pattern = f"%{q.strip().lower()}%"
        count_stmt = count_stmt.where(func.lower(Product.name).like(pattern))
        data_stmt = data_stmt.where(func.lower(Product.name).like(pattern))

    total = int(db.execute(count_stmt).scalar_one())
    rows = db.execute(
        data_stmt.order_by(Product.created_at.desc(), Product.name.asc()).offset(offset).limit(limit)
    ).scalars().all()
    items = [_product_out(row) for row in rows]
    count = len(items)
    return ProductListOut(
        items=items,
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
    )


@router.get(
    "/{product_id}",
    response_model=ProductOut,
    summary="Get product",
    responses=error_responses(401, 404, 500),
)
def get_product(
    product_id: str,
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
):
    product = db.execute(
        select(Product).where(Product.id == product_id, Product.business_id == biz.id)
    ).scalar_one_or_none()
    if not product:
        raise HTTPException(status_code=404, detail="Product not found")
    return _product_out(product)


@router.patch(
    "/{product_id}",
    response_model=ProductOut,
    summary="Update product",
    description=(
        "Updates name, prices and/or quantity. A quantity change is recorded as a stock "
        "adjustment; a purchase price change recomputes the cost per unit."
    ),
    responses=error_responses(400, 401, 404, 409, 422, 500),
)
def update_product(
    product_id: str,
    payload: ProductUpdate,
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
    actor: User = Depends(get_current_user),
):
    product = get_active_product(db, biz.id, product_id)
    changes: dict = {}

    if payload.name is not None:
        product.name = payload.name
        changes["name"] = payload.name
    if payload.selling_price is not None:
        product.selling_price = to_money(payload.selling_price)
        changes["selling_price"] = float(to_money(payload.selling_price))
    if payload.quantity is not None:
        changes["quantity"] = adjust_stock(
            db,
            business_id=biz.id,
            product=product,
            new_quantity=payload.quantity,
            note="manual edit",
        )
    if payload.purchase_price is not None:
        product.purchase_price = to_money(payload.purchase_price)
        product.cost_per_unit = _opening_cost_per_unit(
            Decimal(payload.purchase_price), int(product.quantity)
        )
        changes["purchase_price"] = float(to_money(payload.purchase_price))

    log_audit_event(
        db,
        business_id=biz.id,
        actor_user_id=actor.id,
        action="product.update",
        target_type="product",
        target_id=product.id,
        metadata_json=changes,
    )
    db.commit()
    db.refresh(product)
    return _product_out(product)


@router.delete(
    "/{product_id}",
    summary="Delete product",
    description=(
        "Deactivates the product. Sales and purchases that reference it are kept; "
        "it no longer accepts new ones."
    ),
    responses=error_responses(401, 404, 500),
)
def delete_product(
    product_id: str,
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
    actor: User = Depends(get_current_user),
):
    product = get_active_product(db, biz.id, product_id)
    product.active = False
    log_audit_event(
        db,
        business_id=biz.id,
        actor_user_id=actor.id,
        action="product.delete",
        target_type="product",
        target_id=product.id,
        metadata_json={"name": product.name},
    )
    db.commit()
    return {"ok": True, "id": product_id}


@router.post(
    "/{product_id}/duplicate",
    response_model=ProductCreateOut,
    summary="Duplicate product",
    description='Creates a copy named "<name> (Copy)" unless another name is given.',
    responses=error_responses(401, 404, 422, 500),
)
def duplicate_product(
    product_id: str,
    payload: ProductDuplicateIn | None = Body(default=None),
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
    actor: User = Depends(get_current_user),
):
    source = get_active_product(db, biz.id, product_id)
    overrides = payload or ProductDuplicateIn()

    copy = _create_product_row(
        db,
        business_id=biz.id,
        name=overrides.name or f"{source.name}{COPY_SUFFIX}",
        selling_price=(
            overrides.selling_price if overrides.selling_price is not None else source.selling_price
        ),
        purchase_price=(
            overrides.purchase_price
            if overrides.purchase_price is not None
            else Decimal(source.purchase_price or 0)
        ),
        quantity=overrides.quantity if overrides.quantity is not None else int(source.quantity),
    )
    log_audit_event(
        db,
        business_id=biz.id,
        actor_user_id=actor.id,
        action="product.duplicate",
        target_type="product",
        target_id=copy.id,
        metadata_json={"source_product_id": source.id, "name": copy.name},
    )
    db.commit()
    return ProductCreateOut(id=copy.id)
