from decimal import Decimal
from typing import get_args

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from stockbook.core.id_utils import new_id
from stockbook.models.inventory import InventoryLedger
from stockbook.models.product import Product
from stockbook.schemas.inventory import LedgerReason

LEDGER_REASONS = get_args(LedgerReason)


def get_product_quantity(db: Session, business_id: str, product_id: str) -> int | None:
    """Reads the stored on-hand quantity straight from the table, bypassing the identity map."""
    value = db.execute(
        select(Product.quantity).where(
            Product.id == product_id,
            Product.business_id == business_id,
        )
    ).scalar_one_or_none()
    return None if value is None else int(value)


def get_ledger_total(db: Session, business_id: str, product_id: str) -> int:
    q = select(func.coalesce(func.sum(InventoryLedger.qty_delta), 0)).where(
        InventoryLedger.business_id == business_id,
        InventoryLedger.product_id == product_id,
    )
    return int(db.execute(q).scalar_one())


def take_stock(db: Session, *, business_id: str, product_id: str, qty: int) -> int | None:
    """
    Decrement stock only if at least `qty` units are on hand.

    The guard and the write are a single UPDATE, so two concurrent callers can
    never both pass the check. Returns the new quantity, or None when the
    guard rejected the change.
    """
    result = db.execute(
        update(Product)
        .where(
            Product.id == product_id,
            Product.business_id == business_id,
            Product.quantity >= qty,
        )
        .values(quantity=Product.quantity - qty)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None
    return get_product_quantity(db, business_id, product_id)


def put_stock(db: Session, *, business_id: str, product_id: str, qty: int) -> int | None:
    result = db.execute(
        update(Product)
        .where(
            Product.id == product_id,
            Product.business_id == business_id,
        )
        .values(quantity=Product.quantity + qty)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None
    return get_product_quantity(db, business_id, product_id)


def add_ledger_entry(
    db: Session,
    *,
    business_id: str,
    product_id: str,
    qty_delta: int,
    reason: str,
    reference_id: str | None = None,
    note: str | None = None,
    unit_cost: Decimal | None = None,
) -> InventoryLedger:
    if reason not in LEDGER_REASONS:
        raise ValueError(f"Unknown ledger reason: {reason}")
    entry = InventoryLedger(
        id=new_id(),
        business_id=business_id,
        product_id=product_id,
        qty_delta=qty_delta,
        reason=reason,
        reference_id=reference_id,
        note=note,
        unit_cost=unit_cost,
    )
    db.add(entry)
    return entry


def list_ledger_entries(
    db: Session,
    business_id: str,
    *,
    product_id: str | None = None,
    reason: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[InventoryLedger]]:
    """Newest movements first, as ``(total, page)``."""
    filters = [InventoryLedger.business_id == business_id]
    if product_id:
        filters.append(InventoryLedger.product_id == product_id)
    if reason:
        filters.append(InventoryLedger.reason == reason)

    total = db.execute(select(func.count(InventoryLedger.id)).where(*filters)).scalar_one()
    rows = db.execute(
        select(InventoryLedger)
        .where(*filters)
        .order_by(InventoryLedger.created_at.desc(), InventoryLedger.id)
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return int(total), list(rows)


def list_low_stock(
    db: Session,
    business_id: str,
    *,
    threshold: int,
    limit: int = 100,
    offset: int = 0,
) -> tuple[int, list[Product]]:
    """Active products at or below ``threshold``, emptiest first."""
    filters = (
        Product.business_id == business_id,
        Product.active.is_(True),
        Product.quantity <= threshold,
    )
    total = db.execute(select(func.count(Product.id)).where(*filters)).scalar_one()
    rows = db.execute(
        select(Product)
        .where(*filters)
        .order_by(Product.quantity.asc(), Product.name.asc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return int(total), list(rows)
