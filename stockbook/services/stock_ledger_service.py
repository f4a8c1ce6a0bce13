"""
Stock-affecting operations: record/delete sale, record/delete purchase, adjust.

Every function here only stages changes on the caller's session. The router
commits once the whole operation succeeded; a raised BookkeepingError leaves
the transaction uncommitted, and the request session rolls it back on close.
Quantity changes go through inventory_service.take_stock / put_stock, which
are conditional single-statement UPDATEs, and each one appends a matching
inventory_ledger row so that products.quantity == sum(ledger.qty_delta).
"""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from stockbook.core.errors import InsufficientStockError, NegativeStockError, NotFoundError
from stockbook.core.id_utils import new_id
from stockbook.core.money import to_money, unit_cost
from stockbook.core.observability import log_event
from stockbook.models.product import Product
from stockbook.models.purchase import Purchase
from stockbook.models.sales import Sale
from stockbook.models.supplier import Supplier
from stockbook.services.inventory_service import (
    add_ledger_entry,
    get_product_quantity,
    put_stock,
    take_stock,
)


@dataclass
class SaleResult:
    sale: Sale
    stock: int | None


@dataclass
class PurchaseResult:
    purchase: Purchase
    product: Product
    stock: int


def get_active_product(db: Session, business_id: str, product_id: str) -> Product:
    product = db.execute(
        select(Product).where(
            Product.id == product_id,
            Product.business_id == business_id,
            Product.active.is_(True),
        )
    ).scalar_one_or_none()
    if not product:
        raise NotFoundError("Product not found")
    return product


def _resolve_sale_amount(
    *,
    quantity: int,
    amount: Decimal | None,
    unit_price: Decimal | None,
    selling_price: Decimal | None,
) -> Decimal:
    if amount is not None:
        return to_money(amount)
    if unit_price is not None:
        return to_money(Decimal(unit_price) * quantity)
    if selling_price is not None:
        return to_money(Decimal(selling_price) * quantity)
    raise ValueError("Sale amount cannot be derived")


def record_sale(
    db: Session,
    *,
    business_id: str,
    quantity: int,
    sale_date: date,
    product_id: str | None = None,
    product_name: str | None = None,
    amount: Decimal | None = None,
    unit_price: Decimal | None = None,
) -> SaleResult:
    if quantity <= 0:
        raise ValueError("quantity must be positive")

    if product_id is None:
        if not product_name:
            raise ValueError("product_name is required for ad-hoc sales")
        sale = Sale(
            id=new_id(),
            business_id=business_id,
            product_id=None,
            product_name=product_name,
            quantity=quantity,
            amount=_resolve_sale_amount(
                quantity=quantity, amount=amount, unit_price=unit_price, selling_price=None
            ),
            sale_date=sale_date,
        )
        db.add(sale)
        log_event(
            "stock_ledger",
            operation="record_sale",
            business_id=business_id,
            sale_id=sale.id,
            product_id=None,
            qty_delta=0,
        )
        return SaleResult(sale=sale, stock=None)

    product = get_active_product(db, business_id, product_id)
    remaining = take_stock(db, business_id=business_id, product_id=product.id, qty=quantity)
    if remaining is None:
        available = get_product_quantity(db, business_id, product.id) or 0
        raise InsufficientStockError(
            product_id=product.id,
            product_name=product.name,
            requested=quantity,
            available=available,
        )

    sale = Sale(
        id=new_id(),
        business_id=business_id,
        product_id=product.id,
        product_name=product.name,
        quantity=quantity,
        amount=_resolve_sale_amount(
            quantity=quantity,
            amount=amount,
            unit_price=unit_price,
            selling_price=product.selling_price,
        ),
        sale_date=sale_date,
    )
    db.add(sale)
    add_ledger_entry(
        db,
        business_id=business_id,
        product_id=product.id,
        qty_delta=-quantity,
        reason="sale",
        reference_id=sale.id,
        unit_cost=product.cost_per_unit,
    )
    db.expire(product, ["quantity"])

    log_event(
        "stock_ledger",
        operation="record_sale",
        business_id=business_id,
        sale_id=sale.id,
        product_id=product.id,
        qty_delta=-quantity,
        stock_after=remaining,
    )
    return SaleResult(sale=sale, stock=remaining)


def delete_sale(db: Session, *, business_id: str, sale_id: str) -> SaleResult:
    """Removes a sale and puts its units back, using the product and quantity stored on the row."""
    sale = db.execute(
        select(Sale).where(Sale.id == sale_id, Sale.business_id == business_id)
    ).scalar_one_or_none()
    if not sale:
        raise NotFoundError("Sale not found")

    restored: int | None = None
    if sale.product_id is not None:
        restored = put_stock(db, business_id=business_id, product_id=sale.product_id, qty=sale.quantity)
        if restored is None:
            raise NotFoundError("Product for this sale no longer exists")
        add_ledger_entry(
            db,
            business_id=business_id,
            product_id=sale.product_id,
            qty_delta=sale.quantity,
            reason="sale_delete",
            reference_id=sale.id,
        )

    db.delete(sale)
    log_event(
        "stock_ledger",
        operation="delete_sale",
        business_id=business_id,
        sale_id=sale.id,
        product_id=sale.product_id,
        qty_delta=sale.quantity if sale.product_id else 0,
        stock_after=restored,
    )
    return SaleResult(sale=sale, stock=restored)


def record_purchase(
    db: Session,
    *,
    business_id: str,
    supplier_id: str,
    quantity: int,
    total_cost: Decimal,
    purchase_date: date,
    product_id: str | None = None,
    new_product_name: str | None = None,
    new_product_selling_price: Decimal | None = None,
) -> PurchaseResult:
    if quantity <= 0:
        raise ValueError("quantity must be positive")
    if Decimal(total_cost) <= 0:
        raise ValueError("total_cost must be positive")

    supplier = db.execute(
        select(Supplier).where(Supplier.id == supplier_id, Supplier.business_id == business_id)
    ).scalar_one_or_none()
    if not supplier:
        raise NotFoundError("Supplier not found")

    if product_id is not None:
        product = get_active_product(db, business_id, product_id)
    else:
        if not new_product_name or new_product_selling_price is None:
            raise ValueError("new product name and selling price are required")
        product = Product(
            id=new_id(),
            business_id=business_id,
            name=new_product_name,
            selling_price=to_money(new_product_selling_price),
            purchase_price=to_money(0),
            quantity=0,
            active=True,
        )
        db.add(product)
        db.flush()

    cost_per_unit = unit_cost(total_cost, quantity)
    stock = put_stock(db, business_id=business_id, product_id=product.id, qty=quantity)
    if stock is None:
        raise NotFoundError("Product not found")

    # Last purchase wins: the product's cost basis is this purchase's total and unit cost.
    product.purchase_price = to_money(total_cost)
    product.cost_per_unit = cost_per_unit

    purchase = Purchase(
        id=new_id(),
        business_id=business_id,
        supplier_id=supplier.id,
        product_id=product.id,
        quantity=quantity,
        total_cost=to_money(total_cost),
        cost_per_unit=cost_per_unit,
        purchase_date=purchase_date,
    )
    db.add(purchase)
    add_ledger_entry(
        db,
        business_id=business_id,
        product_id=product.id,
        qty_delta=quantity,
        reason="purchase",
        reference_id=purchase.id,
        unit_cost=cost_per_unit,
    )
    db.expire(product, ["quantity"])

    log_event(
        "stock_ledger",
        operation="record_purchase",
        business_id=business_id,
        purchase_id=purchase.id,
        product_id=product.id,
        qty_delta=quantity,
        stock_after=stock,
        ad_hoc_product=product_id is None,
    )
    return PurchaseResult(purchase=purchase, product=product, stock=stock)


def delete_purchase(db: Session, *, business_id: str, purchase_id: str) -> PurchaseResult:
    """
    Removes a purchase and takes its units back out of stock.

    Fails with NegativeStockError when the product no longer holds the purchased
    quantity (units already sold); nothing is changed in that case. The product
    itself is kept even when it was created by this purchase.
    """
    purchase = db.execute(
        select(Purchase).where(Purchase.id == purchase_id, Purchase.business_id == business_id)
    ).scalar_one_or_none()
    if not purchase:
        raise NotFoundError("Purchase not found")

    product = db.execute(
        select(Product).where(Product.id == purchase.product_id, Product.business_id == business_id)
    ).scalar_one_or_none()
    if not product:
        raise NotFoundError("Product for this purchase no longer exists")

    remaining = take_stock(db, business_id=business_id, product_id=product.id, qty=purchase.quantity)
    if remaining is None:
        available = get_product_quantity(db, business_id, product.id) or 0
        raise NegativeStockError(
            product_id=product.id,
            product_name=product.name,
            requested=purchase.quantity,
            available=available,
        )

    add_ledger_entry(
        db,
        business_id=business_id,
        product_id=product.id,
        qty_delta=-purchase.quantity,
        reason="purchase_delete",
        reference_id=purchase.id,
        unit_cost=purchase.cost_per_unit,
    )
    db.delete(purchase)
    db.expire(product, ["quantity"])

    log_event(
        "stock_ledger",
        operation="delete_purchase",
        business_id=business_id,
        purchase_id=purchase.id,
        product_id=product.id,
        qty_delta=-purchase.quantity,
        stock_after=remaining,
    )
    return PurchaseResult(purchase=purchase, product=product, stock=remaining)


def adjust_stock(
    db: Session,
    *,
    business_id: str,
    product: Product,
    new_quantity: int,
    note: str | None = None,
) -> int:
    """Sets on-hand stock to an absolute value and records the difference as an adjustment."""
    if new_quantity < 0:
        raise ValueError("quantity cannot be negative")
    current = get_product_quantity(db, business_id, product.id)
    if current is None:
        raise NotFoundError("Product not found")

    delta = new_quantity - current
    if delta == 0:
        return current

    if delta > 0:
        stock = put_stock(db, business_id=business_id, product_id=product.id, qty=delta)
    else:
        stock = take_stock(db, business_id=business_id, product_id=product.id, qty=-delta)
    if stock is None:
        available = get_product_quantity(db, business_id, product.id) or 0
        raise InsufficientStockError(
            product_id=product.id,
            product_name=product.name,
            requested=-delta,
            available=available,
        )

    add_ledger_entry(
        db,
        business_id=business_id,
        product_id=product.id,
        qty_delta=delta,
        reason="adjustment",
        note=note,
        unit_cost=product.cost_per_unit,
    )
    db.expire(product, ["quantity"])
    log_event(
        "stock_ledger",
        operation="adjust_stock",
        business_id=business_id,
        product_id=product.id,
        qty_delta=delta,
        stock_after=stock,
    )
    return stock
