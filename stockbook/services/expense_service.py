from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockbook.core.errors import NotFoundError
from stockbook.core.id_utils import new_id
from stockbook.core.money import ZERO_MONEY, to_money
from stockbook.models.expense import Expense
from stockbook.models.product import Product
from stockbook.models.purchase import Purchase
from stockbook.services.audit_service import log_audit_event


def check_date_range(start_date: date | None, end_date: date | None) -> None:
    if start_date and end_date and end_date < start_date:
        raise ValueError("end_date cannot be before start_date")


def get_expense(db: Session, business_id: str, expense_id: str) -> Expense:
    expense = db.execute(
        select(Expense).where(Expense.id == expense_id, Expense.business_id == business_id)
    ).scalar_one_or_none()
    if expense is None:
        raise NotFoundError("Expense not found")
    return expense


def record_expense(
    db: Session,
    *,
    business_id: str,
    actor_user_id: str,
    category: str,
    amount: Decimal,
    expense_date: date,
    description: str | None = None,
) -> Expense:
    expense = Expense(
        id=new_id(),
        business_id=business_id,
        category=category,
        description=description,
        amount=to_money(amount),
        expense_date=expense_date,
    )
    db.add(expense)
    log_audit_event(
        db,
        business_id=business_id,
        actor_user_id=actor_user_id,
        action="expense.create",
        target_type="expense",
        target_id=expense.id,
        metadata_json={"category": category, "amount": float(expense.amount)},
    )
    return expense


def _audit_value(value: object) -> object:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, date):
        return value.isoformat()
    return value


def update_expense(
    db: Session,
    expense: Expense,
    *,
    actor_user_id: str,
    changes: dict,
) -> Expense:
    """Applies the sent fields. ``description`` may be sent as null to clear it."""
    applied: dict[str, object] = {}
    for field in ("category", "amount", "expense_date", "description"):
        if field not in changes:
            continue
        value = changes[field]
        if value is None and field != "description":
            continue
        if field == "amount":
            value = to_money(value)
        setattr(expense, field, value)
        applied[field] = value

    if not applied:
        raise ValueError("No update fields provided")

    log_audit_event(
        db,
        business_id=expense.business_id,
        actor_user_id=actor_user_id,
        action="expense.update",
        target_type="expense",
        target_id=expense.id,
        metadata_json={key: _audit_value(value) for key, value in applied.items()},
    )
    return expense


def delete_expense(db: Session, expense: Expense, *, actor_user_id: str) -> None:
    log_audit_event(
        db,
        business_id=expense.business_id,
        actor_user_id=actor_user_id,
        action="expense.delete",
        target_type="expense",
        target_id=expense.id,
        metadata_json={"category": expense.category, "amount": float(to_money(expense.amount))},
    )
    db.delete(expense)


def list_expenses(
    db: Session,
    business_id: str,
    *,
    category: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[int, list[Expense]]:
    check_date_range(start_date, end_date)
    filters = [Expense.business_id == business_id]
    if category:
        filters.append(Expense.category == category)
    if start_date:
        filters.append(Expense.expense_date >= start_date)
    if end_date:
        filters.append(Expense.expense_date <= end_date)

    total = db.execute(select(func.count(Expense.id)).where(*filters)).scalar_one()
    rows = db.execute(
        select(Expense)
        .where(*filters)
        .order_by(Expense.expense_date.desc(), Expense.created_at.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()
    return int(total), list(rows)


def build_expense_feed(
    db: Session,
    business_id: str,
    *,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[dict]:
    """
    Expenses and purchases merged into one list, newest first.

    Each entry carries `kind` ("expense" or "purchase"). Purchase entries are
    read-only here; they change stock and must be deleted through /purchases.
    """
    check_date_range(start_date, end_date)
    expense_stmt = select(Expense).where(Expense.business_id == business_id)
    purchase_stmt = (
        select(Purchase, Product.name)
        .join(Product, Product.id == Purchase.product_id)
        .where(Purchase.business_id == business_id)
    )
    if start_date:
        expense_stmt = expense_stmt.where(Expense.expense_date >= start_date)
        purchase_stmt = purchase_stmt.where(Purchase.purchase_date >= start_date)
    if end_date:
        expense_stmt = expense_stmt.where(Expense.expense_date <= end_date)
        purchase_stmt = purchase_stmt.where(Purchase.purchase_date <= end_date)

    entries: list[dict] = []
    for expense in db.execute(expense_stmt).scalars().all():
        entries.append(
            {
                "kind": "expense",
                "id": expense.id,
                "entry_date": expense.expense_date,
                "category": expense.category,
                "description": expense.description,
                "amount": float(to_money(expense.amount)),
                "deletable": True,
                "_created_at": expense.created_at,
            }
        )
    for purchase, product_name in db.execute(purchase_stmt).all():
        entries.append(
            {
                "kind": "purchase",
                "id": purchase.id,
                "entry_date": purchase.purchase_date,
                "category": "purchase",
                "description": f"{purchase.quantity} x {product_name}",
                "amount": float(to_money(purchase.total_cost)),
                "product_id": purchase.product_id,
                "supplier_id": purchase.supplier_id,
                "quantity": purchase.quantity,
                "deletable": False,
                "_created_at": purchase.created_at,
            }
        )

    entries.sort(key=lambda entry: (entry["entry_date"], str(entry["_created_at"] or "")), reverse=True)
    for entry in entries:
        entry.pop("_created_at")
    return entries


def feed_total(entries: list[dict]) -> float:
    total = ZERO_MONEY
    for entry in entries:
        total += to_money(entry["amount"])
    return float(to_money(total))
