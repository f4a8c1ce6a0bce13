from datetime import date, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockbook.core.config import settings
from stockbook.core.money import to_money
from stockbook.models.expense import Expense
from stockbook.models.purchase import Purchase
from stockbook.models.sales import Sale
from stockbook.services.metrics_service import compute_metrics


def _in_range(stmt, column, start_date: date | None, end_date: date | None):
    if start_date:
        stmt = stmt.where(column >= start_date)
    if end_date:
        stmt = stmt.where(column <= end_date)
    return stmt


def get_summary(
    db: Session,
    business_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
    today: date | None = None,
) -> dict:
    sale_amounts = db.execute(
        _in_range(
            select(Sale.amount).where(Sale.business_id == business_id),
            Sale.sale_date,
            start_date,
            end_date,
        )
    ).scalars().all()
    expense_amounts = db.execute(
        _in_range(
            select(Expense.amount).where(Expense.business_id == business_id),
            Expense.expense_date,
            start_date,
            end_date,
        )
    ).scalars().all()
    purchase_costs = db.execute(
        _in_range(
            select(Purchase.total_cost).where(Purchase.business_id == business_id),
            Purchase.purchase_date,
            start_date,
            end_date,
        )
    ).scalars().all()

    metrics = compute_metrics(sale_amounts, expense_amounts, purchase_costs)

    recent_rows = db.execute(
        _in_range(
            select(Sale).where(Sale.business_id == business_id),
            Sale.sale_date,
            start_date,
            end_date,
        )
        .order_by(Sale.sale_date.desc(), Sale.created_at.desc())
        .limit(settings.dashboard_recent_sales_limit)
    ).scalars().all()

    totals = metrics.to_dict()
    return {
        "sales_total": totals["revenue"],
        "sales_count": len(sale_amounts),
        "expense_total": float(to_money(sum(expense_amounts, to_money(0)))),
        "expense_count": len(expense_amounts),
        "purchase_total": float(to_money(sum(purchase_costs, to_money(0)))),
        "purchase_count": len(purchase_costs),
        "total_expenses": totals["expenses"],
        "profit": totals["profit"],
        "margin": totals["margin"],
        "margin_pct": totals["margin_pct"],
        "recent_sales": [
            {
                "id": row.id,
                "product_name": row.product_name,
                "quantity": row.quantity,
                "amount": float(to_money(row.amount)),
                "sale_date": row.sale_date,
            }
            for row in recent_rows
        ],
        "daily_sales": get_daily_sales(db, business_id, end=end_date or today or date.today()),
        "start_date": start_date,
        "end_date": end_date,
    }


def get_daily_sales(
    db: Session, business_id: str, *, end: date, days: int | None = None
) -> list[dict]:
    """Sales totals per day for the `days` days ending on `end`, zero-filled, oldest first."""
    days = days or settings.dashboard_daily_series_days
    start = end - timedelta(days=days - 1)
    rows = db.execute(
        select(Sale.sale_date, func.coalesce(func.sum(Sale.amount), 0))
        .where(
            Sale.business_id == business_id,
            Sale.sale_date >= start,
            Sale.sale_date <= end,
        )
        .group_by(Sale.sale_date)
    ).all()
    totals = {sale_day: to_money(total) for sale_day, total in rows}

    series = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        series.append({"day": day, "total": float(totals.get(day, to_money(0)))})
    return series
