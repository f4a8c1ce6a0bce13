from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from stockbook.core.api_docs import error_responses
from stockbook.core.deps import get_db
from stockbook.core.money import to_money
from stockbook.core.security_current import get_current_business, get_current_user
from stockbook.models.business import Business
from stockbook.models.expense import Expense
from stockbook.models.user import User
from stockbook.schemas.common import PaginationMeta
from stockbook.schemas.expense import (
    ExpenseCreate,
    ExpenseCreateOut,
    ExpenseFeedOut,
    ExpenseListOut,
    ExpenseOut,
    ExpenseUpdate,
)
from stockbook.services import expense_service

router = APIRouter(prefix="/expenses", tags=["expenses"])


def _expense_out(expense: Expense) -> ExpenseOut:
    return ExpenseOut(
        id=expense.id,
        category=expense.category,
        description=expense.description,
        amount=float(to_money(expense.amount)),
        expense_date=expense.expense_date,
        created_at=expense.created_at,
    )


def _page(total: int, limit: int, offset: int, count: int) -> PaginationMeta:
    return PaginationMeta(
        total=total,
        limit=limit,
        offset=offset,
        count=count,
        has_next=(offset + count) < total,
    )


@router.post(
    "",
    response_model=ExpenseCreateOut,
    summary="Create expense",
    description="Records a non-stock outgoing such as rent or fuel. Stock bought for resale goes through /purchases.",
    responses=error_responses(400, 401, 422, 500),
)
def create_expense(
    payload: ExpenseCreate,
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
    actor: User = Depends(get_current_user),
):
    expense = expense_service.record_expense(
        db,
        business_id=biz.id,
        actor_user_id=actor.id,
        category=payload.category,
        amount=payload.amount,
        expense_date=payload.expense_date,
        description=payload.description,
    )
    db.commit()
    return ExpenseCreateOut(id=expense.id)


@router.patch(
    "/{expense_id}",
    response_model=ExpenseOut,
    summary="Update expense",
    responses=error_responses(400, 401, 404, 422, 500),
)
def update_expense(
    expense_id: str,
    payload: ExpenseUpdate,
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
    actor: User = Depends(get_current_user),
):
    expense = expense_service.get_expense(db, biz.id, expense_id)
    try:
        expense_service.update_expense(
            db,
            expense,
            actor_user_id=actor.id,
            changes=payload.model_dump(exclude_unset=True),
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    db.commit()
    db.refresh(expense)
    return _expense_out(expense)


@router.delete(
    "/{expense_id}",
    summary="Delete expense",
    responses=error_responses(401, 404, 500),
)
def delete_expense(
    expense_id: str,
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
    actor: User = Depends(get_current_user),
):
    expense = expense_service.get_expense(db, biz.id, expense_id)
    expense_service.delete_expense(db, expense, actor_user_id=actor.id)
    db.commit()
    return {"ok": True, "id": expense_id}


@router.get(
    "",
    response_model=ExpenseListOut,
    summary="List expenses",
    description="Expenses only, newest `expense_date` first. See /expenses/feed for expenses and purchases together.",
    responses=error_responses(400, 401, 422, 500),
)
def list_expenses(
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD)"),
    category: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
):
    try:
        total, rows = expense_service.list_expenses(
            db,
            biz.id,
            category=category,
            start_date=start_date,
            end_date=end_date,
            limit=limit,
            offset=offset,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    items = [_expense_out(row) for row in rows]
    return ExpenseListOut(
        pagination=_page(total, limit, offset, len(items)),
        start_date=start_date,
        end_date=end_date,
        items=items,
    )


@router.get(
    "/feed",
    response_model=ExpenseFeedOut,
    summary="Expenses and purchases feed",
    description=(
        "Operating expenses and stock purchases in one list, newest first. Purchase "
        "entries are read-only here and must be deleted through /purchases."
    ),
    responses=error_responses(400, 401, 422, 500),
)
def expense_feed(
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD)"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
):
    try:
        entries = expense_service.build_expense_feed(
            db, biz.id, start_date=start_date, end_date=end_date
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    page = entries[offset : offset + limit]
    return ExpenseFeedOut(
        pagination=_page(len(entries), limit, offset, len(page)),
        start_date=start_date,
        end_date=end_date,
        total_amount=expense_service.feed_total(entries),
        items=page,
    )
