from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from stockbook.core.api_docs import error_responses
from stockbook.core.deps import get_db
from stockbook.core.security_current import get_current_business
from stockbook.models.business import Business
from stockbook.schemas.dashboard import DashboardSummaryOut
from stockbook.services.dashboard_service import get_summary

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get(
    "/summary",
    response_model=DashboardSummaryOut,
    summary="Get KPI summary",
    description=(
        "Revenue, total expenses (operating expenses plus purchase costs, also "
        "reported separately), profit and margin "
        "for the optional date range, with the five most recent sales and a seven-day "
        "daily sales series."
    ),
    responses={
        200: {
            "description": "Dashboard summary",
            "content": {
                "application/json": {
                    "example": {
                        "sales_total": 100.0,
                        "sales_count": 1,
                        "expense_total": 50.0,
                        "expense_count": 2,
                        "purchase_total": 50.0,
                        "purchase_count": 1,
                        "total_expenses": 100.0,
                        "profit": 0.0,
                        "margin": 0.0,
                        "margin_pct": "0.00",
                        "recent_sales": [
                            {
                                "id": "sale-id",
                                "product_name": "Olive Oil 1L",
                                "quantity": 4,
                                "amount": 100.0,
                                "sale_date": "2026-03-01",
                            }
                        ],
                        "daily_sales": [{"day": "2026-03-01", "total": 100.0}],
                        "start_date": None,
                        "end_date": None,
                    }
                }
            },
        },
        **error_responses(400, 401, 422, 500),
    },
)
def summary(
    start_date: date | None = Query(default=None, description="Filter from date (YYYY-MM-DD)"),
    end_date: date | None = Query(default=None, description="Filter to date (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
):
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date cannot be before start_date")
    return get_summary(db, biz.id, start_date=start_date, end_date=end_date)
