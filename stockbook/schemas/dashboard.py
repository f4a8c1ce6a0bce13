from datetime import date

from pydantic import BaseModel


class DashboardRecentSaleOut(BaseModel):
    id: str
    product_name: str
    quantity: int
    amount: float
    sale_date: date


class DashboardDailySalesOut(BaseModel):
    day: date
    total: float


class DashboardSummaryOut(BaseModel):
    sales_total: float
    sales_count: int
    expense_total: float
    expense_count: int
    purchase_total: float
    purchase_count: int
    # operating expenses plus purchase costs; profit is sales_total minus this
    total_expenses: float
    profit: float
    margin: float
    margin_pct: str
    recent_sales: list[DashboardRecentSaleOut]
    daily_sales: list[DashboardDailySalesOut]
    start_date: date | None = None
    end_date: date | None = None
