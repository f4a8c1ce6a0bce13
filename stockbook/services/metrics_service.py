from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from stockbook.core.money import MONEY_QUANT, ZERO_MONEY, safe_ratio, to_money

Amount = Decimal | int | float | str


@dataclass(frozen=True)
class Metrics:
    revenue: Decimal
    expenses: Decimal
    profit: Decimal
    margin: Decimal

    @property
    def margin_pct(self) -> str:
        """Margin as a percentage string with two decimals, e.g. "25.00"."""
        if self.revenue == 0:
            return "0.00"
        pct = (self.profit / self.revenue * 100).quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)
        return f"{pct:.2f}"

    def to_dict(self) -> dict[str, float | str]:
        return {
            "revenue": float(self.revenue),
            "expenses": float(self.expenses),
            "profit": float(self.profit),
            "margin": float(self.margin),
            "margin_pct": self.margin_pct,
        }


def _total(values: Iterable[Amount]) -> Decimal:
    total = ZERO_MONEY
    for value in values:
        total += to_money(value)
    return to_money(total)


def compute_metrics(
    sales: Iterable[Amount],
    expenses: Iterable[Amount],
    purchases: Iterable[Amount],
) -> Metrics:
    """
    Revenue, expenses, profit and margin from already-fetched amounts.

    sales are sale amounts, expenses are expense amounts and purchases are
    purchase total costs; purchases count as expenses. margin is profit / revenue
    and is 0 when there is no revenue.
    """
    revenue = _total(sales)
    expense_total = to_money(_total(expenses) + _total(purchases))
    profit = to_money(revenue - expense_total)
    return Metrics(
        revenue=revenue,
        expenses=expense_total,
        profit=profit,
        margin=safe_ratio(profit, revenue),
    )
