import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Protocol

from openai import OpenAI, OpenAIError
from sqlalchemy import select
from sqlalchemy.orm import Session

from stockbook.core.config import settings
from stockbook.core.errors import AIGatewayError
from stockbook.core.id_utils import new_id
from stockbook.core.money import to_money
from stockbook.core.observability import log_event
from stockbook.models.ai_insight import AIInsightLog
from stockbook.models.expense import Expense
from stockbook.models.product import Product
from stockbook.models.purchase import Purchase
from stockbook.models.sales import Sale
from stockbook.models.supplier import Supplier

SMART_BUY_INSIGHT_TYPE = "smart_buy"

SMART_BUY_PROMPT_TEMPLATE = (
    "As a business owner, I want to be provided with AI-driven suggestions on optimal product "
    "purchase timings and quantities, leveraging historical data on supplier information and "
    "product performance, so I can maximize my profitability.\n\n"
    "You have access to the following data:\n\n"
    "Daily Sales: {daily_sales}\n"
    "Expenses: {expenses}\n"
    "Product Purchases: {product_purchases}\n"
    "Product Catalog: {product_catalog}\n"
    "Supplier Info: {supplier_info}\n\n"
    "Based on this data, what are your suggestions for optimal product purchase timings and quantities?"
)

SMART_BUY_FIELDS = (
    "daily_sales",
    "expenses",
    "product_purchases",
    "product_catalog",
    "supplier_info",
)


@dataclass
class AIProviderResult:
    text: str
    prompt_tokens: int | None
    completion_tokens: int | None
    total_tokens: int | None
    estimated_cost_usd: float | None


@dataclass
class SmartBuyResult:
    suggestion: str
    used_fallback: bool
    log: AIInsightLog


class AIProvider(Protocol):
    provider: str
    model: str

    def complete(self, *, prompt: str) -> AIProviderResult:
        ...


def _estimate_cost(total_tokens: int | None) -> float | None:
    if total_tokens is None:
        return None
    return round((total_tokens / 1000) * settings.ai_cost_per_1k_tokens_usd, 6)


class StubAIProvider:
    """Offline provider: reads the catalog out of the prompt and suggests restocking low items."""

    provider = f"{settings.ai_vendor}:stub"

    def __init__(self, model: str):
        self.model = model

    def complete(self, *, prompt: str) -> AIProviderResult:
        text = self._suggest(self._extract_list(prompt, "Product Catalog"))
        prompt_tokens = self._estimate_tokens(prompt)
        completion_tokens = self._estimate_tokens(text)
        total_tokens = prompt_tokens + completion_tokens
        return AIProviderResult(
            text=text,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
            estimated_cost_usd=_estimate_cost(total_tokens),
        )

    @staticmethod
    def _estimate_tokens(text: str) -> int:
        return max(1, len(text) // 4)

    @staticmethod
    def _extract_list(prompt: str, label: str) -> list[dict[str, Any]]:
        match = re.search(rf"^{label}:\s*(.+)$", prompt, re.MULTILINE)
        if not match:
            return []
        try:
            parsed = json.loads(match.group(1))
        except json.JSONDecodeError:
            return []
        if not isinstance(parsed, list):
            return []
        return [item for item in parsed if isinstance(item, dict)]

    @staticmethod
    def _suggest(catalog: list[dict[str, Any]]) -> str:
        threshold = settings.low_stock_default_threshold
        low_items = []
        for item in catalog:
            try:
                quantity = int(item.get("quantity", 0))
            except (TypeError, ValueError):
                continue
            if quantity <= threshold:
                low_items.append((str(item.get("name", "unnamed product")), quantity))

        if not low_items:
            return (
                "- Stock levels look healthy; keep buying on your usual supplier days.\n"
                "- Review slow movers before the next purchase to avoid tying up cash."
            )

        lines = [
            f"- Restock {name}: {quantity} on hand; buy at least {threshold * 2 - quantity} units "
            "on the next supplier day."
            for name, quantity in sorted(low_items, key=lambda pair: pair[1])
        ]
        return "\n".join(lines)


class OpenAIProvider:
    provider = f"{settings.ai_vendor}:openai"

    def __init__(self, *, api_key: str, model: str, base_url: str | None = None):
        client_kwargs: dict[str, Any] = {
            "api_key": api_key,
            "timeout": settings.ai_timeout_seconds,
            "max_retries": 0,
        }
        if base_url:
            client_kwargs["base_url"] = base_url

        self._client = OpenAI(**client_kwargs)
        self.model = model

    def complete(self, *, prompt: str) -> AIProviderResult:
        try:
            completion = self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=settings.ai_temperature,
            )
        except OpenAIError as exc:
            raise AIGatewayError(str(exc)) from exc

        text = ""
        if completion.choices and completion.choices[0].message:
            text = completion.choices[0].message.content or ""

        usage = completion.usage
        prompt_tokens = usage.prompt_tokens if usage else None
        completion_tokens = usage.completion_tokens if usage else None
        total_tokens = usage.total_tokens if usage else None
        if total_tokens is None and prompt_tokens is not None and completion_tokens is not None:
            total_tokens = prompt_tokens + completion_tokens

        return AIProviderResult(
            text=text,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=total_tokens,
            estimated_cost_usd=_estimate_cost(total_tokens),
        )


def get_provider() -> AIProvider:
    provider_name = settings.ai_provider.strip().lower()
    if provider_name == "stub":
        return StubAIProvider(model=settings.ai_model)
    if provider_name == "openai":
        if not settings.openai_api_key:
            raise ValueError("OPENAI_API_KEY is required when AI_PROVIDER=openai")
        return OpenAIProvider(
            api_key=settings.openai_api_key,
            model=settings.ai_model,
            base_url=settings.openai_base_url,
        )
    raise ValueError(f"Unsupported ai_provider: {settings.ai_provider}")


def build_smart_buy_prompt(
    *,
    daily_sales: str,
    expenses: str,
    product_purchases: str,
    product_catalog: str,
    supplier_info: str,
) -> str:
    # str.format would choke on the braces inside JSON blobs, so substitute by name.
    values = {
        "daily_sales": daily_sales,
        "expenses": expenses,
        "product_purchases": product_purchases,
        "product_catalog": product_catalog,
        "supplier_info": supplier_info,
    }
    return re.sub(r"\{(\w+)\}", lambda match: values[match.group(1)], SMART_BUY_PROMPT_TEMPLATE)


def suggest_purchases(
    *,
    business_id: str,
    inputs: dict[str, str],
    source: str,
    provider: AIProvider | None = None,
) -> SmartBuyResult:
    """
    Send the Smart Buy prompt and return the model text verbatim.

    Any provider failure is logged and degrades to the configured fallback
    message; the caller always gets a suggestion string back.
    """
    prompt = build_smart_buy_prompt(**{field: inputs[field] for field in SMART_BUY_FIELDS})
    provider_name = f"{settings.ai_vendor}:{settings.ai_provider}"
    model_name = settings.ai_model

    try:
        active = provider or get_provider()
        provider_name, model_name = active.provider, active.model
        completion = active.complete(prompt=prompt)
    except (AIGatewayError, ValueError) as exc:
        log_event(
            "ai_gateway_failure",
            level=logging.WARNING,
            business_id=business_id,
            provider=provider_name,
            model=model_name,
            error=str(exc),
        )
        suggestion = settings.smart_buy_fallback_message
        log = _build_log(
            business_id=business_id,
            prompt=prompt,
            response=suggestion,
            used_fallback=True,
            provider=provider_name,
            model=model_name,
            completion=None,
            metadata_json={"source": source, "error": str(exc)},
        )
        return SmartBuyResult(suggestion=suggestion, used_fallback=True, log=log)

    log = _build_log(
        business_id=business_id,
        prompt=prompt,
        response=completion.text,
        used_fallback=False,
        provider=provider_name,
        model=model_name,
        completion=completion,
        metadata_json={"source": source},
    )
    return SmartBuyResult(suggestion=completion.text, used_fallback=False, log=log)


def _dumps(rows: list[dict[str, Any]]) -> str:
    return json.dumps(rows, default=str)


def load_smart_buy_inputs(db: Session, business_id: str) -> dict[str, str]:
    """
    Serialize the owner's stored data into the five prompt blobs.

    Raises ValueError when any of the five collections is empty; a suggestion
    needs sales, expenses, purchases, products and suppliers to work from.
    """
    sales = db.execute(
        select(Sale).where(Sale.business_id == business_id).order_by(Sale.sale_date.asc())
    ).scalars().all()
    expenses = db.execute(
        select(Expense).where(Expense.business_id == business_id).order_by(Expense.expense_date.asc())
    ).scalars().all()
    purchases = db.execute(
        select(Purchase, Product.name, Supplier.name)
        .join(Product, Product.id == Purchase.product_id)
        .join(Supplier, Supplier.id == Purchase.supplier_id)
        .where(Purchase.business_id == business_id)
        .order_by(Purchase.purchase_date.asc())
    ).all()
    products = db.execute(
        select(Product)
        .where(Product.business_id == business_id, Product.active.is_(True))
        .order_by(Product.name.asc())
    ).scalars().all()
    suppliers = db.execute(
        select(Supplier).where(Supplier.business_id == business_id).order_by(Supplier.name.asc())
    ).scalars().all()

    missing = [
        name
        for name, rows in (
            ("sales", sales),
            ("expenses", expenses),
            ("purchases", purchases),
            ("products", products),
            ("suppliers", suppliers),
        )
        if not rows
    ]
    if missing:
        raise ValueError(f"Not enough data to generate a suggestion; missing: {', '.join(missing)}")

    return {
        "daily_sales": _dumps(
            [
                {
                    "sale_date": sale.sale_date,
                    "product_name": sale.product_name,
                    "quantity": sale.quantity,
                    "amount": float(to_money(sale.amount)),
                }
                for sale in sales
            ]
        ),
        "expenses": _dumps(
            [
                {
                    "expense_date": expense.expense_date,
                    "category": expense.category,
                    "description": expense.description,
                    "amount": float(to_money(expense.amount)),
                }
                for expense in expenses
            ]
        ),
        "product_purchases": _dumps(
            [
                {
                    "purchase_date": purchase.purchase_date,
                    "product_name": product_name,
                    "supplier_name": supplier_name,
                    "quantity": purchase.quantity,
                    "total_cost": float(to_money(purchase.total_cost)),
                    "cost_per_unit": float(to_money(purchase.cost_per_unit)),
                }
                for purchase, product_name, supplier_name in purchases
            ]
        ),
        "product_catalog": _dumps(
            [
                {
                    "name": product.name,
                    "quantity": product.quantity,
                    "purchase_price": float(to_money(product.purchase_price)),
                    "selling_price": float(to_money(product.selling_price)),
                    "cost_per_unit": (
                        float(to_money(product.cost_per_unit))
                        if product.cost_per_unit is not None
                        else None
                    ),
                }
                for product in products
            ]
        ),
        "supplier_info": _dumps(
            [
                {
                    "name": supplier.name,
                    "product_types": supplier.product_types,
                    "purchase_days": supplier.purchase_days,
                }
                for supplier in suppliers
            ]
        ),
    }


def _build_log(
    *,
    business_id: str,
    prompt: str,
    response: str,
    used_fallback: bool,
    provider: str,
    model: str,
    completion: AIProviderResult | None,
    metadata_json: dict[str, Any] | None,
) -> AIInsightLog:
    return AIInsightLog(
        id=new_id(),
        business_id=business_id,
        insight_type=SMART_BUY_INSIGHT_TYPE,
        prompt=prompt,
        response=response,
        used_fallback=used_fallback,
        provider=provider,
        model=model,
        prompt_tokens=completion.prompt_tokens if completion else None,
        completion_tokens=completion.completion_tokens if completion else None,
        total_tokens=completion.total_tokens if completion else None,
        estimated_cost_usd=completion.estimated_cost_usd if completion else None,
        metadata_json=metadata_json,
    )
