from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from stockbook.core.api_docs import error_responses
from stockbook.core.deps import get_db
from stockbook.core.security_current import get_current_business, get_current_user
from stockbook.models.ai_insight import AIInsightLog
from stockbook.models.business import Business
from stockbook.models.user import User
from stockbook.schemas.ai import (
    AITokenUsageOut,
    SmartBuyGenerateOut,
    SmartBuyLogListOut,
    SmartBuyLogOut,
    SmartBuySuggestionIn,
    SmartBuySuggestionOut,
)
from stockbook.schemas.common import PaginationMeta
from stockbook.services.ai_service import (
    SMART_BUY_INSIGHT_TYPE,
    load_smart_buy_inputs,
    suggest_purchases,
)
from stockbook.services.audit_service import log_audit_event

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post(
    "/smart-buy",
    response_model=SmartBuySuggestionOut,
    summary="Get Smart Buy purchase suggestions",
    description=(
        "Substitutes the five text fields into the Smart Buy prompt and returns the model's "
        "text unchanged. If the AI provider fails, a fixed apology message is returned instead."
    ),
    responses={
        200: {
            "description": "Suggestion text",
            "content": {
                "application/json": {
                    "example": {
                        "suggestion": "Restock Olive Oil 1L on Monday: order 12 units from Fresh Farms Ltd."
                    }
                }
            },
        },
        **error_responses(401, 422, 500),
    },
)
def smart_buy(
    payload: SmartBuySuggestionIn,
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
):
    result = suggest_purchases(
        business_id=biz.id,
        inputs=payload.model_dump(),
        source="request",
    )
    db.add(result.log)
    db.commit()
    return SmartBuySuggestionOut(suggestion=result.suggestion)


@router.post(
    "/smart-buy/generate",
    response_model=SmartBuyGenerateOut,
    summary="Generate Smart Buy suggestions from stored data",
    description=(
        "Builds the five prompt inputs from the business's sales, expenses, purchases, "
        "products and suppliers. Returns 400 when any of them is empty."
    ),
    responses=error_responses(400, 401, 422, 500),
)
def smart_buy_generate(
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
    actor: User = Depends(get_current_user),
):
    try:
        inputs = load_smart_buy_inputs(db, biz.id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    result = suggest_purchases(business_id=biz.id, inputs=inputs, source="stored_data")
    db.add(result.log)
    log_audit_event(
        db,
        business_id=biz.id,
        actor_user_id=actor.id,
        action="ai.smart_buy.generate",
        target_type="ai_insight_log",
        target_id=result.log.id,
        metadata_json={"used_fallback": result.used_fallback, "model": result.log.model},
    )
    db.commit()
    db.refresh(result.log)

    return SmartBuyGenerateOut(
        id=result.log.id,
        suggestion=result.suggestion,
        provider=result.log.provider,
        model=result.log.model,
        used_fallback=result.used_fallback,
        token_usage=AITokenUsageOut(
            prompt_tokens=result.log.prompt_tokens,
            completion_tokens=result.log.completion_tokens,
            total_tokens=result.log.total_tokens,
        ),
        estimated_cost_usd=result.log.estimated_cost_usd,
    )


@router.get(
    "/smart-buy/history",
    response_model=SmartBuyLogListOut,
    summary="List past Smart Buy suggestions",
    responses=error_responses(401, 422, 500),
)
def smart_buy_history(
    limit: int = Query(default=20, ge=1, le=100, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Pagination offset"),
    db: Session = Depends(get_db),
    biz: Business = Depends(get_current_business),
):
    base_filter = (
        AIInsightLog.business_id == biz.id,
        AIInsightLog.insight_type == SMART_BUY_INSIGHT_TYPE,
    )
    total = int(db.execute(select(func.count(AIInsightLog.id)).where(*base_filter)).scalar_one())
    rows = db.execute(
        select(AIInsightLog)
        .where(*base_filter)
        .order_by(AIInsightLog.created_at.desc())
        .offset(offset)
        .limit(limit)
    ).scalars().all()

    items = [
        SmartBuyLogOut(
            id=row.id,
            suggestion=row.response,
            provider=row.provider,
            model=row.model,
            used_fallback=bool(row.used_fallback),
            source=(row.metadata_json or {}).get("source"),
            created_at=row.created_at,
        )
        for row in rows
    ]
    count = len(items)
    return SmartBuyLogListOut(
        items=items,
        pagination=PaginationMeta(
            total=total,
            limit=limit,
            offset=offset,
            count=count,
            has_next=(offset + count) < total,
        ),
    )
