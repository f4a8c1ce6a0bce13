from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from stockbook.core.config import settings
from stockbook.core.errors import BookkeepingError
from stockbook.core.observability import (
    bookkeeping_exception_handler,
    database_exception_handler,
    http_exception_handler,
    log_event,
    request_logging_middleware,
    setup_observability,
    unhandled_exception_handler,
    validation_exception_handler,
)
from stockbook.db.session import engine
from stockbook.routers import ai, audit, auth, dashboard, expenses, inventory, products, purchases, sales, suppliers

API_VERSION = "0.1.0"

app = FastAPI(
    title=settings.app_name,
    version=API_VERSION,
    description=(
        "Bookkeeping API for small shops: products, suppliers, purchases, sales, "
        "expenses, stock ledger and Smart Buy suggestions.\n\n"
        "Swagger quick test flow:\n"
        "1. Call `POST /auth/register` or `POST /auth/login`.\n"
        "2. Click **Authorize** and use your email/username + password "
        "(OAuth token URL: `/auth/token`).\n"
        "3. Test protected endpoints (`/products`, `/purchases`, `/sales`, `/expenses`, `/dashboard`)."
    ),
    swagger_ui_parameters={
        "persistAuthorization": True,
        "displayRequestDuration": True,
        "defaultModelsExpandDepth": 1,
    },
    openapi_tags=[
        {"name": "health", "description": "Service status and quick links."},
        {"name": "auth", "description": "User authentication, profile and token lifecycle."},
        {"name": "products", "description": "Product catalog, pricing and cost basis."},
        {"name": "suppliers", "description": "Supplier directory."},
        {"name": "purchases", "description": "Stock purchases from suppliers."},
        {"name": "sales", "description": "Sales capture and sales history."},
        {"name": "expenses", "description": "Operating expenses and the combined expense feed."},
        {"name": "inventory", "description": "Stock ledger, stock levels and low-stock alerts."},
        {"name": "dashboard", "description": "Revenue, profit and margin summary."},
        {"name": "ai", "description": "Smart Buy purchase suggestions."},
        {"name": "audit", "description": "Audit trail of every mutation."},
    ],
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(BookkeepingError, bookkeeping_exception_handler)
app.add_exception_handler(SQLAlchemyError, database_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

CORS_METHODS = ["GET", "POST", "PATCH", "DELETE", "OPTIONS"]
LOCAL_ORIGIN_REGEX = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"


def _cors_options() -> dict:
    origins = settings.cors_origins or ["http://localhost:3000"]
    if "*" in origins:
        # Browsers refuse credentials with a wildcard origin.
        return {"allow_origins": ["*"], "allow_credentials": False}

    origin_regex = settings.cors_origin_regex
    if origin_regex is None and settings.env.lower().strip() in {"dev", "development", "staging", "stage"}:
        origin_regex = LOCAL_ORIGIN_REGEX
    return {"allow_origins": origins, "allow_origin_regex": origin_regex, "allow_credentials": True}


app.add_middleware(
    CORSMiddleware,
    allow_methods=CORS_METHODS,
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
    expose_headers=["X-Request-ID", "X-API-Timeout-Hint-Ms"],
    **_cors_options(),
)

for module in (auth, products, suppliers, purchases, sales, expenses, inventory, dashboard, ai, audit):
    app.include_router(module.router)


@app.get("/", tags=["health"])
def root():
    return {
        "app": settings.app_name,
        "version": API_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
        "health": "/health",
        "ready": "/ready",
    }


@app.get("/health", tags=["health"])
def health():
    return {"ok": True}


@app.get("/ready", tags=["health"])
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        log_event("readiness_failed", error=str(exc))
        return JSONResponse(status_code=503, content={"ok": False, "database": "unreachable"})
    return {"ok": True, "database": "ok"}
