import logging
import sys
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from src.adapters.sqlite.migrator import migrate
from src.api.deps import get_settings
from src.app_shell.config import validate_ops_rules
from src.domain.errors import MarketError, ValidationFailure
from src.rules.loader import load_rules

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler for startup/shutdown."""
    settings = get_settings()

    # Load rules, validate ops and migrate storage on startup (fail-fast)
    try:
        rules = load_rules(settings.rules_path)
        validate_ops_rules(rules, settings.data_dir)
        applied = migrate(settings.db_path)
        print(f"INFO: Rules loaded from {settings.rules_path}")
        if applied:
            print(f"INFO: Applied migrations: {', '.join(applied)}")
    except Exception as e:
        print(f"CRITICAL: Startup failed: {e}", file=sys.stderr)
        sys.exit(1)

    yield


app = FastAPI(
    title="Rule Market API",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)


@app.exception_handler(MarketError)
async def market_error_handler(request: Request, exc: MarketError) -> JSONResponse:
    body: dict[str, Any] = {"success": False, "code": exc.code, "message": exc.message}
    if isinstance(exc, ValidationFailure) and exc.field:
        body["field"] = exc.field
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=body)


# --- Routers ---
from src.api.routes import (  # noqa: E402
    admin,
    purchases,
    reviews,
    rules,
    transactions,
)

app.include_router(rules.router, prefix="/api/rules", tags=["Rules"])
app.include_router(transactions.router, prefix="/api/transactions", tags=["Transactions"])
app.include_router(purchases.router, prefix="/api/purchases", tags=["Purchases"])
app.include_router(reviews.router, prefix="/api/reviews", tags=["Reviews"])
app.include_router(admin.router, prefix="/api/admin", tags=["Admin"])


# CORS (Allow Frontend)
origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health")
def health_check() -> dict[str, Any]:
    """Health check endpoint."""
    return {"status": "ok", "service": "api"}
