from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

import stockledger.models  # noqa: F401
from stockledger.core.config import settings
from stockledger.core.errors import StockLedgerError
from stockledger.core.observability import (
    http_exception_handler,
    log_event,
    request_logging_middleware,
    setup_observability,
    stock_ledger_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from stockledger.db.session import engine
from stockledger.routers import auth, inventory, locations, requisitions, transfers

API_DESCRIPTION = """
Tracks on-hand quantities for stocked items. Every quantity change is written
once to an append-only ledger, through a single stock gateway.

Getting a token in Swagger:

1. `POST /auth/register` (the first account is an admin) or `POST /auth/login`.
2. **Authorize** with your email or username and password (token URL `/auth/token`).
3. Admins adjust stock, review requisitions and book transfers; staff raise requisitions.
"""

OPENAPI_TAGS = [
    {"name": "health", "description": "Liveness and readiness probes."},
    {"name": "auth", "description": "Accounts and bearer tokens."},
    {"name": "inventory", "description": "Stock items, adjustments and the movement ledger."},
    {"name": "requisitions", "description": "Staff stock requests and admin review."},
    {"name": "stock-transfers", "description": "Paired out/in movements between locations."},
    {"name": "locations", "description": "Sites that stock moves between."},
]

LOCAL_ORIGIN_REGEX = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"


def _configure_cors(app: FastAPI) -> None:
    origins = settings.cors_origins
    wildcard = "*" in origins
    origin_regex = settings.cors_origin_regex
    if origin_regex is None and settings.is_local:
        origin_regex = LOCAL_ORIGIN_REGEX
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if wildcard else origins,
        allow_origin_regex=origin_regex,
        allow_credentials=not wildcard,
        allow_methods=["*"],
        allow_headers=["*"],
    )


app = FastAPI(
    title=settings.app_name,
    version="0.1.0",
    description=API_DESCRIPTION,
    openapi_tags=OPENAPI_TAGS,
    swagger_ui_parameters={"persistAuthorization": True, "displayRequestDuration": True},
)

setup_observability()
app.middleware("http")(request_logging_middleware)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(StockLedgerError, stock_ledger_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)
_configure_cors(app)

for router_module in (auth, inventory, requisitions, transfers, locations):
    app.include_router(router_module.router)


@app.get("/", tags=["health"], summary="Service links")
def root():
    return {"app": settings.app_name, "docs": "/docs", "health": "/health", "ready": "/ready"}


@app.get("/health", tags=["health"], summary="Liveness probe")
def health():
    return {"ok": True}


@app.get("/ready", tags=["health"], summary="Readiness probe (database reachable)")
def ready():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        log_event("readiness.failed", error=str(exc))
        return {"ok": False}
    return {"ok": True}
