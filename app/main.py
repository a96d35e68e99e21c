# =============================================================================
# app/main.py - FastAPI Application Entry Point
# =============================================================================
# This is the main entry point for the Veriflo API.
# It configures the FastAPI application with middleware, routers, and handlers.
#
# Usage:
#   uvicorn app.main:app --reload --port 3001
# =============================================================================

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.auth import routes as auth_routes
from app.config import settings
from app.exceptions import (
    VerifloException,
    validation_exception_handler,
    veriflo_exception_handler,
)
from app.middleware import RequestIdMiddleware
from app.middleware.request_id import REQUEST_ID_HEADER
from app.observability import configure_logging, init_sentry
from app.routers import admin, analyze, chat, credits, cron, enrich, extract, health, payment, workflows

configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Runs on startup and shutdown:
    - Startup: Initialize error tracking, log config
    - Shutdown: Log
    """
    # Startup
    logger.info(f"Starting Veriflo API in {settings.ENVIRONMENT} mode")
    logger.info(f"CORS origins: {settings.cors_origins_list}")
    logger.info(f"Credit store: {settings.CREDIT_STORE_BACKEND}")
    init_sentry()

    yield

    # Shutdown
    logger.info("Shutting down Veriflo API")


# Create FastAPI application
app = FastAPI(
    title="Veriflo API",
    description="""
## Document Extraction & Spreadsheet AI

Veriflo pulls structured fields out of invoices and receipts and answers
questions about spreadsheets. Every AI operation is paid for in credits.

### Credits

| Operation | Cost |
|-----------|------|
| Extraction | 1 credit + 1 document |
| Analysis | 2 credits |
| Chat message | 1 credit |
| Workflow run | 5 credits |
| Enrichment | 25 credits per 50 unique entities |

Credits are charged before the work starts and refunded if it fails.
Balances reset to the plan allotment every 30 days.

### Errors

Errors carry a machine-readable `code` and a `suggestion`:

```json
{"detail": "Insufficient credits. Required 2, available 1.", "code": "INSUFFICIENT_CREDITS",
 "details": {"required": 2, "available": 1}}
```
""",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
    openapi_tags=[
        {"name": "Auth", "description": "Profile and token checks for the signed-in user"},
        {"name": "Credits", "description": "Balance, plan and document quota"},
        {"name": "Extract", "description": "Invoice and receipt field extraction"},
        {"name": "Analyze", "description": "Spreadsheet analysis cards"},
        {"name": "Enrich", "description": "Entity enrichment with web search"},
        {"name": "Chat", "description": "Streaming spreadsheet assistant"},
        {"name": "Workflows", "description": "Workflow run billing"},
        {"name": "Payment", "description": "Razorpay checkout"},
        {"name": "Admin", "description": "Admin panel (admins only)"},
        {"name": "Cron", "description": "Scheduled job triggers"},
        {"name": "Health", "description": "API health and readiness checks"},
    ],
)


# =============================================================================
# Middleware
# =============================================================================

# CORS middleware - allows cross-origin requests
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list if settings.is_production else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=[REQUEST_ID_HEADER, "Retry-After"],
)

# Added last so it runs first: every response, CORS preflight included, gets an id
app.add_middleware(RequestIdMiddleware)


# =============================================================================
# Exception Handlers
# =============================================================================

@app.exception_handler(VerifloException)
async def handle_veriflo_exception(request: Request, exc: VerifloException):
    """Handle custom Veriflo exceptions."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code}: {exc.message}")
    return await veriflo_exception_handler(request, exc)


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError):
    return await validation_exception_handler(request, exc)


@app.exception_handler(Exception)
async def handle_general_exception(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unexpected error: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "detail": "An unexpected error occurred",
            "code": "INTERNAL_ERROR",
        }
    )


# =============================================================================
# Routers
# =============================================================================

# Authentication endpoints (router carries the /auth prefix)
app.include_router(auth_routes.router, prefix="/api/v1")

app.include_router(health.router, prefix="/api/v1", tags=["Health"])
app.include_router(credits.router, prefix="/api/v1/credits", tags=["Credits"])
app.include_router(extract.router, prefix="/api/v1/extract", tags=["Extract"])
app.include_router(analyze.router, prefix="/api/v1/analyze", tags=["Analyze"])
app.include_router(enrich.router, prefix="/api/v1/enrich", tags=["Enrich"])
app.include_router(chat.router, prefix="/api/v1/chat", tags=["Chat"])
app.include_router(workflows.router, prefix="/api/v1/workflows", tags=["Workflows"])
app.include_router(payment.router, prefix="/api/v1/payment", tags=["Payment"])
app.include_router(admin.router, prefix="/api/v1/admin", tags=["Admin"])
app.include_router(cron.router, prefix="/api/v1/cron", tags=["Cron"])


# =============================================================================
# Root Endpoint
# =============================================================================

@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint - returns API info.
    """
    return {
        "name": "Veriflo API",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/v1/health",
    }
