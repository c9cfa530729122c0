"""
Solar EPC Quotation Engine API v1.0
FastAPI backend with async SQLAlchemy (PostgreSQL / asyncpg): catalog,
auto-BOM generation and versioned quotation pricing.
"""
import os
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from app import config
from app.services.logging_config import setup_logging
from app.services.middleware import RequestTimingMiddleware

setup_logging(level=config.LOG_LEVEL, json_output=config.LOG_JSON)
logger = logging.getLogger("solar-epc-api")

if not os.getenv("DATABASE_URL"):
    logger.warning("MISSING env var: DATABASE_URL — using local development default")


@asynccontextmanager
async def lifespan(app: FastAPI):
    from app.db import init_db, engine
    await init_db()
    yield
    await engine.dispose()


app = FastAPI(
    title="Solar EPC Quotation Engine API",
    version="1.0.0",
    description="Catalog valuation, auto-BOM and versioned quotation pricing for rooftop solar EPC",
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Security Headers Middleware
# ---------------------------------------------------------------------------
class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds standard security headers to every response."""
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


# ---------------------------------------------------------------------------
# CORS: restricted to allowed origins from env
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-Requested-With"],
)
app.add_middleware(SecurityHeadersMiddleware)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

# Routers
from app.api.catalog_routes import router as catalog_router
from app.api.quotation_routes import router as quotation_router

app.include_router(catalog_router)
app.include_router(quotation_router)


@app.get("/health")
async def health_check():
    return {
        "status": "active",
        "version": "1.0.0",
        "database": "postgresql" if "postgresql" in config.DATABASE_URL else config.DATABASE_URL.split(":", 1)[0],
    }
