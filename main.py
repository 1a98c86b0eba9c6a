"""
SHOTCOACH Backend API
Adaptive Basketball Shooting-Form Analysis

FastAPI application entry point. Shot videos are analysed on worker
threads, picking the heaviest analysis tier the host and network allow.
"""

import logging
import sys
import time
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

# ============================================
# Configure Root Logger First
# ============================================
logging.basicConfig(
    level=logging.DEBUG,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[logging.StreamHandler(sys.stdout)]
)

# Service routers
from analysis_service.router import router as analysis_router
from feedback_service.router import router as feedback_router

# Core utilities
from core.config import settings
from core.database import init_firebase, is_mock_mode
from core.threading import analysis_worker_pool, strategy_worker_pool
from analysis_service.pipeline import get_analysis_pipeline
from shared.utils import setup_logger

# Setup logging
logger = setup_logger("shotcoach.main", level=logging.DEBUG)
request_logger = setup_logger("shotcoach.requests", level=logging.DEBUG)


# ============================================
# Request Logging Middleware
# ============================================

class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all incoming requests and responses with timing."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        client_ip = request.client.host if request.client else "unknown"
        query_string = f"?{request.url.query}" if request.url.query else ""

        request_logger.info(f"➡️  {request.method} {request.url.path}{query_string}")
        request_logger.debug(f"    Client: {client_ip}")

        try:
            response = await call_next(request)

            process_time = (time.time() - start_time) * 1000

            if response.status_code < 300:
                status_emoji = "✅"
            elif response.status_code < 400:
                status_emoji = "↪️"
            elif response.status_code < 500:
                status_emoji = "⚠️"
            else:
                status_emoji = "❌"

            request_logger.info(
                f"{status_emoji} {request.method} {request.url.path} → {response.status_code} ({process_time:.1f}ms)"
            )

            return response
        except Exception as e:
            process_time = (time.time() - start_time) * 1000
            request_logger.error(f"💥 {request.method} {request.url.path} → ERROR: {type(e).__name__}: {str(e)} ({process_time:.1f}ms)")
            request_logger.error(traceback.format_exc())
            raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown."""
    # ===== STARTUP =====
    logger.info("🚀 SHOTCOACH API starting up...")

    if init_firebase():
        logger.info("🔥 Firebase connected")
    else:
        logger.warning("⚠️ Running in MOCK MODE (no Firebase)")

    # Capability assessment and tier selection happen once per process
    config = get_analysis_pipeline().initialize()
    logger.info(
        f"🏀 Processing tier: {config.selected_tier.value} "
        f"(device tier: {config.device_capabilities.tier.value})"
    )

    logger.info("✅ SHOTCOACH API ready!")

    yield  # Application runs here

    # ===== SHUTDOWN =====
    logger.info("👋 SHOTCOACH API shutting down...")

    analysis_worker_pool.shutdown(wait=True)
    strategy_worker_pool.shutdown(wait=True)

    logger.info("✅ Shutdown complete")


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Adaptive basketball shooting-form analysis and coaching feedback",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# CORS configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)


@app.get("/health")
async def health_check():
    """Health check endpoint for monitoring."""
    return {
        "status": "healthy",
        "service": "shotcoach-api",
        "firebase": "connected" if not is_mock_mode() else "mock",
        "processing_tier": get_analysis_pipeline().config.selected_tier.value,
    }


@app.get("/stats")
async def get_stats():
    """Get service statistics."""
    return {
        "analysis_pool": analysis_worker_pool.get_stats(),
        "strategy_pool": strategy_worker_pool.get_stats(),
    }


# Include service routers
app.include_router(analysis_router, prefix="/api/analysis", tags=["Analysis Service"])
app.include_router(feedback_router, prefix="/api/feedback", tags=["Feedback Service"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
