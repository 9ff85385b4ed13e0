"""
Realtime Gateway - FastAPI Application
实时转写翻译中继
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from gateway.__version__ import __version__
from gateway.api.v1.router import api_router
from gateway.api.v1.stream import router as stream_router
from gateway.core.config import settings
from gateway.core.exception_handlers import register_exception_handlers
from gateway.core.logging import setup_logging

# Configure logging (JSON in production, colored in development)
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("🚀 Starting Realtime Gateway...")
    logger.info(f"📝 Environment: {settings.ENVIRONMENT}")
    if not settings.OPENAI_API_KEY:
        logger.warning(
            "OPENAI_API_KEY is not set. Streaming sessions will fail at start until it is configured."
        )
    yield
    logger.info("👋 Shutting down Realtime Gateway...")


app = FastAPI(
    title="Realtime Gateway API",
    description="实时转写翻译中继 API",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(stream_router)
app.include_router(api_router, prefix="/api/v1")


@app.get("/health")
async def health_check():
    """Liveness, independent of the streaming path"""
    return {
        "status": "ok",
        "version": __version__,
        "checks": {"credential": "configured" if settings.OPENAI_API_KEY else "missing"},
    }


@app.get("/")
async def root():
    """Root endpoint"""
    return {"message": "Welcome to Realtime Gateway", "docs": "/docs", "version": __version__}
