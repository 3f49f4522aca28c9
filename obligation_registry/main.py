"""
FastAPI application entry point.

    uvicorn obligation_registry.main:create_app --factory --reload
"""
import logging
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from obligation_registry.api.router import api_router
from obligation_registry.config import Settings, get_settings
from obligation_registry.core.security import limiter
from obligation_registry.db.session import create_session_factory
from obligation_registry.services.status_store import StatusStore
from obligation_registry.services.supabase_storage import SupabaseBlobStore

# Logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    blob_store=None,
    provider_transport: Optional[httpx.AsyncBaseTransport] = None,
    export_transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the app and its components from one settings object."""
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        description="Contract obligation extraction and registry API",
        version=settings.APP_VERSION,
    )

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Rate limiting
    limiter.enabled = settings.RATE_LIMIT_ENABLED
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    app.state.settings = settings
    app.state.store = StatusStore(create_session_factory(settings))
    app.state.blob_store = blob_store or SupabaseBlobStore(settings)
    app.state.provider_transport = provider_transport
    app.state.export_transport = export_transport

    app.include_router(api_router)

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "version": settings.APP_VERSION,
            "environment": {
                "hasOpenAIKey": bool(settings.OPENAI_API_KEY),
                "hasSupabaseUrl": bool(settings.SUPABASE_URL),
                "hasServiceKey": bool(settings.SUPABASE_SERVICE_KEY),
                "hasExportWebhook": bool(settings.EXPORT_WEBHOOK_URL),
            },
        }

    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} started")
    return app

