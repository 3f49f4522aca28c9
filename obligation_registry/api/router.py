"""
Master API router: aggregates all sub-routers.
"""
from fastapi import APIRouter

from obligation_registry.api.documents import router as documents_router
from obligation_registry.api.processing import router as processing_router
from obligation_registry.api.obligations import router as obligations_router
from obligation_registry.api.dashboard import router as dashboard_router

api_router = APIRouter()

api_router.include_router(documents_router)
api_router.include_router(processing_router)
api_router.include_router(obligations_router)
api_router.include_router(dashboard_router)
