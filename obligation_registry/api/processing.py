"""
Pipeline API routes.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request

from obligation_registry.config import Settings, get_settings
from obligation_registry.core.errors import PersistenceError
from obligation_registry.core.security import limiter
from obligation_registry.dependencies import (
    get_app_settings,
    get_blob_store,
    get_current_user,
    get_store,
)
from obligation_registry.schemas.result_schema import BatchResponse
from obligation_registry.services.status_store import StatusStore
from obligation_registry.workers.processing_worker import process_documents

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Processing"])


@router.post("/process-documents", response_model=BatchResponse)
@limiter.limit(lambda: get_settings().RATE_LIMIT_PROCESS)
async def run_processing_batch(
    request: Request,
    current_user: dict = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    store: StatusStore = Depends(get_store),
    blob_store=Depends(get_blob_store),
):
    """
    Process the caller's pending documents: upload each to the AI provider,
    extract its obligations and store the results.

    Runs to completion before responding; clients poll ``/api/obligations``
    to follow progress.
    """
    owner_id = current_user["user_id"]
    try:
        report = await process_documents(
            settings,
            store,
            blob_store,
            owner_id=owner_id,
            provider_transport=request.app.state.provider_transport,
        )
    except PersistenceError as e:
        logger.error(f"Batch for owner {owner_id} could not start: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    message = None if report.processed else "No pending documents found"
    return BatchResponse(message=message, **report.to_dict())
