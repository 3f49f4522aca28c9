"""
Obligation register API routes.
"""
import logging
from datetime import timedelta
from fastapi import APIRouter, Depends, HTTPException, Request

from obligation_registry.config import Settings, get_settings
from obligation_registry.core.errors import ExportSinkError, ExportValidationError, PersistenceError
from obligation_registry.core.security import limiter
from obligation_registry.dependencies import get_app_settings, get_current_user, get_store
from obligation_registry.schemas.document_schema import DocumentOut
from obligation_registry.schemas.result_schema import ExportRequest, ExportResponse, RegistryResponse
from obligation_registry.services.export_sink import ExportSink
from obligation_registry.services.registry import RegistrySnapshot, build_registry
from obligation_registry.services.status_store import StatusStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/obligations", tags=["Obligations"])


def _load_registry(owner_id: str, store: StatusStore, settings: Settings) -> RegistrySnapshot:
    try:
        documents = store.list_for_owner(owner_id)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Failed to load obligations data: {e}")
    return build_registry(documents, window=timedelta(minutes=settings.BATCH_WINDOW_MINUTES))


@router.get("/", response_model=RegistryResponse)
async def get_registry(
    current_user: dict = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    store: StatusStore = Depends(get_store),
):
    """
    The caller's obligation register.

    While ``pending_count`` is above zero the client should fetch again
    after ``poll_interval_seconds``.
    """
    snapshot = _load_registry(current_user["user_id"], store, settings)
    return RegistryResponse(
        pending_count=snapshot.pending_count,
        poll_interval_seconds=settings.POLL_INTERVAL_SECONDS,
        show_consolidated=snapshot.show_consolidated,
        last_upload_date=snapshot.last_upload_date,
        consolidated=snapshot.consolidated,
        contracts=[DocumentOut.model_validate(d) for d in snapshot.analyzed],
        failed=[DocumentOut.model_validate(d) for d in snapshot.failed],
    )


@router.post("/export", response_model=ExportResponse)
@limiter.limit(lambda: get_settings().RATE_LIMIT_EXPORT)
async def export_obligations(
    request: Request,
    body: ExportRequest,
    current_user: dict = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    store: StatusStore = Depends(get_store),
):
    """Export the register (or the given obligations) to the document webhook."""
    if body.obligations is None:
        snapshot = _load_registry(current_user["user_id"], store, settings)
        obligations = snapshot.consolidated
    else:
        obligations = [o.model_dump() for o in body.obligations]

    sink = ExportSink(settings, transport=request.app.state.export_transport)
    try:
        document_url = await sink.export(obligations, current_user.get("name") or None)
    except ExportValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ExportSinkError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return ExportResponse(
        success=True,
        documentUrl=document_url,
        message="Obligations exported successfully",
    )
