"""
Dashboard analytics API routes.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException

from obligation_registry.core.errors import PersistenceError
from obligation_registry.dependencies import get_current_user, get_store
from obligation_registry.models.document import DocumentStatus
from obligation_registry.schemas.result_schema import DashboardStats
from obligation_registry.services.obligation_parser import PLACEHOLDER_TEXT
from obligation_registry.services.registry import parse_due_date
from obligation_registry.services.status_store import StatusStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/dashboard", tags=["Dashboard"])


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(
    current_user: dict = Depends(get_current_user),
    store: StatusStore = Depends(get_store),
):
    """Return document and obligation counts for the current user's dashboard."""
    owner_id = current_user["user_id"]
    try:
        by_status = store.count_by_status(owner_id)
        documents = store.list_for_owner(owner_id)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))

    # ── Obligations across analyzed documents ──
    total = dated = placeholders = 0
    for doc in documents:
        if doc.status != DocumentStatus.ANALYZED.value:
            continue
        for ob in doc.obligations or []:
            total += 1
            if parse_due_date(ob.get("dueDate")) is not None:
                dated += 1
            if ob.get("obligation") == PLACEHOLDER_TEXT:
                placeholders += 1

    return DashboardStats(
        total_documents=sum(by_status.values()),
        by_status=by_status,
        total_obligations=total,
        dated_obligations=dated,
        placeholder_obligations=placeholders,
    )
