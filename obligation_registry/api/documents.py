"""
Document management API routes.
"""
import re
import uuid
import logging
import os
from fastapi import APIRouter, UploadFile, File, Form, Depends, HTTPException, Request

from obligation_registry.config import Settings, get_settings
from obligation_registry.core.errors import PersistenceError
from obligation_registry.core.security import limiter
from obligation_registry.dependencies import (
    get_app_settings,
    get_blob_store,
    get_current_user,
    get_store,
)
from obligation_registry.schemas.document_schema import DocumentOut, DocumentUploadResponse
from obligation_registry.services.status_store import StatusStore
from obligation_registry.services.supabase_storage import SupabaseBlobStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/documents", tags=["Documents"])


def _safe_filename(filename: str, doc_id: str, file_ext: str) -> str:
    # Sanitize filename: strip path traversal, keep only safe characters
    safe_name = os.path.basename(filename or "upload")
    safe_name = re.sub(r'[^\w.\-]', '_', safe_name)  # allow alphanumeric, dot, hyphen, underscore
    if not safe_name or safe_name.startswith('.'):
        safe_name = f"upload_{doc_id}{file_ext}"
    return safe_name


@router.post("/upload", response_model=DocumentUploadResponse)
@limiter.limit(lambda: get_settings().RATE_LIMIT_UPLOAD)
async def upload_document(
    request: Request,
    file: UploadFile = File(...),
    party: str = Form(..., description="Contracting party whose obligations are extracted"),
    current_user: dict = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
    store: StatusStore = Depends(get_store),
    blob_store: SupabaseBlobStore = Depends(get_blob_store),
):
    party = party.strip()
    if not party:
        raise HTTPException(status_code=400, detail="Party must not be empty")

    # ── Validate file extension ──
    file_ext = os.path.splitext(file.filename or "")[1].lower()
    if file_ext not in settings.SUPPORTED_FILE_TYPES:
        raise HTTPException(
            status_code=400,
            detail=f"Unsupported file type '{file_ext}'. Allowed: {', '.join(settings.SUPPORTED_FILE_TYPES)}",
        )

    file_bytes = await file.read()

    # ── Validate file size ──
    max_bytes = settings.MAX_FILE_SIZE_MB * 1024 * 1024
    if not file_bytes:
        raise HTTPException(status_code=400, detail="File is empty")
    if len(file_bytes) > max_bytes:
        raise HTTPException(
            status_code=400,
            detail=f"File too large ({len(file_bytes) / (1024*1024):.1f} MB). Maximum allowed: {settings.MAX_FILE_SIZE_MB} MB",
        )

    owner_id = current_user["user_id"]
    doc_id = str(uuid.uuid4())
    safe_name = _safe_filename(file.filename, doc_id, file_ext)
    storage_path = f"{owner_id}/{doc_id}/{safe_name}"

    # ── Upload file to Supabase Storage ──
    try:
        blob_store.upload_file(file_bytes, storage_path, file.content_type or "application/pdf")
    except Exception as e:
        logger.error(f"Failed to upload to Supabase Storage: {e}")
        raise HTTPException(status_code=500, detail="File upload failed")

    # ── Save metadata to DB ──
    try:
        doc = store.create_document(
            owner_id=owner_id,
            filename=safe_name,
            storage_ref=storage_path,
            party=party,
            file_size_bytes=len(file_bytes),
            document_id=doc_id,
        )
    except PersistenceError:
        # don't leave an unreferenced file in the bucket
        try:
            blob_store.delete_file(storage_path)
        except Exception as e:
            logger.warning(f"Could not delete from storage: {e}")
        raise HTTPException(status_code=500, detail="Could not save document")

    logger.info(f"Document uploaded: {doc.filename} → {storage_path}")
    return DocumentUploadResponse.model_validate(doc)


@router.get("/", response_model=list[DocumentOut])
async def list_documents(
    current_user: dict = Depends(get_current_user),
    store: StatusStore = Depends(get_store),
):
    """All of the caller's documents, including failed ones."""
    try:
        docs = store.list_for_owner(current_user["user_id"])
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return [DocumentOut.model_validate(doc) for doc in docs]


@router.get("/{doc_id}", response_model=DocumentOut)
async def get_document(
    doc_id: str,
    current_user: dict = Depends(get_current_user),
    store: StatusStore = Depends(get_store),
):
    """Get metadata and results for a single document."""
    try:
        doc = store.get(doc_id, owner_id=current_user["user_id"])
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=str(e))
    if not doc:
        raise HTTPException(status_code=404, detail="Document not found")
    return DocumentOut.model_validate(doc)
