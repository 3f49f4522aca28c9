"""Upload stage: storage -> provider file, pending -> processing | error."""
import logging
from dataclasses import dataclass
from typing import Optional

from obligation_registry.core.errors import (
    PersistenceError,
    ProviderUploadError,
    RetrievalError,
)
from obligation_registry.models.document import Document, DocumentStatus, can_transition
from obligation_registry.services.openai_provider import OpenAIProvider
from obligation_registry.services.status_store import StatusStore
from obligation_registry.services.supabase_storage import BlobStore

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    document_id: str
    success: bool
    status: str
    provider_file_handle: Optional[str] = None
    error: Optional[str] = None


class Uploader:
    def __init__(self, store: StatusStore, blob_store: BlobStore, provider: OpenAIProvider, bucket: str):
        self.store = store
        self.blob_store = blob_store
        self.provider = provider
        self.bucket = bucket

    async def upload(self, document: Document) -> UploadResult:
        """
        Download the document from storage and push it to the provider.

        Moves the document to ``processing`` with the provider handle on
        success, or to ``error`` with the failure message otherwise.
        """
        if not can_transition(document.status, DocumentStatus.PROCESSING.value):
            raise ValueError(f"Document {document.id} is {document.status}, expected pending")

        logger.info(f"[{document.id}] Uploading {document.filename} ({document.storage_ref})")

        try:
            file_bytes = await self.blob_store.download(self.bucket, document.storage_ref)
        except RetrievalError as e:
            return self._fail(document, e)

        try:
            file_handle = await self.provider.upload_file(file_bytes, document.filename)
        except ProviderUploadError as e:
            return self._fail(document, e)

        persisted = self.store.update_status(
            document.id,
            {
                "status": DocumentStatus.PROCESSING,
                "provider_file_handle": file_handle,
                "error_message": None,
            },
        )
        if not persisted:
            error = PersistenceError(
                f"Uploaded file {file_handle} but could not record it on document {document.id}"
            )
            logger.error(f"[{document.id}] {error}")
            await self._release_orphan(document.id, file_handle)
            # the document is still pending with no handle and will be picked up by the next batch
            return UploadResult(
                document_id=document.id,
                success=False,
                status=DocumentStatus.PENDING.value,
                error=str(error),
            )

        logger.info(f"[{document.id}] Uploaded to provider as {file_handle}")
        return UploadResult(
            document_id=document.id,
            success=True,
            status=DocumentStatus.PROCESSING.value,
            provider_file_handle=file_handle,
        )

    def _fail(self, document: Document, error: Exception) -> UploadResult:
        logger.error(f"[{document.id}] Upload stage failed: {error}")
        recorded = self.store.update_status(
            document.id,
            {"status": DocumentStatus.ERROR, "error_message": str(error)},
        )
        if not recorded:
            logger.error(f"[{document.id}] Could not update status to error")
        return UploadResult(
            document_id=document.id,
            success=False,
            status=DocumentStatus.ERROR.value if recorded else document.status,
            error=str(error),
        )

    async def _release_orphan(self, document_id: str, file_handle: str) -> None:
        """Compensating action for an upload whose handle could not be stored."""
        if not await self.provider.delete_file(file_handle):
            logger.warning(f"[{document_id}] Provider file {file_handle} is orphaned")
