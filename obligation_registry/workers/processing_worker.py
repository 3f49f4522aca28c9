"""Processing worker: runs the upload -> analysis pipeline over the document backlog."""
import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from obligation_registry.config import Settings
from obligation_registry.core.errors import PersistenceError
from obligation_registry.models.document import Document, DocumentStatus
from obligation_registry.services.openai_provider import OpenAIProvider
from obligation_registry.services.status_store import StatusStore
from obligation_registry.services.supabase_storage import BlobStore
from obligation_registry.workers.analyzer import Analyzer
from obligation_registry.workers.uploader import Uploader

logger = logging.getLogger(__name__)


@dataclass
class DocumentOutcome:
    document_id: str
    filename: str
    final_status: str
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "documentId": self.document_id,
            "filename": self.filename,
            "finalStatus": self.final_status,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class BatchReport:
    batch_id: str
    started_at: datetime
    outcomes: List[DocumentOutcome] = field(default_factory=list)
    duration_ms: int = 0

    @property
    def processed(self) -> int:
        return len(self.outcomes)

    def count(self, status: str) -> int:
        return sum(1 for o in self.outcomes if o.final_status == status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "started_at": self.started_at.isoformat(),
            "processed": self.processed,
            "results": [o.to_dict() for o in self.outcomes],
            "duration_ms": self.duration_ms,
        }


class PipelineOrchestrator:
    def __init__(self, store: StatusStore, uploader: Uploader, analyzer: Analyzer):
        self.store = store
        self.uploader = uploader
        self.analyzer = analyzer

    async def run_batch(self, owner_id: Optional[str] = None) -> BatchReport:
        """
        Process one snapshot of the backlog, one document at a time.

        A failing document never stops the batch; its outcome is recorded
        and the next document is processed.
        """
        report = BatchReport(batch_id=str(uuid.uuid4()), started_at=datetime.now(timezone.utc))
        start = time.perf_counter()

        backlog = self.store.get_backlog(owner_id)
        scope = f"owner {owner_id}" if owner_id else "all owners"
        logger.info(f"[{report.batch_id}] Found {len(backlog)} pending documents ({scope})")

        for doc in backlog:
            outcome = await self._process_document(doc)
            report.outcomes.append(outcome)

        report.duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            f"[{report.batch_id}] Processed {report.processed} documents in {report.duration_ms}ms "
            f"(analyzed={report.count('analyzed')}, error={report.count('error')}, "
            f"analysis_error={report.count('analysis_error')})"
        )
        return report

    async def _process_document(self, doc: Document) -> DocumentOutcome:
        logger.info(f"Starting processing for document: {doc.id} ({doc.filename}) for user: {doc.owner_id}")
        try:
            upload = await self.uploader.upload(doc)
            if not upload.success:
                return DocumentOutcome(doc.id, doc.filename, upload.status, upload.error)

            analysis = await self.analyzer.analyze(doc.id, upload.provider_file_handle, doc.party)
            return DocumentOutcome(doc.id, doc.filename, analysis.status, analysis.error)
        except Exception as e:
            # per-document boundary: nothing escapes into the batch loop
            logger.error(f"Error processing document {doc.id}: {e}", exc_info=True)
            status = self._mark_failed(doc, e)
            return DocumentOutcome(doc.id, doc.filename, status, str(e))

    def _mark_failed(self, doc: Document, error: Exception) -> str:
        """Move a document that failed unexpectedly to the failure status of its stage."""
        try:
            current = self.store.get(doc.id)
        except PersistenceError:
            current = None
        status = current.status if current else doc.status

        if status == DocumentStatus.PENDING.value:
            target = DocumentStatus.ERROR
        elif status == DocumentStatus.PROCESSING.value:
            target = DocumentStatus.ANALYSIS_ERROR
        else:
            return status

        if self.store.update_status(doc.id, {"status": target, "error_message": str(error)}):
            return target.value
        logger.error(f"[{doc.id}] Could not update status to {target.value}")
        return status


async def process_documents(
    settings: Settings,
    store: StatusStore,
    blob_store: BlobStore,
    owner_id: Optional[str] = None,
    provider_transport: httpx.AsyncBaseTransport | None = None,
) -> BatchReport:
    """Wire the stages for one batch run and close the provider client afterwards."""
    async with OpenAIProvider(settings, transport=provider_transport) as provider:
        orchestrator = PipelineOrchestrator(
            store,
            Uploader(store, blob_store, provider, settings.SUPABASE_BUCKET),
            Analyzer(store, provider),
        )
        return await orchestrator.run_batch(owner_id)
