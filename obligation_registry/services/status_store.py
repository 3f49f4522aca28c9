"""
Status store: the single writer of persisted Document state.

Pipeline stages read the backlog through ``get_backlog`` and write every
transition through ``update_status``. No row locking is used; concurrent
writers to the same document are last-writer-wins.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from obligation_registry.core.errors import PersistenceError
from obligation_registry.db.filters import DocumentFilter
from obligation_registry.models.document import Document, DocumentStatus, utcnow

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset(
    {"status", "provider_file_handle", "obligations", "error_message", "updated_at"}
)


class StatusStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    # ── Reads ──

    @staticmethod
    def backlog_filter(owner_id: Optional[str] = None) -> DocumentFilter:
        """Documents eligible for a pipeline run."""
        flt = (
            DocumentFilter()
            .eq("status", DocumentStatus.PENDING.value)
            .is_null("provider_file_handle")
        )
        if owner_id is not None:
            flt.eq("owner_id", owner_id)
        return flt

    def select(self, flt: DocumentFilter, newest_first: bool = False) -> List[Document]:
        clause = flt.compile(Document)
        order = Document.updated_at.desc() if newest_first else Document.created_at.asc()
        db = self._session_factory()
        try:
            return db.query(Document).filter(clause).order_by(order, Document.id).all()
        except SQLAlchemyError as e:
            logger.error(f"Document query failed ({flt}): {e}")
            raise PersistenceError(f"Could not query documents: {e}") from e
        finally:
            db.close()

    def get_backlog(self, owner_id: Optional[str] = None) -> List[Document]:
        return self.select(self.backlog_filter(owner_id))

    def get(self, document_id: str, owner_id: Optional[str] = None) -> Optional[Document]:
        flt = DocumentFilter().eq("id", document_id)
        if owner_id is not None:
            flt.eq("owner_id", owner_id)
        docs = self.select(flt)
        return docs[0] if docs else None

    def list_for_owner(self, owner_id: str) -> List[Document]:
        """All of a user's documents, most recently updated first."""
        return self.select(DocumentFilter().eq("owner_id", owner_id), newest_first=True)

    def count_by_status(self, owner_id: str) -> Dict[str, int]:
        db = self._session_factory()
        try:
            rows = (
                db.query(Document.status, func.count(Document.id))
                .filter(Document.owner_id == owner_id)
                .group_by(Document.status)
                .all()
            )
        except SQLAlchemyError as e:
            logger.error(f"Status count failed for owner {owner_id}: {e}")
            raise PersistenceError(f"Could not count documents: {e}") from e
        finally:
            db.close()

        counts = {s.value: 0 for s in DocumentStatus}
        counts.update({status: count for status, count in rows})
        return counts

    # ── Writes ──

    def create_document(
        self,
        owner_id: str,
        filename: str,
        storage_ref: str,
        party: str,
        file_size_bytes: int = 0,
        document_id: Optional[str] = None,
    ) -> Document:
        """Insert a new ``pending`` document with no provider handle or obligations."""
        now = utcnow()
        doc = Document(
            id=document_id or str(uuid.uuid4()),
            owner_id=owner_id,
            filename=filename,
            storage_ref=storage_ref,
            file_size_bytes=file_size_bytes,
            party=party,
            status=DocumentStatus.PENDING.value,
            provider_file_handle=None,
            obligations=None,
            error_message=None,
            created_at=now,
            updated_at=now,
        )
        db = self._session_factory()
        try:
            db.add(doc)
            db.commit()
            db.refresh(doc)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to create document {filename}: {e}")
            raise PersistenceError(f"Could not create document: {e}") from e
        finally:
            db.close()

        logger.info(f"Document created: {doc.id} ({filename}) for owner {owner_id}")
        return doc

    def update_status(self, document_id: str, patch: Dict[str, Any]) -> bool:
        """Apply a partial update to one document.

        Only the fields in ``UPDATABLE_FIELDS`` may be patched; ``updated_at``
        is refreshed unless given. Returns False when the write fails or no
        row matched.
        """
        unknown = set(patch) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields not updatable: {', '.join(sorted(unknown))}")

        values = dict(patch)
        if isinstance(values.get("status"), DocumentStatus):
            values["status"] = values["status"].value
        values.setdefault("updated_at", utcnow())

        db = self._session_factory()
        try:
            result = db.execute(
                update(Document).where(Document.id == document_id).values(**values)
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to update document {document_id}: {e}")
            return False
        finally:
            db.close()

        if result.rowcount != 1:
            logger.error(f"Update matched {result.rowcount} rows for document {document_id}")
            return False

        if "status" in values:
            logger.info(f"[{document_id}] status -> {values['status']}")
        return True
