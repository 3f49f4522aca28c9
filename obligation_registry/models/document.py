"""
Document SQLAlchemy ORM model and its status state machine.
"""
import enum
from sqlalchemy import Column, String, Integer, DateTime, Text, JSON, Index
from sqlalchemy.dialects.postgresql import JSONB
from datetime import datetime, timezone

from obligation_registry.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    ANALYZED = "analyzed"
    ERROR = "error"
    ANALYSIS_ERROR = "analysis_error"


# Transitions each pipeline stage is allowed to perform
ALLOWED_TRANSITIONS = {
    DocumentStatus.PENDING: {DocumentStatus.PROCESSING, DocumentStatus.ERROR},
    DocumentStatus.PROCESSING: {DocumentStatus.ANALYZED, DocumentStatus.ANALYSIS_ERROR},
    DocumentStatus.ANALYZED: set(),
    DocumentStatus.ERROR: set(),
    DocumentStatus.ANALYSIS_ERROR: set(),
}

PENDING_STATUSES = frozenset({DocumentStatus.PENDING.value, DocumentStatus.PROCESSING.value})
FAILED_STATUSES = frozenset({DocumentStatus.ERROR.value, DocumentStatus.ANALYSIS_ERROR.value})


def can_transition(current: str, new: str) -> bool:
    return DocumentStatus(new) in ALLOWED_TRANSITIONS[DocumentStatus(current)]


class Document(Base):
    __tablename__ = "documents"

    id = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False)
    filename = Column(String, nullable=False)
    storage_ref = Column(String, nullable=False)      # Supabase Storage path
    file_size_bytes = Column(Integer, nullable=False, default=0)
    party = Column(String, nullable=False)
    status = Column(String, nullable=False, default=DocumentStatus.PENDING.value)
    provider_file_handle = Column(String, nullable=True)
    # [{"obligation": ..., "section": ..., "dueDate": ...}, ...]
    obligations = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True, default=None)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_documents_owner_id", "owner_id"),
        Index("ix_documents_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Document {self.id} {self.filename!r} status={self.status}>"
