"""
Obligation register: partitions a user's documents by processing state and
merges the analyzed ones into a single register ordered by due date.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from obligation_registry.models.document import (
    FAILED_STATUSES,
    PENDING_STATUSES,
    Document,
    DocumentStatus,
)

logger = logging.getLogger(__name__)

BATCH_WINDOW = timedelta(minutes=10)


def parse_due_date(value: Any) -> Optional[datetime]:
    """Interpret a due date string; None when missing or not a valid date.

    Accepts plain ISO dates and full ISO datetimes. Results are naive UTC so
    that both kinds compare with each other.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        d = date.fromisoformat(text)
        return datetime(d.year, d.month, d.day)
    except ValueError:
        pass
    try:
        dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def _last_touched(doc: Document) -> datetime:
    return _as_utc(doc.updated_at or doc.created_at)


def consolidate(documents: Iterable[Document]) -> List[Dict[str, Any]]:
    """Merge obligations of ``documents`` into one list sorted by due date.

    Each entry is tagged with its source document. Valid due dates come
    first in ascending order; missing or invalid dates follow. Python's sort
    is stable, so equal keys keep per-document order, then document order.
    """
    merged = []
    for doc in documents:
        for obligation in doc.obligations or []:
            merged.append(
                {
                    **obligation,
                    "sourceDocumentId": doc.id,
                    "sourceDocumentName": doc.filename,
                }
            )

    def sort_key(item):
        due = parse_due_date(item.get("dueDate"))
        return (0, due) if due is not None else (1, datetime.min)

    return sorted(merged, key=sort_key)


def is_same_upload_batch(documents: List[Document], window: timedelta = BATCH_WINDOW) -> bool:
    """True when more than one document was updated within ``window`` of the newest one."""
    if len(documents) < 2:
        return False
    newest = max(_last_touched(d) for d in documents)
    recent = [d for d in documents if abs(newest - _last_touched(d)) < window]
    return len(recent) > 1


@dataclass
class RegistrySnapshot:
    pending: List[Document] = field(default_factory=list)
    analyzed: List[Document] = field(default_factory=list)
    failed: List[Document] = field(default_factory=list)
    consolidated: List[Dict[str, Any]] = field(default_factory=list)
    show_consolidated: bool = False
    last_upload_date: Optional[datetime] = None

    @property
    def pending_count(self) -> int:
        return len(self.pending)

    @property
    def needs_polling(self) -> bool:
        return self.pending_count > 0


def build_registry(documents: Iterable[Document], window: timedelta = BATCH_WINDOW) -> RegistrySnapshot:
    """Partition documents and build the consolidated register.

    Analyzed documents are ordered most recently updated first; every one of
    them is included in the register regardless of the batch heuristic.
    """
    snapshot = RegistrySnapshot()
    for doc in documents:
        if doc.status in PENDING_STATUSES:
            snapshot.pending.append(doc)
        elif doc.status == DocumentStatus.ANALYZED.value and isinstance(doc.obligations, list):
            snapshot.analyzed.append(doc)
        elif doc.status in FAILED_STATUSES:
            snapshot.failed.append(doc)

    snapshot.analyzed.sort(key=_last_touched, reverse=True)
    if snapshot.analyzed:
        snapshot.last_upload_date = _last_touched(snapshot.analyzed[0])
        snapshot.consolidated = consolidate(snapshot.analyzed)
        snapshot.show_consolidated = is_same_upload_batch(snapshot.analyzed, window)

    logger.debug(
        f"Registry: {len(snapshot.analyzed)} analyzed, {snapshot.pending_count} pending, "
        f"{len(snapshot.failed)} failed, {len(snapshot.consolidated)} obligations"
    )
    return snapshot
