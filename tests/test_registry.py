"""
Tests for the consolidated obligation register and its polling subscription.
"""
import asyncio
from datetime import datetime, timedelta, timezone

from obligation_registry.models.document import Document
from obligation_registry.services.poller import RegistryPoller
from obligation_registry.services.registry import (
    build_registry,
    consolidate,
    is_same_upload_batch,
    parse_due_date,
)

NOW = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def doc(doc_id, status="analyzed", obligations=None, minutes_ago=0, filename=None):
    stamp = NOW - timedelta(minutes=minutes_ago)
    return Document(
        id=doc_id,
        owner_id="user-1",
        filename=filename or f"{doc_id}.pdf",
        storage_ref=f"user-1/{doc_id}.pdf",
        party="Acme Ltd",
        status=status,
        obligations=obligations,
        created_at=stamp,
        updated_at=stamp,
    )


def item(text, due=None, section="1"):
    return {"obligation": text, "section": section, "dueDate": due}


class TestParseDueDate:

    def test_plain_date(self):
        assert parse_due_date("2024-03-01") == datetime(2024, 3, 1)

    def test_iso_datetime_with_zulu(self):
        assert parse_due_date("2024-03-01T10:30:00Z") == datetime(2024, 3, 1, 10, 30)

    def test_invalid_or_missing(self):
        assert parse_due_date(None) is None
        assert parse_due_date("") is None
        assert parse_due_date("invalid") is None
        assert parse_due_date("within 30 days") is None
        assert parse_due_date(20240301) is None


class TestConsolidate:

    def test_dated_first_ascending_then_undated(self):
        d = doc("a", obligations=[
            item("one", None),
            item("two", "2024-03-01"),
            item("three", "invalid"),
            item("four", "2024-01-01"),
        ])

        merged = consolidate([d])

        assert [o["dueDate"] for o in merged] == ["2024-01-01", "2024-03-01", None, "invalid"]

    def test_undated_entries_keep_input_order(self):
        first = doc("first", obligations=[item("a"), item("b")])
        second = doc("second", obligations=[item("c", "not a date"), item("d")])

        merged = consolidate([first, second])

        assert [o["obligation"] for o in merged] == ["a", "b", "c", "d"]

    def test_entries_are_tagged_with_their_source(self):
        d = doc("doc-7", obligations=[item("pay", "2024-01-01")], filename="msa.pdf")

        [entry] = consolidate([d])

        assert entry["sourceDocumentId"] == "doc-7"
        assert entry["sourceDocumentName"] == "msa.pdf"
        assert entry["obligation"] == "pay"

    def test_source_obligations_are_not_mutated(self):
        obligations = [item("pay", "2024-01-01")]
        consolidate([doc("a", obligations=obligations)])

        assert "sourceDocumentId" not in obligations[0]

    def test_mixed_date_and_datetime_values_sort_together(self):
        d = doc("a", obligations=[
            item("late", "2024-02-01T00:00:00+00:00"),
            item("early", "2024-01-15"),
        ])

        assert [o["obligation"] for o in consolidate([d])] == ["early", "late"]


class TestUploadBatchHeuristic:

    def test_single_document_is_not_a_batch(self):
        assert is_same_upload_batch([doc("a")]) is False

    def test_documents_within_window(self):
        assert is_same_upload_batch([doc("a"), doc("b", minutes_ago=9)]) is True

    def test_documents_outside_window(self):
        assert is_same_upload_batch([doc("a"), doc("b", minutes_ago=45)]) is False

    def test_naive_timestamps_are_treated_as_utc(self):
        naive = doc("b", minutes_ago=2)
        naive.updated_at = naive.updated_at.replace(tzinfo=None)

        assert is_same_upload_batch([doc("a"), naive]) is True


class TestBuildRegistry:

    def test_partitions_by_status(self):
        docs = [
            doc("p1", status="pending"),
            doc("p2", status="processing"),
            doc("ok", obligations=[item("pay", "2024-01-01")]),
            doc("e1", status="error"),
            doc("e2", status="analysis_error"),
        ]

        snapshot = build_registry(docs)

        assert [d.id for d in snapshot.pending] == ["p1", "p2"]
        assert [d.id for d in snapshot.analyzed] == ["ok"]
        assert [d.id for d in snapshot.failed] == ["e1", "e2"]
        assert snapshot.pending_count == 2
        assert snapshot.needs_polling is True

    def test_analyzed_documents_newest_first(self):
        older = doc("older", obligations=[item("x")], minutes_ago=3)
        newer = doc("newer", obligations=[item("y")], minutes_ago=1)

        snapshot = build_registry([older, newer])

        assert [d.id for d in snapshot.analyzed] == ["newer", "older"]
        assert snapshot.last_upload_date == newer.updated_at
        assert snapshot.show_consolidated is True
        assert [o["obligation"] for o in snapshot.consolidated] == ["y", "x"]

    def test_register_built_even_outside_batch_window(self):
        old = doc("old", obligations=[item("x", "2024-01-01")], minutes_ago=120)
        new = doc("new", obligations=[item("y", "2023-12-01")])

        snapshot = build_registry([old, new])

        assert snapshot.show_consolidated is False
        assert [o["obligation"] for o in snapshot.consolidated] == ["y", "x"]

    def test_empty_input(self):
        snapshot = build_registry([])

        assert snapshot.consolidated == []
        assert snapshot.needs_polling is False
        assert snapshot.last_upload_date is None


class TestRegistryPoller:

    def test_polls_until_nothing_is_pending_and_notifies_once(self):
        states = [
            [doc("a", status="pending")],
            [doc("a", status="processing")],
            [doc("a", obligations=[item("pay")])],
        ]
        calls = []
        completions = []

        async def fetch():
            index = min(len(calls), len(states) - 1)
            calls.append(index)
            return build_registry(states[index])

        async def scenario():
            poller = RegistryPoller(fetch, interval=0.01, on_complete=completions.append)
            async with poller:
                await asyncio.wait_for(poller.wait(), timeout=2)
            # a later manual refresh must not notify again
            await poller.refresh()
            return poller

        poller = asyncio.run(scenario())

        assert len(calls) == 4
        assert len(completions) == 1
        assert completions[0].consolidated[0]["obligation"] == "pay"
        assert poller.running is False

    def test_no_completion_notice_when_nothing_was_pending(self):
        completions = []

        async def fetch():
            return build_registry([doc("a", obligations=[])])

        async def scenario():
            async with RegistryPoller(fetch, interval=0.01, on_complete=completions.append) as poller:
                await asyncio.wait_for(poller.wait(), timeout=2)

        asyncio.run(scenario())

        assert completions == []

    def test_stop_cancels_polling(self):
        calls = []

        async def fetch():
            calls.append(1)
            return build_registry([doc("a", status="pending")])

        async def scenario():
            async with RegistryPoller(fetch, interval=0.01) as poller:
                await asyncio.sleep(0.05)
                assert poller.running
            return poller

        poller = asyncio.run(scenario())
        seen = len(calls)

        assert poller.running is False
        assert seen >= 1
        assert len(calls) == seen

    def test_fetch_errors_are_reported_and_polling_continues(self):
        errors = []
        attempts = []

        async def fetch():
            attempts.append(1)
            if len(attempts) == 1:
                raise RuntimeError("network down")
            return build_registry([doc("a", obligations=[])])

        async def scenario():
            poller = RegistryPoller(fetch, interval=0.01, on_error=errors.append)
            async with poller:
                await asyncio.wait_for(poller.wait(), timeout=2)
            return poller

        poller = asyncio.run(scenario())

        assert [str(e) for e in errors] == ["network down"]
        assert poller.last_error is None
        assert poller.snapshot is not None
        assert len(attempts) == 2
