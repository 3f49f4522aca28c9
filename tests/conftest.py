import json
import re
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from jose import jwt

from obligation_registry.config import Settings
from obligation_registry.core.errors import RetrievalError
from obligation_registry.db.session import create_session_factory
from obligation_registry.services.status_store import StatusStore

DEFAULT_OBLIGATIONS = [
    {"obligation": "Deliver the quarterly report", "section": "4.1", "dueDate": "2024-03-31"},
    {"obligation": "Maintain insurance cover", "section": "9", "dueDate": None},
]


def issue_token(settings, expires_in=timedelta(hours=1), **claims):
    """Sign a token the way the identity provider does."""
    claims["exp"] = datetime.now(timezone.utc) + expires_in
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


class InMemoryBlobStore:
    """Blob store double keyed by storage path."""

    def __init__(self):
        self.files = {}

    def upload_file(self, file_bytes, file_path, content_type="application/pdf", bucket=None):
        self.files[file_path] = file_bytes
        return file_path

    async def download(self, bucket, path):
        if path not in self.files:
            raise RetrievalError(f"Error downloading file: {bucket}/{path} not found")
        return self.files[path]

    def delete_file(self, file_path, bucket=None):
        self.files.pop(file_path, None)


class FakeOpenAI:
    """Answers the provider endpoints the pipeline uses.

    Uploaded files get the id ``file-<filename>``; analysis answers are
    configured per filename in ``analysis``.
    """

    def __init__(self):
        self.upload_errors = {}     # filename -> (status, payload)
        self.analysis = {}          # filename -> (status, payload)
        self.delete_status = 200
        self.uploaded = []
        self.analyzed = []
        self.deleted = []
        self.prompts = []

    @staticmethod
    def text_payload(text):
        return {"id": "resp_1", "output": [{"type": "message", "content": [{"type": "output_text", "text": text}]}]}

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "POST" and path.endswith("/files"):
            filename = re.search(rb'filename="([^"]+)"', request.content).group(1).decode()
            if filename in self.upload_errors:
                status, payload = self.upload_errors[filename]
                return httpx.Response(status, json=payload)
            self.uploaded.append(filename)
            return httpx.Response(200, json={"id": f"file-{filename}", "object": "file"})

        if request.method == "POST" and path.endswith("/responses"):
            body = json.loads(request.content)
            content = body["input"][0]["content"]
            file_id = content[0]["file_id"]
            self.prompts.append(content[1]["text"])
            self.analyzed.append(file_id)
            filename = file_id[len("file-"):]
            status, payload = self.analysis.get(
                filename, (200, self.text_payload(json.dumps(DEFAULT_OBLIGATIONS)))
            )
            return httpx.Response(status, json=payload)

        if request.method == "DELETE" and "/files/" in path:
            file_id = path.rsplit("/", 1)[1]
            self.deleted.append(file_id)
            return httpx.Response(self.delete_status, json={"id": file_id, "deleted": self.delete_status == 200})

        return httpx.Response(404, json={"error": {"message": f"no route {request.method} {path}"}})

    @property
    def transport(self):
        return httpx.MockTransport(self.handler)


@pytest.fixture
def settings():
    return Settings(
        DATABASE_URL="sqlite://",
        SECRET_KEY="test-secret",
        DEBUG=True,
        OPENAI_API_KEY="sk-test",
        OPENAI_BASE_URL="https://api.openai.test/v1",
        EXPORT_WEBHOOK_URL="https://hooks.example.test/export",
        RATE_LIMIT_ENABLED=False,
        SUPABASE_BUCKET="contracts",
    )


@pytest.fixture
def store(settings):
    return StatusStore(create_session_factory(settings))


@pytest.fixture
def blobs():
    return InMemoryBlobStore()


@pytest.fixture
def fake_openai():
    return FakeOpenAI()


@pytest.fixture
def make_document(store, blobs):
    """Create a pending document, storing its bytes unless ``stored=False``."""

    def _make(filename, owner_id="user-1", party="Acme Ltd", stored=True):
        path = f"{owner_id}/{filename}"
        if stored:
            blobs.upload_file(b"%PDF-1.4 test", path)
        return store.create_document(
            owner_id=owner_id,
            filename=filename,
            storage_ref=path,
            party=party,
            file_size_bytes=13,
        )

    return _make
