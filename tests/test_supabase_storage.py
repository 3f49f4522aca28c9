"""
Tests for the Supabase Storage download path.
"""
import asyncio

import httpx
import pytest

from obligation_registry.core.errors import RetrievalError
from obligation_registry.services.supabase_storage import SupabaseBlobStore

SIGNED = "https://project.supabase.test/storage/v1/object/sign/contracts/user-1/a.pdf?token=t"


class SignedUrlStore(SupabaseBlobStore):
    """Skips the Supabase client and hands out a fixed signed URL."""

    def __init__(self, settings, handler, signed_url=SIGNED):
        super().__init__(settings, transport=httpx.MockTransport(handler))
        self.signed_url = signed_url
        self.requested = []
        self.signed_on_loop = None

    def get_signed_url(self, file_path, expires_in=3600, bucket=None):
        self.requested.append((bucket, file_path, expires_in))
        try:
            asyncio.get_running_loop()
            self.signed_on_loop = True
        except RuntimeError:
            self.signed_on_loop = False
        if isinstance(self.signed_url, Exception):
            raise self.signed_url
        return self.signed_url


def test_download_fetches_signed_url(settings):
    store = SignedUrlStore(settings, lambda request: httpx.Response(200, content=b"%PDF-1.7"))

    data = asyncio.run(store.download("contracts", "user-1/a.pdf"))

    assert data == b"%PDF-1.7"
    assert store.requested == [("contracts", "user-1/a.pdf", settings.SIGNED_URL_EXPIRES_IN)]


def test_signing_runs_off_the_event_loop(settings):
    store = SignedUrlStore(settings, lambda request: httpx.Response(200, content=b"%PDF"))

    asyncio.run(store.download("contracts", "user-1/a.pdf"))

    assert store.signed_on_loop is False


@pytest.mark.parametrize(
    "response, message",
    [
        (httpx.Response(404, text="Object not found"), "not found"),
        (httpx.Response(403, text="signature expired"), "HTTP 403: signature expired"),
    ],
)
def test_download_http_failures(settings, response, message):
    store = SignedUrlStore(settings, lambda request: response)

    with pytest.raises(RetrievalError, match=message):
        asyncio.run(store.download("contracts", "user-1/a.pdf"))


def test_signing_failure_is_a_retrieval_error(settings):
    store = SignedUrlStore(settings, lambda request: httpx.Response(200), signed_url=RuntimeError("bucket missing"))

    with pytest.raises(RetrievalError, match="bucket missing"):
        asyncio.run(store.download("contracts", "user-1/a.pdf"))


def test_empty_signed_url(settings):
    store = SignedUrlStore(settings, lambda request: httpx.Response(200), signed_url="")

    with pytest.raises(RetrievalError, match="no signed URL"):
        asyncio.run(store.download("contracts", "user-1/a.pdf"))


def test_unconfigured_client(settings):
    store = SupabaseBlobStore(settings)

    with pytest.raises(RetrievalError, match="SUPABASE_URL"):
        asyncio.run(store.download("contracts", "user-1/a.pdf"))
