"""
Supabase Storage adapter for storing and retrieving contract files.
"""
import asyncio
import logging
from typing import Protocol

import httpx
from supabase import create_client, Client

from obligation_registry.config import Settings
from obligation_registry.core.errors import RetrievalError

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    async def download(self, bucket: str, path: str) -> bytes:
        ...


class SupabaseBlobStore:
    """Blob store backed by a Supabase Storage bucket."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.bucket = settings.SUPABASE_BUCKET
        self._transport = transport
        self._client: Client | None = None

    def _get_client(self) -> Client:
        """Lazy-initialize the Supabase client."""
        if self._client is None:
            if not self.settings.SUPABASE_URL or not self.settings.SUPABASE_SERVICE_KEY:
                raise RuntimeError(
                    "SUPABASE_URL and SUPABASE_SERVICE_KEY must be set in .env"
                )
            self._client = create_client(self.settings.SUPABASE_URL, self.settings.SUPABASE_SERVICE_KEY)
            logger.info("Supabase client initialized")
        return self._client

    def upload_file(
        self,
        file_bytes: bytes,
        file_path: str,
        content_type: str = "application/pdf",
        bucket: str | None = None,
    ) -> str:
        """
        Upload a file to Supabase Storage.

        Args:
            file_bytes: Raw file content.
            file_path: Path inside the bucket, e.g. "<owner>/<doc_id>/contract.pdf".
            content_type: MIME type of the file.
            bucket: Override bucket name (defaults to settings.SUPABASE_BUCKET).

        Returns:
            The storage path of the uploaded file.
        """
        client = self._get_client()
        bucket_name = bucket or self.bucket

        client.storage.from_(bucket_name).upload(
            path=file_path,
            file=file_bytes,
            file_options={"content-type": content_type},
        )

        logger.info(f"Uploaded {file_path} to bucket '{bucket_name}'")
        return file_path

    def get_signed_url(self, file_path: str, expires_in: int = 3600, bucket: str | None = None) -> str:
        """Get a signed (temporary) URL for a file in Supabase Storage."""
        client = self._get_client()
        bucket_name = bucket or self.bucket
        res = client.storage.from_(bucket_name).create_signed_url(file_path, expires_in)
        return res.get("signedURL") or res.get("signedUrl") or ""

    async def download(self, bucket: str, path: str) -> bytes:
        """Fetch the raw bytes of ``path``; raises RetrievalError on any failure."""
        try:
            # the Supabase client is synchronous
            signed_url = await asyncio.to_thread(
                self.get_signed_url, path, self.settings.SIGNED_URL_EXPIRES_IN, bucket
            )
        except Exception as e:
            raise RetrievalError(f"Error downloading file: {e}") from e
        if not signed_url:
            raise RetrievalError(f"Error downloading file: no signed URL for {bucket}/{path}")

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.get(signed_url)
        except httpx.HTTPError as e:
            raise RetrievalError(f"Error downloading file: {e}") from e

        if response.status_code == 404:
            raise RetrievalError(f"Error downloading file: {bucket}/{path} not found")
        if not response.is_success:
            raise RetrievalError(
                f"Error downloading file: HTTP {response.status_code}: {response.text}"
            )

        logger.info(f"Downloaded {bucket}/{path} ({len(response.content)} bytes)")
        return response.content

    def delete_file(self, file_path: str, bucket: str | None = None) -> None:
        """Delete a file from Supabase Storage."""
        client = self._get_client()
        bucket_name = bucket or self.bucket
        client.storage.from_(bucket_name).remove([file_path])
        logger.info(f"Deleted {file_path} from bucket '{bucket_name}'")
