"""
OpenAI HTTP client for the three provider calls the pipeline makes:
file ingestion, inference (Responses API with a file input) and file deletion.
"""
import json
import logging
from typing import Any, Dict

import httpx

from obligation_registry.config import Settings
from obligation_registry.core.errors import ProviderInferenceError, ProviderUploadError

logger = logging.getLogger(__name__)


def _error_payload(response: httpx.Response) -> str:
    """Raw provider error body, compact JSON when it parses."""
    try:
        return json.dumps(response.json())
    except ValueError:
        return response.text


class OpenAIProvider:
    """Async client around the provider REST endpoints.

    Use as ``async with OpenAIProvider(settings) as provider: ...`` so the
    underlying connection pool is closed when the batch ends.
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings
        self.model = settings.OPENAI_MODEL
        self.purpose = settings.OPENAI_FILE_PURPOSE
        self._client = httpx.AsyncClient(
            base_url=settings.OPENAI_BASE_URL.rstrip("/"),
            headers={"Authorization": f"Bearer {settings.OPENAI_API_KEY}"},
            timeout=httpx.Timeout(settings.PROVIDER_TIMEOUT_SECONDS),
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def upload_file(self, file_bytes: bytes, filename: str) -> str:
        """Push a file to ``POST /files`` and return the provider file id."""
        try:
            response = await self._client.post(
                "/files",
                data={"purpose": self.purpose},
                files={"file": (filename, file_bytes, "application/pdf")},
            )
        except httpx.HTTPError as e:
            raise ProviderUploadError(f"OpenAI upload failed: {e}") from e

        if not response.is_success:
            raise ProviderUploadError(f"OpenAI API error: {_error_payload(response)}")

        try:
            data = response.json()
        except ValueError:
            data = None
        file_id = data.get("id") if isinstance(data, dict) else None
        if not isinstance(file_id, str) or not file_id:
            raise ProviderUploadError(f"OpenAI API error: no file id in {response.text}")

        logger.info(f"OpenAI file uploaded: {file_id} ({filename}, {len(file_bytes)} bytes)")
        return file_id

    async def create_response(self, file_id: str, prompt: str) -> Dict[str, Any]:
        """Run one non-streamed inference over an uploaded file."""
        body = {
            "model": self.model,
            "input": [
                {
                    "role": "user",
                    "content": [
                        {"type": "input_file", "file_id": file_id},
                        {"type": "input_text", "text": prompt},
                    ],
                }
            ],
        }
        try:
            response = await self._client.post("/responses", json=body)
        except httpx.HTTPError as e:
            raise ProviderInferenceError(f"OpenAI analysis failed: {e}") from e

        if not response.is_success:
            raise ProviderInferenceError(f"OpenAI API error: {_error_payload(response)}")

        try:
            return response.json()
        except ValueError as e:
            raise ProviderInferenceError(f"OpenAI returned a non-JSON body: {response.text[:200]}") from e

    async def delete_file(self, file_id: str) -> bool:
        """Best-effort ``DELETE /files/{id}``. Failures are logged, never raised."""
        try:
            response = await self._client.delete(f"/files/{file_id}")
        except httpx.HTTPError as e:
            logger.warning(f"Could not delete OpenAI file {file_id}: {e}")
            return False

        if not response.is_success:
            logger.warning(
                f"Could not delete OpenAI file {file_id}: HTTP {response.status_code} {response.text}"
            )
            return False

        logger.info(f"OpenAI file deleted: {file_id}")
        return True


def extract_output_text(payload: Dict[str, Any]) -> str:
    """Pull the free-form text out of a provider response envelope.

    Handles the Responses API (``output_text`` or ``output[].content[]``)
    and chat completions (``choices[0].message.content``).
    """
    if not isinstance(payload, dict):
        return ""

    text = payload.get("output_text")
    if isinstance(text, str) and text:
        return text

    output = payload.get("output")
    if isinstance(output, list):
        parts = []
        for item in output:
            if not isinstance(item, dict):
                continue
            for content in item.get("content") or []:
                if isinstance(content, dict) and isinstance(content.get("text"), str):
                    parts.append(content["text"])
        if parts:
            return "\n".join(parts)

    choices = payload.get("choices")
    if isinstance(choices, list) and choices:
        message = choices[0].get("message") if isinstance(choices[0], dict) else None
        if isinstance(message, dict) and isinstance(message.get("content"), str):
            return message["content"]

    return ""
