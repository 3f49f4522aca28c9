"""
Export of the consolidated obligation register to the document webhook.
"""
import logging
from typing import Any, Dict, List, Optional

import httpx

from obligation_registry.config import Settings
from obligation_registry.core.errors import ExportSinkError, ExportValidationError

logger = logging.getLogger(__name__)


class ExportSink:
    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None):
        self.webhook_url = settings.EXPORT_WEBHOOK_URL
        self.timeout = settings.EXPORT_TIMEOUT_SECONDS
        self._transport = transport

    async def export(self, obligations: List[Dict[str, Any]], full_name: Optional[str]) -> Optional[str]:
        """Send the register to the webhook and return the generated document URL.

        An empty register is rejected locally without contacting the webhook.
        """
        if not obligations:
            raise ExportValidationError("There are no obligations to export")
        if not self.webhook_url:
            raise ExportSinkError("Export webhook is not configured")

        payload = {"full_name": full_name or "User", "content": obligations}
        logger.info(f"Sending {len(obligations)} obligations to export webhook for {payload['full_name']}")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.webhook_url, json=payload)
        except httpx.HTTPError as e:
            raise ExportSinkError(f"Webhook request failed: {e}") from e

        if not response.is_success:
            logger.error(f"Webhook error ({response.status_code}): {response.text}")
            raise ExportSinkError(response.text, status_code=response.status_code)

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}
        document_url = data.get("documentUrl") or data.get("url")
        logger.info(f"Export completed, document URL: {document_url}")
        return document_url
