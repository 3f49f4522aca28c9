"""Analysis stage: provider inference -> obligations, processing -> analyzed | analysis_error."""
import json
import logging
from dataclasses import dataclass
from typing import Optional

from obligation_registry.core.errors import PersistenceError, ProviderInferenceError
from obligation_registry.models.document import DocumentStatus
from obligation_registry.services.obligation_parser import (
    build_extraction_prompt,
    normalize_response,
    placeholder_obligation,
)
from obligation_registry.services.openai_provider import OpenAIProvider, extract_output_text
from obligation_registry.services.status_store import StatusStore

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    document_id: str
    status: str
    obligation_count: int = 0
    parsed: bool = False
    error: Optional[str] = None


class Analyzer:
    def __init__(self, store: StatusStore, provider: OpenAIProvider):
        self.store = store
        self.provider = provider

    async def analyze(self, document_id: str, provider_file_handle: str, party: str) -> AnalysisResult:
        """
        Extract ``party``'s obligations from an uploaded provider file.

        The document reaches ``analyzed`` whenever the provider answered, even
        if the answer could not be parsed (a placeholder obligation is stored
        instead). Only a failed provider call leads to ``analysis_error``.
        """
        if not provider_file_handle:
            raise ValueError(f"Document {document_id} has no provider file handle")
        document = self.store.get(document_id)
        if document is None or document.status != DocumentStatus.PROCESSING.value:
            current = document.status if document else "missing"
            raise ValueError(f"Document {document_id} is {current}, expected processing")

        logger.info(f"[{document_id}] Starting analysis of {provider_file_handle} for party '{party}'")
        prompt = build_extraction_prompt(party)

        try:
            payload = await self.provider.create_response(provider_file_handle, prompt)
        except ProviderInferenceError as e:
            return await self._fail(document_id, provider_file_handle, e)

        raw_text = extract_output_text(payload)
        obligations, parsed = normalize_response(raw_text)
        if not parsed and not raw_text.strip():
            # no text in the envelope: store the payload itself
            obligations = [placeholder_obligation(json.dumps(payload))]
        if not parsed:
            logger.warning(f"[{document_id}] Unstructured analysis output stored as placeholder")

        persisted = self.store.update_status(
            document_id,
            {
                "status": DocumentStatus.ANALYZED,
                "obligations": obligations,
                "error_message": None,
            },
        )
        if not persisted:
            error = PersistenceError(f"Could not store analysis results for document {document_id}")
            logger.error(f"[{document_id}] {error}")
            # keep the provider file so the analysis can be re-run against it
            return AnalysisResult(
                document_id=document_id,
                status=DocumentStatus.PROCESSING.value,
                obligation_count=len(obligations),
                parsed=parsed,
                error=str(error),
            )

        await self.provider.delete_file(provider_file_handle)
        logger.info(f"[{document_id}] Analysis complete: {len(obligations)} obligations")
        return AnalysisResult(
            document_id=document_id,
            status=DocumentStatus.ANALYZED.value,
            obligation_count=len(obligations),
            parsed=parsed,
        )

    async def _fail(self, document_id: str, provider_file_handle: str, error: Exception) -> AnalysisResult:
        logger.error(f"[{document_id}] Analysis failed: {error}")
        recorded = self.store.update_status(
            document_id,
            {"status": DocumentStatus.ANALYSIS_ERROR, "error_message": str(error)},
        )
        if not recorded:
            logger.error(f"[{document_id}] Could not update status to analysis_error")

        # compensating action; its outcome never replaces the original error
        await self.provider.delete_file(provider_file_handle)

        return AnalysisResult(
            document_id=document_id,
            status=DocumentStatus.ANALYSIS_ERROR.value if recorded else DocumentStatus.PROCESSING.value,
            error=str(error),
        )
