"""
Pydantic schemas for batch processing, the obligation register and export.
"""
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel

from obligation_registry.schemas.document_schema import (
    ConsolidatedObligation,
    DocumentOut,
)


class DocumentOutcomeOut(BaseModel):
    documentId: str
    filename: str
    finalStatus: str
    error: Optional[str] = None


class BatchResponse(BaseModel):
    success: bool = True
    batch_id: str
    processed: int
    results: List[DocumentOutcomeOut] = []
    duration_ms: int
    message: Optional[str] = None


class RegistryResponse(BaseModel):
    pending_count: int
    poll_interval_seconds: float
    show_consolidated: bool
    last_upload_date: Optional[datetime] = None
    consolidated: List[ConsolidatedObligation] = []
    contracts: List[DocumentOut] = []
    failed: List[DocumentOut] = []


class ExportRequest(BaseModel):
    obligations: Optional[List[ConsolidatedObligation]] = None


class ExportResponse(BaseModel):
    success: bool
    documentUrl: Optional[str] = None
    message: str


class DashboardStats(BaseModel):
    total_documents: int
    by_status: Dict[str, int]
    total_obligations: int
    dated_obligations: int
    placeholder_obligations: int
