"""
Pydantic schemas for document-related request / response models.
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator


class Obligation(BaseModel):
    obligation: str
    section: Optional[str] = None
    dueDate: Optional[str] = None
    raw_response: Optional[str] = None

    @field_validator("obligation")
    @classmethod
    def obligation_not_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("Obligation text must not be empty")
        return v.strip()

    class Config:
        extra = "ignore"


class ConsolidatedObligation(Obligation):
    sourceDocumentId: str
    sourceDocumentName: str


class DocumentOut(BaseModel):
    id: str
    filename: str
    party: str
    status: str
    file_size_bytes: int = 0
    error_message: Optional[str] = None
    obligations: Optional[List[Obligation]] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DocumentUploadResponse(BaseModel):
    id: str
    filename: str
    party: str
    status: str
    storage_ref: str = Field(description="Path of the file inside the storage bucket")
    created_at: datetime

    class Config:
        from_attributes = True
