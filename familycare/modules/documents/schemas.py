from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import date, datetime
from enum import Enum


class DocumentType(str, Enum):
    EXAM = "exam"
    PRESCRIPTION = "prescription"
    REPORT = "report"
    VACCINE = "vaccine"
    OTHER = "other"


class DocumentCreate(BaseModel):
    parent_id: str
    title: str = Field(min_length=2)
    type: DocumentType
    description: Optional[str] = None
    document_date: Optional[date] = None
    tags: Optional[List[str]] = None


class DocumentUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=2)
    type: Optional[DocumentType] = None
    description: Optional[str] = None
    document_date: Optional[date] = None
    tags: Optional[List[str]] = None


class DocumentResponse(BaseModel):
    id: str
    parent_id: str
    title: str
    type: DocumentType
    description: Optional[str] = None
    document_date: Optional[date] = None
    file_path: str
    file_name: str
    file_size: Optional[int] = None
    mime_type: Optional[str] = None
    tags: Optional[List[str]] = None
    uploaded_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class SignedUrlResponse(BaseModel):
    url: str
    expires_in: int


class DocumentStats(BaseModel):
    total: int
    by_type: Dict[str, int]
    total_size_bytes: int
    last_upload: Optional[datetime] = None
