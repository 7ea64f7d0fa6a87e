from __future__ import annotations

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class Document(BaseModel):
    id: str
    owner_id: str
    title: str
    description: str = ""
    file_path: str
    file_type: str
    file_size: int
    tags: List[str] = []
    is_public: bool = False
    uploaded_at: str
    updated_at: str
    ai_analysis: Optional[Dict[str, Any]] = Field(None, description="{analysis, analyzed_at} once analyzed")


class DocumentUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    tags: Optional[List[str]] = None
    is_public: Optional[bool] = None


class DocumentResponse(BaseModel):
    ok: bool = True
    document: Document


class DocumentListResponse(BaseModel):
    ok: bool = True
    results: int
    documents: List[Document]


class AnalyzeResponse(BaseModel):
    ok: bool = True
    documentId: str
    analysis: str
