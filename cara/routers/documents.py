from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile

from ..ids import get_owner_id
from ..models.document import (
    AnalyzeResponse,
    DocumentListResponse,
    DocumentResponse,
    DocumentUpdate,
)
from ..services import documents as svc
from ..state import State, get_state
from .. import db

router = APIRouter(prefix="/documents", tags=["documents"])


@router.post("", response_model=DocumentResponse, status_code=201)
def v1_upload_document(
    file: UploadFile = File(...),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    tags: Optional[str] = Form(None, description="JSON array of strings"),
    owner_id: str = Depends(get_owner_id),
    state: State = Depends(get_state),
) -> DocumentResponse:
    doc = svc.upload_document(state, owner_id, file, title=title, description=description, tags=tags)
    return DocumentResponse(document=doc)


@router.get("", response_model=DocumentListResponse)
def v1_list_documents(owner_id: str = Depends(get_owner_id)) -> DocumentListResponse:
    docs = db.list_documents(owner_id)
    return DocumentListResponse(results=len(docs), documents=docs)


@router.get("/{doc_id}", response_model=DocumentResponse)
def v1_get_document(doc_id: str, owner_id: str = Depends(get_owner_id)) -> DocumentResponse:
    return DocumentResponse(document=svc.get_document(owner_id, doc_id))


@router.patch("/{doc_id}", response_model=DocumentResponse)
def v1_update_document(
    doc_id: str,
    payload: DocumentUpdate,
    owner_id: str = Depends(get_owner_id),
) -> DocumentResponse:
    doc = svc.update_document(owner_id, doc_id, payload.dict(exclude_unset=True))
    return DocumentResponse(document=doc)


@router.delete("/{doc_id}", status_code=204)
def v1_delete_document(doc_id: str, owner_id: str = Depends(get_owner_id)) -> Response:
    svc.delete_document(owner_id, doc_id)
    return Response(status_code=204)


@router.post("/{doc_id}/analyze", response_model=AnalyzeResponse)
async def v1_analyze_document(
    doc_id: str,
    owner_id: str = Depends(get_owner_id),
    state: State = Depends(get_state),
) -> AnalyzeResponse:
    result = await svc.analyze_document(state, owner_id, doc_id)
    return AnalyzeResponse(**result)
