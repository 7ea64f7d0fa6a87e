from __future__ import annotations

import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from fastapi import HTTPException, UploadFile
from fastapi.concurrency import run_in_threadpool

from .. import db
from ..ids import is_valid_id, new_id
from ..state import State

logger = logging.getLogger("app")

ALLOWED_CONTENT_TYPES = frozenset({
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "text/plain",
    "image/jpeg",
    "image/png",
})

ANALYSIS_SYSTEM_PROMPT = (
    "You are CARA, a helpful Legal Assistant. Analyze the following document and provide "
    "insights about its legal implications, structure, and key points."
)
ANALYSIS_OPTIONS = {"max_tokens": 2500, "temperature": 0.5}


def _require_valid_id(doc_id: str) -> None:
    if not is_valid_id(doc_id):
        raise HTTPException(status_code=400, detail=f"Invalid document id: {doc_id}")


def parse_tags(raw: Optional[str]) -> List[str]:
    """Tags arrive as JSON array text in multipart forms."""
    if not raw:
        return []
    try:
        tags = json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="tags must be a JSON array of strings")
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise HTTPException(status_code=400, detail="tags must be a JSON array of strings")
    return [t.strip() for t in tags if t.strip()]


def _save_upload(state: State, upload: UploadFile) -> Path:
    state.uploads_dir.mkdir(parents=True, exist_ok=True)
    name = Path(upload.filename or "document").name
    out_path = state.uploads_dir / f"{new_id()}-{name}"
    data = upload.file.read(state.upload_max_bytes + 1)
    if len(data) > state.upload_max_bytes:
        raise HTTPException(status_code=413, detail="File exceeds the upload size limit")
    out_path.write_bytes(data)
    return out_path


def upload_document(
    state: State,
    owner_id: str,
    upload: UploadFile,
    title: Optional[str] = None,
    description: Optional[str] = None,
    tags: Optional[str] = None,
) -> Dict[str, Any]:
    content_type = (upload.content_type or "").split(";")[0].strip().lower()
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise HTTPException(status_code=400, detail="Only PDF, Word, text, and image files are allowed")
    tag_list = parse_tags(tags)
    path = _save_upload(state, upload)
    return db.insert_document(
        owner_id=owner_id,
        title=(title or "").strip() or Path(upload.filename or "document").stem,
        description=(description or "").strip(),
        file_path=str(path),
        file_type=content_type,
        file_size=path.stat().st_size,
        tags=tag_list,
    )


def get_document(owner_id: str, doc_id: str) -> Dict[str, Any]:
    _require_valid_id(doc_id)
    doc = db.get_document(doc_id, owner_id)
    if doc is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return doc


def update_document(owner_id: str, doc_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
    _require_valid_id(doc_id)
    doc = db.update_document(doc_id, owner_id, fields)
    if doc is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return doc


def delete_document(owner_id: str, doc_id: str) -> None:
    doc = get_document(owner_id, doc_id)
    path = Path(doc["file_path"])
    if path.exists():
        path.unlink()
    db.delete_document(doc_id, owner_id)


def _read_document_text(owner_id: str, doc_id: str) -> Tuple[Dict[str, Any], str]:
    doc = get_document(owner_id, doc_id)
    path = Path(doc["file_path"])
    if not path.exists():
        raise HTTPException(status_code=404, detail="Document file not found")
    return doc, path.read_text(encoding="utf-8", errors="replace")


async def analyze_document(state: State, owner_id: str, doc_id: str) -> Dict[str, Any]:
    doc, text = await run_in_threadpool(_read_document_text, owner_id, doc_id)

    messages = [
        {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
        {"role": "user", "content": f'Please analyze this document titled "{doc["title"]}":\n\n{text}'},
    ]
    analysis = await state.completion.complete(messages, ANALYSIS_OPTIONS)
    await run_in_threadpool(
        db.set_document_analysis,
        doc_id,
        owner_id,
        {"analysis": analysis, "analyzed_at": int(time.time() * 1000)},
    )
    logger.info(f"analyzed document {doc_id} ({len(text)} chars)")
    return {"documentId": doc_id, "analysis": analysis}
