from __future__ import annotations

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, description="User message")
    chatId: Optional[str] = Field(default=None, description="Existing transcript id, if continuing")


class ChatResponse(BaseModel):
    ok: bool = True
    chatId: str
    message: str


class ChatMessage(BaseModel):
    role: str
    content: str
    timestamp: str


class ChatSummary(BaseModel):
    id: str
    title: str
    created_at: str
    updated_at: str


class ChatDetail(ChatSummary):
    messages: List[ChatMessage] = []


class ChatListResponse(BaseModel):
    ok: bool = True
    results: int
    chats: List[ChatSummary]


class ChatDetailResponse(BaseModel):
    ok: bool = True
    chat: ChatDetail


class SearchResult(BaseModel):
    id: str
    title: str
    category: str
    summary: str
    content: str


class SearchResponse(BaseModel):
    ok: bool = True
    results: int
    # Items are SearchResult-shaped, or the model's own JSON object when it answered in JSON.
    searchResults: List[Dict[str, Any]]


class NewsItem(BaseModel):
    id: str
    title: str
    date: str = "Recent"
    summary: str = "No additional details available."


class NewsResponse(BaseModel):
    ok: bool = True
    results: int
    newsItems: List[NewsItem]
