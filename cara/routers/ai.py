from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response

from ..ids import get_owner_id
from ..models.ai import (
    ChatDetailResponse,
    ChatListResponse,
    ChatRequest,
    ChatResponse,
    NewsResponse,
    SearchResponse,
)
from ..services import chat as chat_svc
from ..services import research as research_svc
from ..state import State, get_state

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/chat", response_model=ChatResponse)
async def v1_chat(
    payload: ChatRequest,
    owner_id: str = Depends(get_owner_id),
    state: State = Depends(get_state),
) -> ChatResponse:
    result = await chat_svc.chat_with_assistant(state, payload.message, payload.chatId, owner_id)
    return ChatResponse(**result)


@router.get("/chats", response_model=ChatListResponse)
def v1_list_chats(owner_id: str = Depends(get_owner_id), state: State = Depends(get_state)) -> ChatListResponse:
    chats = chat_svc.list_chats(state, owner_id)
    return ChatListResponse(results=len(chats), chats=chats)


@router.get("/chats/{chat_id}", response_model=ChatDetailResponse)
def v1_get_chat(
    chat_id: str,
    owner_id: str = Depends(get_owner_id),
    state: State = Depends(get_state),
) -> ChatDetailResponse:
    return ChatDetailResponse(chat=chat_svc.get_chat(state, chat_id, owner_id))


@router.delete("/chats/{chat_id}", status_code=204)
def v1_delete_chat(
    chat_id: str,
    owner_id: str = Depends(get_owner_id),
    state: State = Depends(get_state),
) -> Response:
    chat_svc.delete_chat(state, chat_id, owner_id)
    return Response(status_code=204)


@router.get("/search-laws", response_model=SearchResponse)
async def v1_search_laws(
    query: Optional[str] = Query(None, description="Legal topic or law name"),
    category: Optional[str] = Query(None, description="Area of law; 'All' means unscoped"),
    state: State = Depends(get_state),
) -> SearchResponse:
    if not query or len(query.strip()) < 2:
        raise HTTPException(status_code=400, detail="Please provide a valid search query (at least 2 characters)")
    results = await research_svc.search_laws(state, query, category)
    return SearchResponse(results=len(results), searchResults=results)


@router.get("/laws-news", response_model=NewsResponse)
async def v1_laws_news(
    category: Optional[str] = Query(None, description="Area of law; 'All' means unscoped"),
    state: State = Depends(get_state),
) -> NewsResponse:
    items = await research_svc.laws_news(state, category)
    return NewsResponse(results=len(items), newsItems=items)
