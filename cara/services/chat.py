from __future__ import annotations

import logging
import sqlite3
from typing import Dict, List, Optional, Tuple

from fastapi import HTTPException
from fastapi.concurrency import run_in_threadpool

from ..state import State
from .completion import complete_with_timeout
from .conversations import ConversationStore, Message, Transcript, TranscriptNotFound, select_store
from .normalizer import shorten

logger = logging.getLogger("app.chat")

CHAT_SYSTEM_PROMPT = (
    "You are CARA, a helpful Legal Assistant. Provide information about legal matters clearly "
    "and concisely. IMPORTANT: Keep your responses short and to the point - use 2-3 sentences "
    "for each point and avoid long explanations. Use simple language and break information into "
    "bullet points when appropriate. While you can help with understanding legal documents and "
    "concepts, clarify that you do not provide legal advice and users should consult with a "
    "qualified attorney for specific legal advice."
)
BREVITY_REMINDER = "\n\nPlease keep your response brief and to the point."


def build_prompt_messages(transcript: Transcript) -> List[Dict[str, str]]:
    """Transcript history as API messages, with the CARA system prompt first."""
    out: List[Dict[str, str]] = []
    for m in transcript.messages:
        content = m.content + BREVITY_REMINDER if m.role == "user" else m.content
        out.append({"role": m.role, "content": content})
    if not any(m["role"] == "system" for m in out):
        out.insert(0, {"role": "system", "content": CHAT_SYSTEM_PROMPT})
    return out


async def _load_transcript(
    state: State, store: ConversationStore, chat_id: Optional[str], owner_id: str, message: str
) -> Tuple[ConversationStore, Transcript]:
    """Load or start the transcript, degrading to memory if SQLite fails."""
    try:
        return store, await run_in_threadpool(store.load_or_create, chat_id, owner_id, message)
    except TranscriptNotFound as e:
        raise HTTPException(status_code=404, detail="Chat not found") from e
    except sqlite3.Error as e:
        if store is state.transient:
            raise
        logger.warning(f"durable chat store failed ({e}); using transient chat storage")
        transient = state.transient
        return transient, await run_in_threadpool(transient.load_or_create, None, owner_id, message)


async def chat_with_assistant(state: State, message: str, chat_id: Optional[str], owner_id: str) -> Dict[str, str]:
    store = select_store(chat_id, owner_id, state.durable_ready, state.durable, state.transient)
    store, transcript = await _load_transcript(state, store, chat_id, owner_id, message)

    store.append(transcript, Message(role="user", content=message))

    reply = await complete_with_timeout(
        state.completion, build_prompt_messages(transcript), state.chat_timeout_s
    )
    reply = shorten(reply)
    store.append(transcript, Message(role="assistant", content=reply))

    try:
        await run_in_threadpool(store.persist, transcript)
    except Exception:
        # Reply already computed; durability is best-effort.
        logger.exception(f"failed to persist chat {transcript.id} to {store.kind} store")

    return {"chatId": transcript.id, "message": reply}


def list_chats(state: State, owner_id: str) -> List[Dict[str, str]]:
    store = select_store(None, owner_id, state.durable_ready, state.durable, state.transient)
    return [t.summary() for t in store.list_for_owner(owner_id)]


def get_chat(state: State, chat_id: str, owner_id: str) -> Dict[str, object]:
    store = select_store(chat_id, owner_id, state.durable_ready, state.durable, state.transient)
    transcript = store.get(chat_id, owner_id)
    if transcript is None:
        raise HTTPException(status_code=404, detail="Chat not found")
    return transcript.to_dict()


def delete_chat(state: State, chat_id: str, owner_id: str) -> None:
    store = select_store(chat_id, owner_id, state.durable_ready, state.durable, state.transient)
    if not store.delete(chat_id, owner_id):
        raise HTTPException(status_code=404, detail="Chat not found")
