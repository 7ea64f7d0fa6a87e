"""Chat transcript storage.

Two interchangeable stores implement ConversationStore: DurableStore (SQLite,
see ``cara.db``) and TransientStore (a process-scoped dict). select_store()
picks one per request; the two are never queried together.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional

from .. import db
from ..ids import SENTINEL_OWNERS, is_valid_id, timestamp_id

logger = logging.getLogger("app.store")

ROLES = ("system", "user", "assistant")
TITLE_CHARS = 30


class TranscriptNotFound(Exception):
    def __init__(self, transcript_id: str) -> None:
        super().__init__(f"Chat {transcript_id} not found")
        self.transcript_id = transcript_id


@dataclass(frozen=True)
class Message:
    role: str
    content: str
    timestamp: str = field(default_factory=db.utc_now_iso)

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"invalid message role: {self.role}")

    def to_dict(self) -> Dict[str, str]:
        return {"role": self.role, "content": self.content, "timestamp": self.timestamp}


@dataclass
class Transcript:
    id: str
    owner_id: str
    title: str
    created_at: str
    updated_at: str
    messages: List[Message] = field(default_factory=list)

    def snapshot(self) -> "Transcript":
        return replace(self, messages=list(self.messages))

    def summary(self) -> Dict[str, str]:
        return {
            "id": self.id,
            "title": self.title,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def to_dict(self) -> Dict[str, object]:
        return {**self.summary(), "messages": [m.to_dict() for m in self.messages]}


def make_title(first_message: str) -> str:
    return first_message[:TITLE_CHARS] + "..."


class ConversationStore(ABC):
    kind: str = "abstract"

    @abstractmethod
    def load_or_create(self, transcript_id: Optional[str], owner_id: str, first_message: str) -> Transcript:
        ...

    @abstractmethod
    def persist(self, transcript: Transcript) -> None:
        ...

    @abstractmethod
    def get(self, transcript_id: str, owner_id: str) -> Optional[Transcript]:
        ...

    @abstractmethod
    def list_for_owner(self, owner_id: str) -> List[Transcript]:
        ...

    @abstractmethod
    def delete(self, transcript_id: str, owner_id: str) -> bool:
        ...

    def append(self, transcript: Transcript, message: Message) -> Message:
        transcript.messages.append(message)
        transcript.updated_at = message.timestamp
        return message


class DurableStore(ConversationStore):
    """Transcripts in SQLite, addressed by (owner_id, transcript_id)."""

    kind = "durable"

    @staticmethod
    def _from_row(row: Dict) -> Transcript:
        return Transcript(
            id=row["id"],
            owner_id=row["owner_id"],
            title=row["title"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            messages=[Message(**m) for m in row.get("messages", [])],
        )

    def load_or_create(self, transcript_id: Optional[str], owner_id: str, first_message: str) -> Transcript:
        if transcript_id:
            row = db.get_chat(transcript_id, owner_id)
            if row is None:
                raise TranscriptNotFound(transcript_id)
            return self._from_row(row)
        return self._from_row(db.create_chat(owner_id, make_title(first_message)))

    def persist(self, transcript: Transcript) -> None:
        db.save_chat(
            transcript.id,
            transcript.owner_id,
            transcript.title,
            [m.to_dict() for m in transcript.messages],
            transcript.updated_at,
        )

    def get(self, transcript_id: str, owner_id: str) -> Optional[Transcript]:
        row = db.get_chat(transcript_id, owner_id)
        return self._from_row(row) if row else None

    def list_for_owner(self, owner_id: str) -> List[Transcript]:
        return [
            Transcript(id=r["id"], owner_id=owner_id, title=r["title"],
                       created_at=r["created_at"], updated_at=r["updated_at"])
            for r in db.list_chats(owner_id)
        ]

    def delete(self, transcript_id: str, owner_id: str) -> bool:
        return db.delete_chat(transcript_id, owner_id) > 0


class TransientStore(ConversationStore):
    """Process-lifetime transcripts keyed by a timestamp id.

    Loads hand out snapshots and persist() stores the caller's snapshot whole,
    so two requests racing on one id end with the last writer's messages.
    """

    kind = "transient"

    def __init__(self) -> None:
        self._chats: Dict[str, Transcript] = {}

    def __len__(self) -> int:
        return len(self._chats)

    def _new_id(self) -> str:
        candidate = int(timestamp_id())
        while str(candidate) in self._chats:
            candidate += 1
        return str(candidate)

    def load_or_create(self, transcript_id: Optional[str], owner_id: str, first_message: str) -> Transcript:
        if transcript_id and transcript_id in self._chats:
            return self._chats[transcript_id].snapshot()
        now = db.utc_now_iso()
        chat = Transcript(
            id=self._new_id(),
            owner_id=owner_id,
            title=make_title(first_message),
            created_at=now,
            updated_at=now,
        )
        self._chats[chat.id] = chat
        return chat.snapshot()

    def persist(self, transcript: Transcript) -> None:
        self._chats[transcript.id] = transcript.snapshot()

    def get(self, transcript_id: str, owner_id: str) -> Optional[Transcript]:
        chat = self._chats.get(transcript_id)
        if chat is None or chat.owner_id != owner_id:
            return None
        return chat.snapshot()

    def list_for_owner(self, owner_id: str) -> List[Transcript]:
        chats = [c for c in self._chats.values() if c.owner_id == owner_id]
        return sorted(chats, key=lambda c: c.updated_at, reverse=True)

    def delete(self, transcript_id: str, owner_id: str) -> bool:
        chat = self._chats.get(transcript_id)
        if chat is None or chat.owner_id != owner_id:
            return False
        del self._chats[transcript_id]
        return True


def select_store(
    transcript_id: Optional[str],
    owner_id: str,
    durable_ready: Callable[[], bool],
    durable: ConversationStore,
    transient: ConversationStore,
) -> ConversationStore:
    """Pick the store for one request.

    Transient when the durable backend is not ready, when a supplied
    transcript id is not a durable id, or when the owner is a placeholder
    identity or not a durable id.
    """
    if not durable_ready():
        logger.warning("durable store not ready; using transient chat storage")
        return transient
    if transcript_id and not is_valid_id(transcript_id):
        logger.warning(f"chat id {transcript_id!r} is not a durable id; using transient chat storage")
        return transient
    if owner_id in SENTINEL_OWNERS or not is_valid_id(owner_id):
        logger.warning("placeholder or non-durable owner id; using transient chat storage")
        return transient
    return durable
