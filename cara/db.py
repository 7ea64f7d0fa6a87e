"""
SQLite helper functions for the CARA backend.

This module provides:
  - Database path setup
  - Connection helper and a readiness flag for the durable store
  - Initialization of required tables
  - Chat transcript and document persistence helpers
  - Small utility for UTC timestamps
"""

import json
import os
import sqlite3
from typing import Optional, List, Dict, Any
from pathlib import Path
from datetime import datetime, timezone

from .ids import new_id

# Path to the SQLite database file (beside the package unless overridden)
_DB_PATH_ENV = os.getenv("CARA_DB_PATH")
if _DB_PATH_ENV:
    DB_PATH = Path(_DB_PATH_ENV).expanduser()
else:
    DB_PATH = Path(__file__).parent / "cara.db"
DB_PATH = DB_PATH.resolve()

# Flipped by initialize_db(); read synchronously before every chat request.
_READY = False


def configure(path: Optional[str]) -> None:
    """Point the helpers at another database file. Resets readiness."""
    global DB_PATH, _READY
    if path:
        DB_PATH = Path(path).expanduser().resolve()
    _READY = False


def is_ready() -> bool:
    return _READY


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def get_connection() -> sqlite3.Connection:
    """
    Open a SQLite connection to our DB file with safe defaults.
    - Enables foreign keys so chat messages go away with their chat.
    - Returns rows as tuples; callers convert to dicts.
    """
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(DB_PATH))
    conn.execute("PRAGMA foreign_keys = ON;")
    return conn


def initialize_db() -> None:
    """
    Create tables if they don't exist and mark the store ready.
    This is idempotent and safe to call on startup.
    """
    global _READY
    with get_connection() as conn:
        cur = conn.cursor()

        # chats: one row per transcript
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS chats (
                id         TEXT PRIMARY KEY,
                owner_id   TEXT NOT NULL,
                title      TEXT NOT NULL,
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            );
            """
        )

        # chat_messages: ordered by seq within a chat
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS chat_messages (
                chat_id   TEXT NOT NULL,
                seq       INTEGER NOT NULL,
                role      TEXT NOT NULL CHECK (role IN ('system', 'user', 'assistant')),
                content   TEXT NOT NULL,
                timestamp TEXT NOT NULL,
                PRIMARY KEY (chat_id, seq),
                FOREIGN KEY (chat_id) REFERENCES chats(id) ON DELETE CASCADE
            );
            """
        )

        cur.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_chats_owner
            ON chats(owner_id, updated_at DESC);
            """
        )

        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS documents (
                id          TEXT PRIMARY KEY,
                owner_id    TEXT NOT NULL,
                title       TEXT NOT NULL,
                description TEXT NOT NULL DEFAULT '',
                file_path   TEXT NOT NULL,
                file_type   TEXT NOT NULL,
                file_size   INTEGER NOT NULL,
                tags        TEXT NOT NULL DEFAULT '[]',   -- JSON array
                is_public   INTEGER NOT NULL DEFAULT 0,
                uploaded_at TEXT NOT NULL,
                updated_at  TEXT NOT NULL,
                ai_analysis TEXT                          -- JSON object or NULL
            );
            """
        )

        cur.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_documents_owner
            ON documents(owner_id, uploaded_at DESC);
            """
        )

        conn.commit()
    _READY = True


# --------------------- Chat helpers ---------------------
def create_chat(owner_id: str, title: str) -> Dict[str, Any]:
    """Insert an empty chat and return it."""
    now = utc_now_iso()
    chat = {
        "id": new_id(),
        "owner_id": owner_id,
        "title": title,
        "created_at": now,
        "updated_at": now,
        "messages": [],
    }
    with get_connection() as conn:
        conn.execute(
            "INSERT INTO chats (id, owner_id, title, created_at, updated_at) VALUES (?, ?, ?, ?, ?)",
            (chat["id"], owner_id, title, now, now),
        )
    return chat


def get_chat(chat_id: str, owner_id: str) -> Optional[Dict[str, Any]]:
    """Fetch a chat with its messages, only if it belongs to owner_id."""
    with get_connection() as conn:
        cur = conn.cursor()
        cur.execute(
            "SELECT id, owner_id, title, created_at, updated_at FROM chats WHERE id = ? AND owner_id = ?",
            (chat_id, owner_id),
        )
        row = cur.fetchone()
        if row is None:
            return None
        cur.execute(
            "SELECT role, content, timestamp FROM chat_messages WHERE chat_id = ? ORDER BY seq ASC",
            (chat_id,),
        )
        messages = [{"role": r[0], "content": r[1], "timestamp": r[2]} for r in cur.fetchall()]
    return {
        "id": row[0],
        "owner_id": row[1],
        "title": row[2],
        "created_at": row[3],
        "updated_at": row[4],
        "messages": messages,
    }


def list_chats(owner_id: str, limit: int = 200) -> List[Dict[str, Any]]:
    """Return the owner's chats without messages (most recently updated first)."""
    with get_connection() as conn:
        cur = conn.cursor()
        cur.execute(
            """
            SELECT id, title, created_at, updated_at
            FROM chats
            WHERE owner_id = ?
            ORDER BY updated_at DESC, rowid DESC
            LIMIT ?
            """,
            (owner_id, limit),
        )
        return [
            {"id": r[0], "title": r[1], "created_at": r[2], "updated_at": r[3]}
            for r in cur.fetchall()
        ]


def save_chat(chat_id: str, owner_id: str, title: str, messages: List[Dict[str, Any]], updated_at: str) -> None:
    """Rewrite a chat's messages and metadata in one transaction."""
    with get_connection() as conn:
        cur = conn.cursor()
        cur.execute(
            "UPDATE chats SET title = ?, updated_at = ? WHERE id = ? AND owner_id = ?",
            (title, updated_at, chat_id, owner_id),
        )
        if cur.rowcount == 0:
            raise ValueError(f"Chat {chat_id} does not exist")
        cur.execute("DELETE FROM chat_messages WHERE chat_id = ?", (chat_id,))
        cur.executemany(
            "INSERT INTO chat_messages (chat_id, seq, role, content, timestamp) VALUES (?, ?, ?, ?, ?)",
            [
                (chat_id, seq, m["role"], m["content"], m["timestamp"])
                for seq, m in enumerate(messages)
            ],
        )


def delete_chat(chat_id: str, owner_id: str) -> int:
    with get_connection() as conn:
        cur = conn.cursor()
        cur.execute("DELETE FROM chats WHERE id = ? AND owner_id = ?", (chat_id, owner_id))
        return cur.rowcount


# --------------------- Document helpers ---------------------
_DOC_COLUMNS = (
    "id, owner_id, title, description, file_path, file_type, file_size, "
    "tags, is_public, uploaded_at, updated_at, ai_analysis"
)


def _row_to_document(r) -> Dict[str, Any]:
    return {
        "id": r[0],
        "owner_id": r[1],
        "title": r[2],
        "description": r[3],
        "file_path": r[4],
        "file_type": r[5],
        "file_size": int(r[6]),
        "tags": json.loads(r[7] or "[]"),
        "is_public": bool(r[8]),
        "uploaded_at": r[9],
        "updated_at": r[10],
        "ai_analysis": json.loads(r[11]) if r[11] else None,
    }


def insert_document(
    owner_id: str,
    title: str,
    file_path: str,
    file_type: str,
    file_size: int,
    description: str = "",
    tags: Optional[List[str]] = None,
) -> Dict[str, Any]:
    now = utc_now_iso()
    doc = {
        "id": new_id(),
        "owner_id": owner_id,
        "title": title,
        "description": description,
        "file_path": file_path,
        "file_type": file_type,
        "file_size": int(file_size),
        "tags": list(tags or []),
        "is_public": False,
        "uploaded_at": now,
        "updated_at": now,
        "ai_analysis": None,
    }
    with get_connection() as conn:
        conn.execute(
            f"""
            INSERT INTO documents ({_DOC_COLUMNS})
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?, NULL)
            """,
            (doc["id"], owner_id, title, description, file_path, file_type, doc["file_size"],
             json.dumps(doc["tags"]), now, now),
        )
    return doc


def get_document(doc_id: str, owner_id: str) -> Optional[Dict[str, Any]]:
    with get_connection() as conn:
        cur = conn.cursor()
        cur.execute(
            f"SELECT {_DOC_COLUMNS} FROM documents WHERE id = ? AND owner_id = ?",
            (doc_id, owner_id),
        )
        row = cur.fetchone()
    return _row_to_document(row) if row else None


def list_documents(owner_id: str, limit: int = 500) -> List[Dict[str, Any]]:
    """Return the owner's documents (newest upload first)."""
    with get_connection() as conn:
        cur = conn.cursor()
        cur.execute(
            f"""
            SELECT {_DOC_COLUMNS} FROM documents
            WHERE owner_id = ?
            ORDER BY uploaded_at DESC, rowid DESC
            LIMIT ?
            """,
            (owner_id, limit),
        )
        return [_row_to_document(r) for r in cur.fetchall()]


def update_document(doc_id: str, owner_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Apply a partial update. Only title/description/tags/is_public are writable."""
    sets: List[str] = []
    params: List[Any] = []
    for key in ("title", "description", "tags", "is_public"):
        if key not in fields or fields[key] is None:
            continue
        value = fields[key]
        if key == "tags":
            value = json.dumps(list(value))
        elif key == "is_public":
            value = 1 if value else 0
        sets.append(f"{key} = ?")
        params.append(value)
    sets.append("updated_at = ?")
    params.append(utc_now_iso())
    with get_connection() as conn:
        cur = conn.cursor()
        cur.execute(
            f"UPDATE documents SET {', '.join(sets)} WHERE id = ? AND owner_id = ?",
            (*params, doc_id, owner_id),
        )
        if cur.rowcount == 0:
            return None
    return get_document(doc_id, owner_id)


def set_document_analysis(doc_id: str, owner_id: str, analysis: Dict[str, Any]) -> None:
    with get_connection() as conn:
        conn.execute(
            "UPDATE documents SET ai_analysis = ?, updated_at = ? WHERE id = ? AND owner_id = ?",
            (json.dumps(analysis), utc_now_iso(), doc_id, owner_id),
        )


def delete_document(doc_id: str, owner_id: str) -> int:
    with get_connection() as conn:
        cur = conn.cursor()
        cur.execute("DELETE FROM documents WHERE id = ? AND owner_id = ?", (doc_id, owner_id))
        return cur.rowcount
