"""Identifier helpers and the caller identity dependency."""

from __future__ import annotations

import re
import time
import uuid
from typing import Optional

from fastapi import Header

ANONYMOUS_OWNER = "anonymous-user"
# Placeholder identities handed out by dev/test setups; never stored durably.
SENTINEL_OWNERS = frozenset({ANONYMOUS_OWNER, "dummy-user-id"})

_ID_RE = re.compile(r"^[0-9a-f]{32}$")


def new_id() -> str:
    return uuid.uuid4().hex


def is_valid_id(value: Optional[str]) -> bool:
    return isinstance(value, str) and bool(_ID_RE.match(value))


def timestamp_id() -> str:
    """Epoch milliseconds as text."""
    return str(int(time.time() * 1000))


def get_owner_id(x_user_id: Optional[str] = Header(default=None)) -> str:  # FastAPI dependency helper
    owner = (x_user_id or "").strip()
    return owner or ANONYMOUS_OWNER
