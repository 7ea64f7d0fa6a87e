from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from fastapi import Request

from . import db
from .services.completion import CompletionClient
from .services.conversations import DurableStore, TransientStore


@dataclass
class State:
    """Process-scoped services shared by all requests.

    Attached to FastAPI's app.state; tests swap members to inject fakes.
    """

    completion: CompletionClient
    uploads_dir: Path
    chat_timeout_s: float = 30.0
    upload_max_bytes: int = 10 * 1024 * 1024

    transient: TransientStore = field(default_factory=TransientStore)
    durable: DurableStore = field(default_factory=DurableStore)
    # Checked synchronously before each chat request
    durable_ready: Callable[[], bool] = db.is_ready


def get_state(request: Request) -> State:  # FastAPI dependency helper
    return request.app.state.state
