from __future__ import annotations

import logging
import os
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from . import __version__, db
from .config import load_settings
from .errors import install_error_handlers
from .logging import install_app_logging, setup_logging
from .routers.ai import router as ai_router
from .routers.documents import router as documents_router
from .services.completion import CompletionClient
from .state import State


def _load_env_file(env_path: Path) -> None:
    """Minimal .env loader: KEY=VALUE lines into os.environ if not set.
    - Ignores comments and blank lines
    - Strips surrounding quotes
    - Supports optional 'export ' prefix
    """
    if not env_path.exists():
        return
    for raw in env_path.read_text(encoding="utf-8").splitlines():
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if line.lower().startswith("export "):
            line = line[7:].lstrip()
        if "=" not in line:
            continue
        k, v = line.split("=", 1)
        os.environ.setdefault(k.strip(), v.strip().strip('"').strip("'"))


def create_app() -> FastAPI:
    # Load environment from an optional .env in the project root
    project_root = Path(__file__).resolve().parent.parent
    try:
        _load_env_file(project_root / ".env")
    except OSError as e:
        logging.getLogger("app").warning(f".env not loaded: {e}")

    settings = load_settings()
    setup_logging()
    log = logging.getLogger("app")

    app = FastAPI(title="CARA Legal Assistant API", version=__version__)

    # Attach config/state
    app.state.settings = settings
    uploads_dir = Path(settings.uploads_dir)
    if not uploads_dir.is_absolute():
        uploads_dir = (project_root / uploads_dir).resolve()
    app.state.state = State(
        completion=CompletionClient(
            base_url=settings.together_api_url,
            api_key=settings.together_api_key,
            defaults=settings.completion_defaults(),
            timeout_s=settings.request_timeout_s,
        ),
        uploads_dir=uploads_dir,
        chat_timeout_s=settings.chat_timeout_s,
        upload_max_bytes=settings.upload_max_bytes,
    )
    if not settings.together_api_key:
        log.warning("completion API key not set; AI endpoints will answer with fallback text")

    # Ensure database schema exists; chats fall back to memory if this fails
    db.configure(settings.db_path)
    try:
        db.initialize_db()
    except Exception as e:
        log.warning(f"initialize_db failed: {e}")

    # CORS
    allow = [o.strip() for o in settings.cors_allow_origins.split(",") if o.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    install_app_logging(app)
    install_error_handlers(app)

    # Versioned API
    app.include_router(ai_router, prefix="/v1")
    app.include_router(documents_router, prefix="/v1")

    @app.on_event("shutdown")
    async def _close_completion_client():
        await app.state.state.completion.aclose()

    @app.get("/health")
    def health():
        return {"status": "ok", "database": app.state.state.durable_ready()}
    return app


# Convenience for `uvicorn cara.app:app`
app = create_app()
