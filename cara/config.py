from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings.

    Values may be provided via environment variables (prefix ``CARA_``).
    The completion API key is also accepted as plain ``TOGETHER_API_KEY``.
    """

    # HTTP
    cors_allow_origins: str = Field("*", description="Comma-separated origins")

    # Completion API
    together_api_url: str = Field("https://api.together.xyz/v1", description="OpenAI-compatible base URL")
    together_api_key: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("CARA_TOGETHER_API_KEY", "TOGETHER_API_KEY"),
    )
    completion_model: str = "mistralai/Mixtral-8x7B-Instruct-v0.1"
    completion_max_tokens: int = 1000
    completion_temperature: float = 0.6
    completion_top_p: float = 0.9
    completion_top_k: int = 40
    completion_repetition_penalty: float = 1.1
    request_timeout_s: float = Field(30.0, description="HTTP timeout for one completion request")
    chat_timeout_s: float = Field(30.0, description="Upper bound on the chat reply wait")

    # Storage
    db_path: Optional[str] = Field(None, description="SQLite file; defaults to cara.db beside the package")
    uploads_dir: str = Field("uploads", description="Directory for uploaded documents")
    upload_max_bytes: int = 10 * 1024 * 1024

    class Config:
        env_prefix = "CARA_"
        case_sensitive = False

    def completion_defaults(self) -> Dict[str, Any]:
        return {
            "model": self.completion_model,
            "max_tokens": self.completion_max_tokens,
            "temperature": self.completion_temperature,
            "top_p": self.completion_top_p,
            "top_k": self.completion_top_k,
            "repetition_penalty": self.completion_repetition_penalty,
        }


def load_settings() -> Settings:
    return Settings()  # type: ignore[call-arg]
