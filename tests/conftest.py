import json
import os
import tempfile

import httpx
import pytest

# Point the app at throwaway storage before cara.app is imported by any test module.
_TMP = tempfile.mkdtemp(prefix="cara-tests-")
os.environ["CARA_DB_PATH"] = os.path.join(_TMP, "cara.db")
os.environ["CARA_UPLOADS_DIR"] = os.path.join(_TMP, "uploads")
os.environ["CARA_TOGETHER_API_KEY"] = "test-key"
os.environ.setdefault("CARA_LOG_LEVEL", "WARNING")

from cara.services.completion import CompletionClient  # noqa: E402

DEFAULTS = {
    "model": "test-model",
    "max_tokens": 1000,
    "temperature": 0.6,
    "top_p": 0.9,
    "top_k": 40,
    "repetition_penalty": 1.1,
}


def completion_body(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def make_client(handler, api_key="test-key", timeout_s=5.0):
    return CompletionClient(
        base_url="https://llm.test/v1",
        api_key=api_key,
        defaults=DEFAULTS,
        timeout_s=timeout_s,
        transport=httpx.MockTransport(handler),
    )


class FakeLLM:
    """Canned completion API; records every request payload."""

    def __init__(self, reply="Short answer."):
        self.reply = reply
        self.calls = []

    def handler(self, request):
        self.calls.append(json.loads(request.content))
        return httpx.Response(200, json=completion_body(self.reply))

    def client(self):
        return make_client(self.handler)


@pytest.fixture
def llm(monkeypatch):
    from cara.app import app

    fake = FakeLLM()
    monkeypatch.setattr(app.state.state, "completion", fake.client())
    return fake
