from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger("app.completion")

FALLBACK_RESPONSES = (
    "I apologize, but I'm currently experiencing technical difficulties. Please try again in a moment.",
    "I'm having trouble connecting to my knowledge base. Could you please repeat your question later?",
    "Sorry, there seems to be a temporary issue with my service. Please try again shortly.",
    "My systems are currently experiencing high traffic. Please try your question again in a few minutes.",
)

# Used only when the caller's own deadline expires; kept out of FALLBACK_RESPONSES.
TIMEOUT_RESPONSE = (
    "I apologize, but I'm having some trouble processing your request right now. Please try again shortly."
)


class CompletionCancelled(Exception):
    """Raised to the canceller when a completion was aborted via its CancelToken."""


class CancelToken:
    """One-shot cancellation signal handed to an outbound completion call."""

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


def _wrap(content: str) -> Dict[str, Any]:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def random_fallback() -> str:
    return random.choice(FALLBACK_RESPONSES)


class CompletionClient:
    """Client for an OpenAI-compatible ``/chat/completions`` endpoint.

    Failures never escape: any transport error, non-2xx status or malformed
    body yields a response of the usual shape carrying a fallback apology.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        defaults: Dict[str, Any],
        timeout_s: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.defaults = dict(defaults)
        self.timeout_s = timeout_s
        self._transport = transport
        # One pooled connection set per client; closed on app shutdown
        self._client: Optional[httpx.AsyncClient] = None

    def build_payload(self, messages: List[Dict[str, str]], options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        return {**self.defaults, **(options or {}), "messages": messages}

    def _http(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                    "User-Agent": "cara-backend/1.0",
                },
                timeout=httpx.Timeout(self.timeout_s),
                transport=self._transport,
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        resp = await self._http().post("/chat/completions", json=payload)
        resp.raise_for_status()
        return resp.json()

    async def _post_or_fallback(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        start = time.perf_counter()
        try:
            data = await self._post(payload)
            content = data["choices"][0]["message"]["content"]
            if not isinstance(content, str):
                raise ValueError("completion content is not text")
        except httpx.HTTPStatusError as e:
            logger.error(f"completion API returned HTTP {e.response.status_code}: {e.response.text[:500]}")
            return _wrap(random_fallback())
        except httpx.TimeoutException:
            logger.error("completion API request timed out")
            return _wrap(random_fallback())
        except httpx.HTTPError as e:
            logger.error(f"completion API request failed: {e}")
            return _wrap(random_fallback())
        except (ValueError, KeyError, IndexError, TypeError) as e:
            logger.error(f"completion API returned an unexpected body: {e}")
            return _wrap(random_fallback())
        logger.info(f"completion ok in {int((time.perf_counter() - start) * 1000)} ms")
        return data

    async def create_completion(
        self,
        messages: List[Dict[str, str]],
        options: Optional[Dict[str, Any]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        if not self.api_key:
            logger.error("completion API key is not configured")
            return _wrap(random_fallback())

        payload = self.build_payload(messages, options)
        first_user = next((m.get("content", "") for m in messages if m.get("role") == "user"), "")
        logger.debug(
            f"completion request model={payload.get('model')} messages={len(messages)} "
            f"first_user={first_user[:50]!r}"
        )
        if cancel is None:
            return await self._post_or_fallback(payload)

        request_task = asyncio.ensure_future(self._post_or_fallback(payload))
        cancel_task = asyncio.ensure_future(cancel.wait())
        done, pending = await asyncio.wait(
            {request_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        if request_task in done:
            return request_task.result()
        logger.warning("completion request aborted by caller")
        raise CompletionCancelled()

    async def complete(
        self,
        messages: List[Dict[str, str]],
        options: Optional[Dict[str, Any]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> str:
        data = await self.create_completion(messages, options, cancel=cancel)
        return data["choices"][0]["message"]["content"]


async def complete_with_timeout(
    client: CompletionClient,
    messages: List[Dict[str, str]],
    timeout_s: float,
    options: Optional[Dict[str, Any]] = None,
) -> str:
    """Run a completion against a deadline.

    On expiry the outbound request is aborted through its CancelToken and
    TIMEOUT_RESPONSE is returned instead.
    """
    token = CancelToken()
    task = asyncio.ensure_future(client.complete(messages, options, cancel=token))
    done, _ = await asyncio.wait({task}, timeout=timeout_s)
    if task in done:
        return task.result()
    token.cancel()
    try:
        await task
    except CompletionCancelled:
        pass
    logger.warning(f"completion exceeded {timeout_s}s; returning timeout message")
    return TIMEOUT_RESPONSE
