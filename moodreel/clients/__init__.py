"""
MoodReel — LLM Chat Transports

Factory + Adapter pattern: every provider is adapted to one coroutine,
`complete(messages) -> str`, that returns the raw message content or
raises one of the typed provider errors.

Design patterns used:
  - Factory: create_transport() picks the provider from settings
  - Adapter: ClovaTransport (raw httpx) and OpenAICompatTransport
    (LangChain ChatOpenAI) expose the same interface

No retries happen here; callers decide whether a failure is worth
repeating (see moodreel.backfill).
"""

from __future__ import annotations

import logging
import re
from typing import Any, Dict, List, Optional, Protocol

import httpx
from langchain_core.messages import AIMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from openai import APIConnectionError, APIStatusError

from moodreel.config import Settings
from moodreel.errors import EmptyResponseError, MalformedResponseError, ProviderError

logger = logging.getLogger(__name__)

# Fixed sampling knobs shared by every mood / scoring prompt
TEMPERATURE = 0.3
TOP_P = 0.8
MAX_TOKENS = 256


class ChatTransport(Protocol):
    async def complete(self, messages: List[Dict[str, str]]) -> str: ...

    async def check_health(self) -> Dict[str, Any]: ...

    async def aclose(self) -> None: ...


def _timeout(seconds: Optional[float]) -> httpx.Timeout:
    # httpx.Timeout(None) disables every client-side deadline
    return httpx.Timeout(seconds)


# ── CLOVA Studio (raw HTTP) ──────────────────────────────


class ClovaTransport:
    """POSTs the fixed request shape to a CLOVA Studio chat-completions URL."""

    SUCCESS_CODE = "20000"

    def __init__(
        self,
        *,
        api_key: str,
        url: str,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._url = url
        self._headers = {
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        }
        self._configured = bool(api_key)
        self._client = client or httpx.AsyncClient(timeout=_timeout(timeout))

    @staticmethod
    def build_body(messages: List[Dict[str, str]]) -> Dict[str, Any]:
        return {
            "messages": messages,
            "topP": TOP_P,
            "topK": 0,
            "maxTokens": MAX_TOKENS,
            "temperature": TEMPERATURE,
            "repeatPenalty": 5.0,
            "stopBefore": [],
            "includeAiFilters": True,
            "seed": 0,
        }

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        try:
            resp = await self._client.post(
                self._url, json=self.build_body(messages), headers=self._headers,
            )
        except httpx.HTTPError as exc:
            logger.error("CLOVA request failed: %s", exc)
            raise ProviderError(f"LLM provider unreachable: {exc}") from exc

        if not resp.is_success:
            logger.error("CLOVA error %d: %s", resp.status_code, resp.text[:300])
            raise ProviderError(
                f"LLM provider returned HTTP {resp.status_code}",
                status=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise MalformedResponseError("LLM provider returned a non-JSON envelope") from exc

        status = data.get("status") or {}
        code = status.get("code")
        if code is not None and str(code) != self.SUCCESS_CODE:
            logger.error("CLOVA status %s: %s", code, status.get("message"))
            raise ProviderError(
                f"LLM provider reported status {code}: {status.get('message', '')}",
                status=resp.status_code,
            )

        content = ((data.get("result") or {}).get("message") or {}).get("content")
        if not content or not isinstance(content, str):
            raise EmptyResponseError("No content returned from the LLM provider")

        logger.debug("CLOVA response: %d chars", len(content))
        return content

    async def check_health(self) -> Dict[str, Any]:
        return {"provider": "clova", "configured": self._configured}

    async def aclose(self) -> None:
        if not self._client.is_closed:
            await self._client.aclose()


# ── OpenAI-compatible server (LangChain + vLLM) ──────────


def _to_langchain_messages(messages: List[Dict[str, str]]) -> list:
    """Convert our dict-based messages to LangChain message objects."""
    lc_msgs = []
    for msg in messages:
        role = msg["role"]
        content = msg["content"]
        if role == "system":
            lc_msgs.append(SystemMessage(content=content))
        elif role == "assistant":
            lc_msgs.append(AIMessage(content=content))
        else:
            lc_msgs.append(HumanMessage(content=content))
    return lc_msgs


def _strip_thinking(text: str) -> str:
    """Remove Qwen3 <think>...</think> blocks from the response."""
    text = re.sub(r"<think>.*?</think>\s*", "", text, flags=re.DOTALL)
    text = re.sub(r"<think>.*", "", text, flags=re.DOTALL)
    return text.strip()


class OpenAICompatTransport:
    """Talks to a vLLM (or any OpenAI-compatible) server through ChatOpenAI."""

    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        api_key: str = "EMPTY",
        timeout: Optional[float] = None,
        llm: Optional[ChatOpenAI] = None,
    ) -> None:
        self._base_url = base_url
        self._model = model
        self._timeout = timeout
        self._llm = llm or ChatOpenAI(
            model=model,
            openai_api_key=api_key,
            openai_api_base=base_url,
            temperature=TEMPERATURE,
            max_tokens=MAX_TOKENS,
            top_p=TOP_P,
            max_retries=0,
            timeout=timeout,
            extra_body={
                "chat_template_kwargs": {"enable_thinking": False},
            },
        )

    async def complete(self, messages: List[Dict[str, str]]) -> str:
        logger.debug("LLM request: model=%s tokens=%d", self._model, MAX_TOKENS)
        try:
            response = await self._llm.ainvoke(_to_langchain_messages(messages))
        except APIStatusError as exc:
            logger.error("LLM error %d: %s", exc.status_code, exc.message)
            raise ProviderError(
                f"LLM provider returned HTTP {exc.status_code}", status=exc.status_code,
            ) from exc
        except APIConnectionError as exc:
            logger.error("LLM connection failed: %s", exc)
            raise ProviderError(f"LLM provider unreachable: {exc}") from exc

        content = _strip_thinking(str(response.content or ""))
        if not content:
            raise EmptyResponseError("No content returned from the LLM provider")

        logger.debug("LLM response: %d chars, first 100: %s", len(content), repr(content[:100]))
        return content

    async def check_health(self) -> Dict[str, Any]:
        """Return model info from the vLLM server."""
        async with httpx.AsyncClient(
            base_url=self._base_url,
            timeout=httpx.Timeout(connect=10.0, read=30.0, write=10.0, pool=10.0),
        ) as client:
            resp = await client.get("/models")
            resp.raise_for_status()
            data = resp.json()
        return {
            "provider": "openai",
            "models": [m["id"] for m in data.get("data", [])],
        }

    async def aclose(self) -> None:
        return None


# ── Factory ──────────────────────────────────────────────


def create_transport(settings: Settings) -> ChatTransport:
    """Build the transport selected by `settings.llm_provider`."""
    if settings.llm_provider == "openai":
        return OpenAICompatTransport(
            base_url=settings.vllm_base_url,
            model=settings.vllm_model,
            timeout=settings.llm_timeout_seconds,
        )
    return ClovaTransport(
        api_key=settings.clova_api_key,
        url=settings.clova_chat_url,
        timeout=settings.llm_timeout_seconds,
    )
