"""
Completion client boundary.

The NLQ engine only needs "messages in, text out". Anything that implements
``complete(messages, *, temperature, max_tokens) -> str`` can back it; two
adapters are provided here.
"""

import time
from typing import Any, Dict, List, Optional, Protocol

from openai import OpenAI

from reportstudio.config import settings
from reportstudio.logger import get_logger
from reportstudio.nlq.exceptions import CompletionError
from reportstudio.utils.llm_tracker import LLMTracker

logger = get_logger(__name__)

Messages = List[Dict[str, str]]


class CompletionClient(Protocol):
    """Opaque text completion service."""

    def complete(self, messages: Messages, *, temperature: float, max_tokens: int) -> str:
        ...


def _get(obj: Any, name: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def extract_completion_text(response: Any) -> str:
    """
    Read ``choices[0].message.content`` from a chat completion response.

    Works with SDK objects and plain dicts. Missing content yields "".
    """
    choices = _get(response, "choices")
    if choices is None:
        raise CompletionError("Completion response has no choices")
    if not choices:
        return ""
    message = _get(choices[0], "message")
    content = _get(message, "content") if message is not None else None
    return (content or "").strip()


class OpenAICompletionClient:
    """CompletionClient backed by the OpenAI chat completions API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        tracker: Optional[LLMTracker] = None,
        stage: str = "nlq",
    ):
        self.model = model or settings.llm_model
        self.stage = stage
        self.tracker = tracker or LLMTracker()
        self.client = OpenAI(
            api_key=api_key or settings.openai_api_key,
            base_url=base_url or settings.openai_base_url,
            timeout=timeout if timeout is not None else settings.llm_timeout,
        )
        logger.info(f"[llm] OpenAI completion client ready (model={self.model})")

    def complete(self, messages: Messages, *, temperature: float, max_tokens: int) -> str:
        t0 = time.perf_counter()
        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        dt_ms = (time.perf_counter() - t0) * 1000.0

        text = extract_completion_text(response)
        usage = getattr(response, "usage", None)
        self.tracker.track_call(
            stage=self.stage,
            model=getattr(response, "model", None) or self.model,
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
            latency_ms=dt_ms,
            prompt_chars=sum(len(m.get("content", "")) for m in messages),
            response_chars=len(text),
        )
        logger.debug(f"[llm] raw completion: {text}")
        return text


class ChatCompletionAdapter:
    """
    Adapts a service exposing ``generate_chat_completion(messages, options)``.

    ``options`` carries ``temperature`` and ``maxTokens``; the returned object
    must expose ``choices[0].message.content``.
    """

    def __init__(self, service: Any):
        self.service = service

    def complete(self, messages: Messages, *, temperature: float, max_tokens: int) -> str:
        response = self.service.generate_chat_completion(
            messages, {"temperature": temperature, "maxTokens": max_tokens}
        )
        return extract_completion_text(response)
