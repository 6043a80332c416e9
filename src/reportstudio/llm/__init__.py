"""Completion service clients."""

from .client import (
    ChatCompletionAdapter,
    CompletionClient,
    OpenAICompletionClient,
    extract_completion_text,
)

__all__ = [
    "ChatCompletionAdapter",
    "CompletionClient",
    "OpenAICompletionClient",
    "extract_completion_text",
]
