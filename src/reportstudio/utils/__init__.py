"""Shared utilities."""

from .llm_tracker import LLMCall, LLMTracker

__all__ = ["LLMCall", "LLMTracker"]
