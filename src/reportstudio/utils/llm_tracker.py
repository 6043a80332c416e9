"""
LLM usage tracking for the NLQ engine.

Records every completion call made for SQL generation or refinement together
with token counts, latency and an estimated cost.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from reportstudio.logger import get_logger

logger = get_logger(__name__)


# USD per 1M tokens
LLM_PRICING = {
    "gpt-4o": {"input": 2.50, "output": 10.00},
    "gpt-4o-mini": {"input": 0.150, "output": 0.600},
    "gpt-4.1": {"input": 2.00, "output": 8.00},
    "gpt-4.1-mini": {"input": 0.40, "output": 1.60},
    "gpt-4-turbo": {"input": 10.00, "output": 30.00},
    "gpt-3.5-turbo": {"input": 0.50, "output": 1.50},
}


@dataclass
class LLMCall:
    """A single completion call"""

    stage: str  # "nlq_generate", "nlq_refine"
    model: str
    prompt_tokens: int
    completion_tokens: int
    latency_ms: float
    prompt_chars: int = 0
    response_chars: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens

    def estimate_cost(self) -> float:
        """Estimated cost in USD; unknown models cost 0."""
        pricing = LLM_PRICING.get(self.model, {"input": 0.0, "output": 0.0})
        return (
            (self.prompt_tokens / 1_000_000) * pricing["input"]
            + (self.completion_tokens / 1_000_000) * pricing["output"]
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "model": self.model,
            "tokens": {
                "prompt": self.prompt_tokens,
                "completion": self.completion_tokens,
                "total": self.total_tokens,
            },
            "latency_ms": round(self.latency_ms, 2),
            "cost_usd": round(self.estimate_cost(), 6),
            "chars": {"prompt": self.prompt_chars, "response": self.response_chars},
        }


class LLMTracker:
    """Collects LLMCall records for one client instance"""

    def __init__(self):
        self.calls: List[LLMCall] = []

    def track_call(
        self,
        stage: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: float,
        prompt_chars: int = 0,
        response_chars: int = 0,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> LLMCall:
        """
        Record a completion call.

        Args:
            stage: Which operation made the call (e.g. "nlq_generate")
            model: Model name
            prompt_tokens: Input tokens
            completion_tokens: Output tokens
            latency_ms: Response time in milliseconds
            prompt_chars: Character count of the prompt
            response_chars: Character count of the response
            metadata: Additional metadata

        Returns:
            The recorded LLMCall
        """
        call = LLMCall(
            stage=stage,
            model=model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            latency_ms=latency_ms,
            prompt_chars=prompt_chars,
            response_chars=response_chars,
            metadata=metadata or {},
        )
        self.calls.append(call)

        logger.info(
            f"💰 [llm-tracker] {stage} | {model} | "
            f"tokens: {prompt_tokens}+{completion_tokens}={call.total_tokens} | "
            f"latency: {latency_ms:.1f}ms | "
            f"cost: ${call.estimate_cost():.6f}"
        )
        return call

    def get_summary(self) -> Dict[str, Any]:
        """Totals plus a per-stage breakdown."""
        by_stage: Dict[str, Dict[str, Any]] = {}
        for call in self.calls:
            stage = by_stage.setdefault(
                call.stage, {"calls": 0, "tokens": 0, "cost_usd": 0.0, "latency_ms": 0.0}
            )
            stage["calls"] += 1
            stage["tokens"] += call.total_tokens
            stage["cost_usd"] += call.estimate_cost()
            stage["latency_ms"] += call.latency_ms

        for stage in by_stage.values():
            stage["cost_usd"] = round(stage["cost_usd"], 6)
            stage["latency_ms"] = round(stage["latency_ms"], 2)

        return {
            "total_calls": len(self.calls),
            "total_tokens": sum(c.total_tokens for c in self.calls),
            "total_cost_usd": round(sum(c.estimate_cost() for c in self.calls), 6),
            "total_latency_ms": round(sum(c.latency_ms for c in self.calls), 2),
            "by_stage": by_stage,
            "calls": [c.to_dict() for c in self.calls],
        }
