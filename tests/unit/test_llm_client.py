"""Tests for completion clients and usage tracking."""

from unittest.mock import Mock

import pytest

from reportstudio.llm.client import (
    ChatCompletionAdapter,
    OpenAICompletionClient,
    extract_completion_text,
)
from reportstudio.nlq.exceptions import CompletionError
from reportstudio.utils.llm_tracker import LLMCall, LLMTracker

MESSAGES = [
    {"role": "system", "content": "You are a SQL expert."},
    {"role": "user", "content": "Count leads"},
]


def chat_response(content, prompt_tokens=100, completion_tokens=20, model="gpt-4o-mini"):
    response = Mock()
    response.choices = [Mock(message=Mock(content=content))]
    response.usage = Mock(prompt_tokens=prompt_tokens, completion_tokens=completion_tokens)
    response.model = model
    return response


class TestExtractCompletionText:
    """Tests for extract_completion_text."""

    def test_sdk_object(self):
        assert extract_completion_text(chat_response("  SELECT 1 \n")) == "SELECT 1"

    def test_dict_response(self):
        response = {"choices": [{"message": {"content": "SELECT 2"}}]}
        assert extract_completion_text(response) == "SELECT 2"

    def test_empty_choices(self):
        assert extract_completion_text({"choices": []}) == ""

    def test_null_content(self):
        assert extract_completion_text({"choices": [{"message": {"content": None}}]}) == ""

    def test_no_choices(self):
        with pytest.raises(CompletionError):
            extract_completion_text({})


class TestChatCompletionAdapter:
    """Tests for ChatCompletionAdapter."""

    def test_passes_options(self):
        service = Mock()
        service.generate_chat_completion.return_value = {"choices": [{"message": {"content": "SELECT 3"}}]}

        text = ChatCompletionAdapter(service).complete(MESSAGES, temperature=0.1, max_tokens=500)

        assert text == "SELECT 3"
        service.generate_chat_completion.assert_called_once_with(
            MESSAGES, {"temperature": 0.1, "maxTokens": 500}
        )


class TestOpenAICompletionClient:
    """Tests for OpenAICompletionClient with a mocked SDK client."""

    def _client(self):
        client = OpenAICompletionClient(api_key="test-key", model="gpt-4o-mini", stage="nlq_generate")
        client.client = Mock()
        return client

    def test_complete(self):
        client = self._client()
        client.client.chat.completions.create.return_value = chat_response("SELECT 4")

        assert client.complete(MESSAGES, temperature=0.1, max_tokens=500) == "SELECT 4"

        kwargs = client.client.chat.completions.create.call_args.kwargs
        assert kwargs == {
            "model": "gpt-4o-mini",
            "messages": MESSAGES,
            "temperature": 0.1,
            "max_tokens": 500,
        }

    def test_usage_tracked(self):
        client = self._client()
        client.client.chat.completions.create.return_value = chat_response("SELECT 4")
        client.complete(MESSAGES, temperature=0.1, max_tokens=500)

        assert len(client.tracker.calls) == 1
        call = client.tracker.calls[0]
        assert call.stage == "nlq_generate"
        assert call.total_tokens == 120
        assert call.prompt_chars == len("You are a SQL expert.") + len("Count leads")
        assert call.response_chars == len("SELECT 4")

    def test_sdk_error_propagates(self):
        client = self._client()
        client.client.chat.completions.create.side_effect = RuntimeError("rate limited")
        with pytest.raises(RuntimeError):
            client.complete(MESSAGES, temperature=0.1, max_tokens=500)


class TestLLMTracker:
    """Tests for LLMTracker."""

    def test_cost_estimate(self):
        call = LLMCall(
            stage="nlq_generate", model="gpt-4o-mini",
            prompt_tokens=1_000_000, completion_tokens=1_000_000, latency_ms=10.0,
        )
        assert call.estimate_cost() == pytest.approx(0.75)

    def test_unknown_model_costs_nothing(self):
        call = LLMCall(stage="nlq", model="local-model", prompt_tokens=500, completion_tokens=500, latency_ms=1.0)
        assert call.estimate_cost() == 0.0

    def test_summary(self):
        tracker = LLMTracker()
        tracker.track_call("nlq_generate", "gpt-4o-mini", 100, 20, 150.0)
        tracker.track_call("nlq_generate", "gpt-4o-mini", 200, 30, 250.0)
        tracker.track_call("nlq_refine", "gpt-4o-mini", 50, 10, 100.0)

        summary = tracker.get_summary()

        assert summary["total_calls"] == 3
        assert summary["total_tokens"] == 410
        assert summary["total_latency_ms"] == 500.0
        assert summary["by_stage"]["nlq_generate"]["calls"] == 2
        assert summary["by_stage"]["nlq_generate"]["tokens"] == 350
        assert summary["by_stage"]["nlq_refine"]["calls"] == 1
        assert summary["calls"][0]["tokens"] == {"prompt": 100, "completion": 20, "total": 120}
