"""Unit tests for the Gemini slide editing model client."""

from types import SimpleNamespace

import pytest

from agents.editing.config import ModelConfig
from agents.editing.exceptions import ProviderError
from agents.editing.model_client import EmptyModelResponse, SlideEditModelClient, TransientErrorClassifier
from utils.retry import RetryPolicy


class FakeModels:
    """Stands in for genai.Client().models"""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def generate_content(self, model, contents, config=None):
        self.calls.append({"model": model, "contents": contents, "config": config})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return SimpleNamespace(text=outcome)


def _client(outcomes, sleep_recorder, max_attempts=4):
    models = FakeModels(outcomes)
    classifier = TransientErrorClassifier()
    client = SlideEditModelClient(
        client=SimpleNamespace(models=models),
        model_config=ModelConfig(model="gemini-test", temperature=0.3, max_output_tokens=1024, top_p=0.9, top_k=50),
        retry_policy=RetryPolicy(max_attempts=max_attempts, base_delay=1.0, is_transient=classifier, sleep=sleep_recorder),
    )
    return client, models


class TestTransientErrorClassifier:
    """Test provider error classification."""

    def test_marker_substrings(self):
        classify = TransientErrorClassifier()
        assert classify(RuntimeError("503 Service Unavailable"))
        assert classify(RuntimeError("The model is overloaded. Please try again later."))
        assert classify(RuntimeError("Rate Limit exceeded"))
        assert not classify(RuntimeError("API key not valid"))

    def test_empty_response_is_not_transient(self):
        assert not TransientErrorClassifier()(EmptyModelResponse("overloaded"))

    def test_custom_markers(self):
        classify = TransientErrorClassifier(markers=["try later"])
        assert classify(RuntimeError("Please TRY LATER"))
        assert not classify(RuntimeError("503"))


class TestSlideEditModelClient:
    """Test SlideEditModelClient.call."""

    async def test_returns_text(self, sleep_recorder):
        client, models = _client(['{"editedTitle": "x"}'], sleep_recorder)

        assert await client.call("prompt") == '{"editedTitle": "x"}'
        assert models.calls[0]["model"] == "gemini-test"
        assert models.calls[0]["contents"] == "prompt"
        assert models.calls[0]["config"].max_output_tokens == 1024
        assert models.calls[0]["config"].temperature == 0.3

    async def test_retries_transient_errors(self, sleep_recorder):
        client, models = _client(
            [RuntimeError("503 UNAVAILABLE"), RuntimeError("model overloaded"), "ok"], sleep_recorder
        )

        assert await client.call("prompt") == "ok"
        assert len(models.calls) == 3
        assert sleep_recorder.delays == [1.0, 2.0]

    async def test_exhausted_retries_raise_transient_provider_error(self, sleep_recorder):
        client, models = _client([RuntimeError("503 UNAVAILABLE")] * 4, sleep_recorder)

        with pytest.raises(ProviderError) as exc_info:
            await client.call("prompt")
        assert exc_info.value.transient is True
        assert exc_info.value.attempts == 4
        assert len(models.calls) == 4

    async def test_permanent_error_is_not_retried(self, sleep_recorder):
        client, models = _client([RuntimeError("API key not valid")], sleep_recorder)

        with pytest.raises(ProviderError) as exc_info:
            await client.call("prompt")
        assert exc_info.value.transient is False
        assert exc_info.value.attempts == 1
        assert isinstance(exc_info.value.cause, RuntimeError)

    async def test_empty_text_is_provider_error(self, sleep_recorder):
        client, models = _client(["   "], sleep_recorder)

        with pytest.raises(ProviderError) as exc_info:
            await client.call("prompt")
        assert len(models.calls) == 1
        assert "Empty response" in str(exc_info.value)
