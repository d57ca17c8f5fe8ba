"""
Tests for provider adapters, retry policy and provider fallback.
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import threading
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import requests

from app.services.ai_providers import (
    ExtractionRequest,
    FallbackClient,
    GeminiProvider,
    MistralProvider,
    OpenRouterProvider,
    ProviderError,
    RetryingClient,
    backoff_delay,
    build_extraction_client,
)
from app.utils.errors import ExtractionFailure


def make_request():
    return ExtractionRequest(
        document_text="Maria Silva",
        role_hint="check-in",
        prompt="Extraia as reservas",
    )


def http_response(status_code=200, data=None, text=""):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = data or {}
    response.text = text
    return response


class FlakyProvider:
    """Fails with the given errors, then answers."""

    name = "flaky"

    def __init__(self, errors, answer="{}"):
        self.errors = list(errors)
        self.answer = answer
        self.calls = 0

    def extract_structured(self, request):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.answer


class TestProviders:

    def test_gemini_request_and_response(self):
        session = MagicMock()
        session.post.return_value = http_response(data={
            "candidates": [{"content": {"parts": [{"text": '{"guestName": '}, {"text": '"Maria"}'}]}}]
        })
        provider = GeminiProvider(api_key="key", model="gemini-1.5-flash", timeout=5, session=session)

        assert provider.extract_structured(make_request()) == '{"guestName": "Maria"}'

        args, kwargs = session.post.call_args
        assert "gemini-1.5-flash:generateContent" in args[0]
        assert kwargs['params'] == {"key": "key"}
        assert kwargs['timeout'] == 5
        assert kwargs['json']['generationConfig']['temperature'] == 0.1

    def test_mistral_chat_completion(self):
        session = MagicMock()
        session.post.return_value = http_response(data={
            "choices": [{"message": {"content": "```json\n{}\n```"}}]
        })
        provider = MistralProvider(api_key="secret", model="mistral-large-latest", session=session)

        assert provider.extract_structured(make_request()) == "```json\n{}\n```"

        args, kwargs = session.post.call_args
        assert args[0] == "https://api.mistral.ai/v1/chat/completions"
        assert kwargs['headers']['Authorization'] == "Bearer secret"
        assert kwargs['json']['messages'][0]['content'] == "Extraia as reservas"

    def test_openrouter_headers(self):
        session = MagicMock()
        session.post.return_value = http_response(data={"choices": [{"message": {"content": "ok"}}]})
        OpenRouterProvider(api_key="k", model="m", session=session).extract_structured(make_request())
        assert session.post.call_args[1]['headers']['X-Title'] == "Maria Faz"

    @pytest.mark.parametrize("status,retryable", [(429, True), (503, True), (400, False), (401, False)])
    def test_http_errors(self, status, retryable):
        session = MagicMock()
        session.post.return_value = http_response(status_code=status, text="error")
        provider = MistralProvider(api_key="k", model="m", session=session)

        with pytest.raises(ProviderError) as exc_info:
            provider.extract_structured(make_request())
        assert exc_info.value.retryable is retryable

    def test_timeout_is_retryable(self):
        session = MagicMock()
        session.post.side_effect = requests.Timeout("read timed out")
        provider = GeminiProvider(api_key="k", model="m", session=session)

        with pytest.raises(ProviderError) as exc_info:
            provider.extract_structured(make_request())
        assert exc_info.value.retryable

    def test_malformed_body(self):
        session = MagicMock()
        session.post.return_value = http_response(data={"candidates": []})
        with pytest.raises(ProviderError):
            GeminiProvider(api_key="k", model="m", session=session).extract_structured(make_request())


class TestRetryingClient:

    def test_retries_transient_errors(self):
        provider = FlakyProvider([
            ProviderError("flaky", "HTTP 429", retryable=True),
            ProviderError("flaky", "HTTP 503", retryable=True),
        ], answer="done")
        sleeps = []
        client = RetryingClient(provider, max_retries=3, backoff_base=1.0, sleep=sleeps.append)

        assert client.extract_structured(make_request()) == "done"
        assert provider.calls == 3
        assert len(sleeps) == 2
        assert 1.0 <= sleeps[0] <= 1.1
        assert 2.0 <= sleeps[1] <= 2.2

    def test_does_not_retry_permanent_errors(self):
        provider = FlakyProvider([ProviderError("flaky", "HTTP 401", retryable=False)])
        client = RetryingClient(provider, max_retries=3, sleep=lambda _: None)

        with pytest.raises(ExtractionFailure):
            client.extract_structured(make_request())
        assert provider.calls == 1

    def test_bounded_attempts(self):
        provider = FlakyProvider([ProviderError("flaky", "HTTP 503", retryable=True)] * 5)
        client = RetryingClient(provider, max_retries=2, sleep=lambda _: None)

        with pytest.raises(ExtractionFailure):
            client.extract_structured(make_request())
        assert provider.calls == 3

    def test_cancelled_before_call(self):
        provider = FlakyProvider([])
        cancel_event = threading.Event()
        cancel_event.set()

        with pytest.raises(ExtractionFailure):
            RetryingClient(provider).extract_structured(make_request(), cancel_event=cancel_event)
        assert provider.calls == 0

    def test_cancel_interrupts_backoff(self):
        cancel_event = threading.Event()

        class CancellingProvider(FlakyProvider):
            def extract_structured(self, request):
                cancel_event.set()
                return super().extract_structured(request)

        provider = CancellingProvider([ProviderError("flaky", "HTTP 503", retryable=True)])
        client = RetryingClient(provider, max_retries=3, backoff_base=30.0)

        with pytest.raises(ExtractionFailure):
            client.extract_structured(make_request(), cancel_event=cancel_event)
        assert provider.calls == 1

    def test_backoff_is_capped(self):
        assert backoff_delay(10, base=1.0, maximum=30.0) == 30.0
        assert 4.0 <= backoff_delay(2, base=1.0, maximum=30.0) <= 4.4


class TestFallbackClient:

    def _client(self, provider):
        return RetryingClient(provider, max_retries=0, sleep=lambda _: None)

    def test_falls_back_in_order(self):
        first = FlakyProvider([ProviderError("flaky", "HTTP 500", retryable=True)])
        second = FlakyProvider([], answer="second")
        client = FallbackClient([self._client(first), self._client(second)])

        assert client.extract_structured(make_request()) == "second"
        assert first.calls == 1
        assert second.calls == 1

    def test_stops_at_first_answer(self):
        first = FlakyProvider([], answer="first")
        second = FlakyProvider([], answer="second")
        client = FallbackClient([self._client(first), self._client(second)])

        assert client.extract_structured(make_request()) == "first"
        assert second.calls == 0

    def test_all_providers_fail(self):
        client = FallbackClient([
            self._client(FlakyProvider([ProviderError("flaky", "HTTP 400")])),
            self._client(FlakyProvider([ProviderError("flaky", "HTTP 400")])),
        ])
        with pytest.raises(ExtractionFailure):
            client.extract_structured(make_request())

    def test_no_providers(self):
        with pytest.raises(ExtractionFailure):
            FallbackClient([]).extract_structured(make_request())


class TestBuildExtractionClient:

    def test_skips_providers_without_keys(self):
        config = SimpleNamespace(
            AI_PROVIDER_ORDER=["gemini", "mistral", "unknown", "openrouter"],
            GEMINI_API_KEY="", GEMINI_MODEL="gemini-1.5-flash",
            MISTRAL_API_KEY="m-key", MISTRAL_MODEL="mistral-large-latest",
            OPENROUTER_API_KEY="o-key", OPENROUTER_MODEL="mistralai/mistral-large",
            AI_REQUEST_TIMEOUT=30.0, AI_MAX_RETRIES=2, AI_BACKOFF_BASE=1.0, AI_BACKOFF_MAX=30.0,
        )
        client = build_extraction_client(config)

        assert [c.name for c in client.clients] == ["mistral", "openrouter"]
        assert client.clients[0].max_retries == 2
