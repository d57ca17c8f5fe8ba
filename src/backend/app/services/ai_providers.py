"""
OCR/LLM provider adapters for structured reservation extraction.

Each provider turns an ExtractionRequest into the raw text the model
answered with. Providers are interchangeable: the extractor only needs
extract_structured(request) -> str.

Wrappers:
- RetryingClient: bounded retries with exponential backoff and jitter,
  stops early when the batch is cancelled
- FallbackClient: tries providers in configured order until one answers
"""

import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests

from app.utils.errors import ExtractionFailure

logger = logging.getLogger(__name__)

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
MISTRAL_URL = "https://api.mistral.ai/v1/chat/completions"
OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"

RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}


@dataclass
class ExtractionRequest:
    """What the extractor asks a provider for."""
    document_text: str
    role_hint: str
    prompt: str
    expected_schema: Dict[str, Any] = field(default_factory=dict)


class ProviderError(Exception):
    """A single provider call failed."""

    def __init__(self, provider: str, message: str, retryable: bool = False):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.retryable = retryable


class BaseProvider:
    """Shared HTTP handling for REST providers."""

    name = "base"

    def __init__(self, api_key: str, model: str, timeout: float = 30.0, session=None):
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _post(self, url: str, payload: Dict, headers: Optional[Dict] = None, params: Optional[Dict] = None) -> Dict:
        try:
            response = self.session.post(
                url,
                json=payload,
                headers=headers or {},
                params=params,
                timeout=self.timeout
            )
        except (requests.Timeout, requests.ConnectionError) as e:
            raise ProviderError(self.name, f"network error: {e}", retryable=True) from e
        except requests.RequestException as e:
            raise ProviderError(self.name, f"request failed: {e}") from e

        if response.status_code >= 400:
            raise ProviderError(
                self.name,
                f"HTTP {response.status_code}: {response.text[:200]}",
                retryable=response.status_code in RETRYABLE_STATUS
            )

        try:
            return response.json()
        except ValueError as e:
            raise ProviderError(self.name, "response is not JSON", retryable=True) from e

    def extract_structured(self, request: ExtractionRequest) -> str:
        raise NotImplementedError


class GeminiProvider(BaseProvider):
    """Google Gemini generateContent REST API."""

    name = "gemini"

    def extract_structured(self, request: ExtractionRequest) -> str:
        payload = {
            "contents": [{"parts": [{"text": request.prompt}]}],
            "generationConfig": {
                "temperature": 0.1,
                "topK": 40,
                "topP": 0.95,
                "maxOutputTokens": 8192,
            }
        }
        data = self._post(
            GEMINI_URL.format(model=self.model),
            payload,
            params={"key": self.api_key}
        )

        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, "response has no candidates") from e

        return "".join(part.get("text", "") for part in parts)


class ChatCompletionsProvider(BaseProvider):
    """OpenAI-compatible chat completions API (Mistral, OpenRouter)."""

    url = ""

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key}"}

    def extract_structured(self, request: ExtractionRequest) -> str:
        payload = {
            "model": self.model,
            "temperature": 0.1,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        data = self._post(self.url, payload, headers=self._headers())

        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderError(self.name, "response has no choices") from e


class MistralProvider(ChatCompletionsProvider):
    name = "mistral"
    url = MISTRAL_URL


class OpenRouterProvider(ChatCompletionsProvider):
    name = "openrouter"
    url = OPENROUTER_URL

    def _headers(self) -> Dict[str, str]:
        headers = super()._headers()
        headers["X-Title"] = "Maria Faz"
        return headers


def backoff_delay(attempt: int, base: float, maximum: float) -> float:
    """Exponential delay for a retry attempt (0-based), with up to 10% jitter."""
    delay = base * (2 ** attempt)
    delay += delay * 0.1 * random.random()
    return min(delay, maximum)


class RetryingClient:
    """
    Wraps a provider with bounded retries.

    Only retryable ProviderErrors are retried. Between attempts the client
    waits on the cancel event, so a cancelled batch stops immediately
    instead of sleeping out the backoff.
    """

    def __init__(
        self,
        provider: BaseProvider,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        backoff_max: float = 30.0,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.provider = provider
        self.name = provider.name
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.sleep = sleep

    def extract_structured(
        self,
        request: ExtractionRequest,
        cancel_event: Optional[threading.Event] = None
    ) -> str:
        last_error = None

        for attempt in range(self.max_retries + 1):
            if cancel_event is not None and cancel_event.is_set():
                raise ExtractionFailure("extraction cancelled", provider=self.name)

            try:
                return self.provider.extract_structured(request)
            except ProviderError as e:
                last_error = e
                if not e.retryable or attempt == self.max_retries:
                    break

                delay = backoff_delay(attempt, self.backoff_base, self.backoff_max)
                logger.warning("Provider call failed, retrying", extra={
                    "provider": self.name,
                    "attempt": attempt + 1,
                    "delay": round(delay, 2),
                    "error": str(e)
                })

                if cancel_event is not None:
                    if cancel_event.wait(delay):
                        raise ExtractionFailure("extraction cancelled", provider=self.name)
                else:
                    self.sleep(delay)

        raise ExtractionFailure(str(last_error), provider=self.name)


class FallbackClient:
    """Tries each client in order, returning the first answer."""

    def __init__(self, clients: List[RetryingClient]):
        self.clients = clients

    def extract_structured(
        self,
        request: ExtractionRequest,
        cancel_event: Optional[threading.Event] = None
    ) -> str:
        if not self.clients:
            raise ExtractionFailure("no AI provider configured")

        errors = []
        for client in self.clients:
            if cancel_event is not None and cancel_event.is_set():
                raise ExtractionFailure("extraction cancelled")

            try:
                text = client.extract_structured(request, cancel_event=cancel_event)
                logger.debug("Provider answered", extra={
                    "provider": client.name,
                    "role": request.role_hint,
                    "response_length": len(text)
                })
                return text
            except ExtractionFailure as e:
                if cancel_event is not None and cancel_event.is_set():
                    raise
                errors.append(f"{client.name}: {e}")
                logger.warning("Provider exhausted, falling back", extra={
                    "provider": client.name,
                    "error": str(e)
                })

        raise ExtractionFailure("all providers failed: " + "; ".join(errors))


PROVIDER_CLASSES = {
    "gemini": (GeminiProvider, "GEMINI_API_KEY", "GEMINI_MODEL"),
    "mistral": (MistralProvider, "MISTRAL_API_KEY", "MISTRAL_MODEL"),
    "openrouter": (OpenRouterProvider, "OPENROUTER_API_KEY", "OPENROUTER_MODEL"),
}


def build_extraction_client(settings) -> FallbackClient:
    """
    Assemble the provider chain from settings.

    Providers without an API key are skipped; unknown names in
    AI_PROVIDER_ORDER are logged and ignored.
    """
    clients = []
    for name in settings.AI_PROVIDER_ORDER:
        provider_entry = PROVIDER_CLASSES.get(name.lower())
        if provider_entry is None:
            logger.warning("Unknown AI provider in order", extra={"provider": name})
            continue

        provider_cls, key_setting, model_setting = provider_entry
        provider = provider_cls(
            api_key=getattr(settings, key_setting),
            model=getattr(settings, model_setting),
            timeout=settings.AI_REQUEST_TIMEOUT
        )
        if not provider.configured:
            continue

        clients.append(RetryingClient(
            provider,
            max_retries=settings.AI_MAX_RETRIES,
            backoff_base=settings.AI_BACKOFF_BASE,
            backoff_max=settings.AI_BACKOFF_MAX
        ))

    logger.info("AI provider chain ready", extra={
        "providers": [client.name for client in clients]
    })
    return FallbackClient(clients)
