"""Text-generation providers.

A provider is anything with a `name` and a `complete(prompt) -> str` method.
`ChatCompletionProvider` talks to OpenAI-compatible chat completion
endpoints (OpenRouter, Groq) and retries transport errors, non-2xx
responses and malformed bodies with exponential backoff before giving up
with a `ProviderError`.
"""
import logging
import time
from typing import Protocol

import requests

from ailesson.config import Settings, get_settings
from ailesson.errors import ProviderError

logger = logging.getLogger(__name__)


class TextProvider(Protocol):
    name: str

    def complete(self, prompt: str) -> str:
        ...


class ChatCompletionProvider:
    def __init__(
        self,
        name: str,
        base_url: str,
        api_key: str,
        model: str,
        timeout: float = 60.0,
        max_retries: int = 3,
        backoff_base: float = 1.0,
        backoff_max: float = 8.0,
        temperature: float = 0.7,
        max_tokens: int = 2000,
    ):
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.backoff_base = backoff_base
        self.backoff_max = backoff_max
        self.temperature = temperature
        self.max_tokens = max_tokens

    def __repr__(self) -> str:
        return f"ChatCompletionProvider(name={self.name!r}, model={self.model!r})"

    def _request(self, prompt: str) -> str:
        r = requests.post(
            f"{self.base_url}/chat/completions",
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "Content-Type": "application/json",
            },
            json={
                "model": self.model,
                "messages": [{"role": "user", "content": prompt}],
                "temperature": self.temperature,
                "max_tokens": self.max_tokens,
            },
            timeout=self.timeout,
        )
        r.raise_for_status()
        content = r.json()["choices"][0]["message"]["content"]
        if not content:
            raise ValueError("empty completion")
        return content

    def complete(self, prompt: str) -> str:
        if not self.api_key:
            raise ProviderError(self.name, "API key not configured")
        delay = self.backoff_base
        last_exc: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                return self._request(prompt)
            except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as e:
                last_exc = e
                logger.warning(
                    "%s request failed (attempt %s/%s): %s", self.name, attempt, self.max_retries, e
                )
                if attempt < self.max_retries:
                    time.sleep(delay)
                    delay = min(self.backoff_max, delay * 2)
        raise ProviderError(
            self.name, f"failed after {self.max_retries} attempts: {last_exc}"
        ) from last_exc


def default_providers(settings: Settings | None = None) -> list[ChatCompletionProvider]:
    """OpenRouter first, Groq as the fallback."""
    settings = settings or get_settings()
    common = dict(
        timeout=settings.request_timeout,
        max_retries=settings.max_retries,
        backoff_base=settings.backoff_base,
        backoff_max=settings.backoff_max,
    )
    return [
        ChatCompletionProvider(
            "openrouter",
            settings.openrouter_base_url,
            settings.openrouter_api_key,
            settings.openrouter_model,
            **common,
        ),
        ChatCompletionProvider(
            "groq",
            settings.groq_base_url,
            settings.groq_api_key,
            settings.groq_model,
            **common,
        ),
    ]
