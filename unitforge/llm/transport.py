"""
LLM transport: text in, text out.

Two backends share one retry loop:
- GeminiTransport talks to Google Gemini through google-generativeai
- ProxyTransport posts OpenAI-style chat completions to an HTTP proxy

Every call carries its own timeout. Transport retries (exponential backoff)
are independent of the workflow's validation retries.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import httpx
from loguru import logger

from config import Settings, get_settings
from unitforge.errors import TransportError


@dataclass(frozen=True)
class CompletionOptions:
    """Per-call generation options."""

    json_mode: bool = True
    temperature: float = 0.7
    max_output_tokens: int = 8192
    timeout_ms: int | None = None  # None = transport default
    system_prompt: str | None = None


@runtime_checkable
class LLMTransport(Protocol):
    """Anything that can turn a prompt into completion text."""

    async def complete(self, prompt: str, options: CompletionOptions | None = None) -> str:
        ...


class RetryingTransport:
    """
    Base class holding the timeout and retry policy.

    Subclasses implement _send(); it must raise TransportError with
    retryable=False for errors that a retry cannot fix (bad key, bad request).
    """

    name = "llm"

    def __init__(
        self,
        timeout_ms: int = 30000,
        retry_attempts: int = 3,
        backoff_base: float = 1.0,
    ):
        """
        Args:
            timeout_ms: Default per-call timeout in milliseconds
            retry_attempts: Attempts per call before giving up
            backoff_base: Seconds to wait before the second attempt (doubles each time)
        """
        self.timeout_ms = timeout_ms
        self.retry_attempts = max(1, retry_attempts)
        self.backoff_base = backoff_base

    async def _send(self, prompt: str, options: CompletionOptions) -> str:
        raise NotImplementedError

    async def complete(self, prompt: str, options: CompletionOptions | None = None) -> str:
        """
        Send a prompt with timeout and retry.

        Raises:
            TransportError: When all attempts fail or the error is not retryable
        """
        options = options or CompletionOptions()
        timeout_seconds = (options.timeout_ms or self.timeout_ms) / 1000.0
        last_error: Exception | None = None

        for attempt in range(self.retry_attempts):
            try:
                text = await asyncio.wait_for(self._send(prompt, options), timeout=timeout_seconds)
                if not text or not text.strip():
                    raise TransportError(f"Empty response from {self.name}")
                return text

            except asyncio.TimeoutError:
                last_error = TransportError(f"{self.name} timed out after {timeout_seconds:.0f}s")

            except TransportError as e:
                if not e.retryable:
                    logger.error(f"{self.name} request rejected: {e}")
                    raise
                last_error = e

            wait_time = self.backoff_base * (2 ** attempt)  # 1s, 2s, 4s
            if attempt < self.retry_attempts - 1:
                logger.warning(
                    f"{self.name} call failed on attempt {attempt + 1}/{self.retry_attempts}: "
                    f"{last_error}. Retrying in {wait_time:.0f}s..."
                )
                await asyncio.sleep(wait_time)

        logger.error(f"{self.name} call failed after {self.retry_attempts} attempts: {last_error}")
        raise TransportError(
            f"{self.name} call failed after {self.retry_attempts} attempts: {last_error}"
        )


class GeminiTransport(RetryingTransport):
    """Google Gemini backend."""

    name = "Gemini"

    def __init__(
        self,
        api_key: str | None = None,
        model_name: str | None = None,
        timeout_ms: int | None = None,
        retry_attempts: int | None = None,
        backoff_base: float = 1.0,
    ):
        settings = get_settings()
        super().__init__(
            timeout_ms=timeout_ms or settings.llm_timeout_ms,
            retry_attempts=retry_attempts or settings.llm_transport_retries,
            backoff_base=backoff_base,
        )
        self.api_key = api_key or settings.gemini_api_key
        self.model_name = model_name or settings.ai_model

        if not self.api_key:
            raise ValueError("Gemini API key required")

        self._models: dict[str | None, Any] = {}

    def _model(self, system_prompt: str | None):
        """Lazy-load a Gemini model per system instruction."""
        if system_prompt not in self._models:
            import google.generativeai as genai

            genai.configure(api_key=self.api_key)
            self._models[system_prompt] = genai.GenerativeModel(
                model_name=self.model_name,
                system_instruction=system_prompt,
            )
        return self._models[system_prompt]

    async def _send(self, prompt: str, options: CompletionOptions) -> str:
        from google.api_core import exceptions as google_exceptions

        generation_config: dict[str, Any] = {
            "temperature": options.temperature,
            "top_p": 0.8,
            "max_output_tokens": options.max_output_tokens,
        }
        if options.json_mode:
            generation_config["response_mime_type"] = "application/json"

        try:
            response = await self._model(options.system_prompt).generate_content_async(
                prompt,
                generation_config=generation_config,
            )
        except google_exceptions.TooManyRequests as e:
            raise TransportError(f"Gemini rate limited: {e}") from e
        except google_exceptions.ClientError as e:
            raise TransportError(f"Gemini client error: {e}", retryable=False) from e
        except google_exceptions.GoogleAPIError as e:
            raise TransportError(f"Gemini API error: {e}") from e

        try:
            return response.text
        except ValueError as e:
            # Raised by the SDK when the candidate was blocked or has no parts
            raise TransportError(f"Gemini returned no text: {e}") from e


class ProxyTransport(RetryingTransport):
    """OpenAI-compatible chat completions behind an HTTP proxy."""

    name = "LLM proxy"

    def __init__(
        self,
        api_url: str,
        model_name: str,
        api_key: str | None = None,
        timeout_ms: int = 30000,
        retry_attempts: int = 3,
        backoff_base: float = 1.0,
    ):
        super().__init__(
            timeout_ms=timeout_ms,
            retry_attempts=retry_attempts,
            backoff_base=backoff_base,
        )
        self.api_url = api_url.rstrip("/")
        self.model_name = model_name
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        # asyncio.wait_for owns the per-call deadline; the client timeout is a backstop
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(None),
            headers=headers,
            follow_redirects=True,
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    def _payload(self, prompt: str, options: CompletionOptions) -> dict[str, Any]:
        messages = []
        if options.system_prompt:
            messages.append({"role": "system", "content": options.system_prompt})
        messages.append({"role": "user", "content": prompt})

        payload: dict[str, Any] = {
            "model": self.model_name,
            "messages": messages,
            "temperature": options.temperature,
            "max_tokens": options.max_output_tokens,
        }
        if options.json_mode:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def _send(self, prompt: str, options: CompletionOptions) -> str:
        try:
            response = await self.client.post(
                f"{self.api_url}/chat/completions",
                json=self._payload(prompt, options),
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise TransportError(f"LLM proxy timeout: {e}") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            # 429 and 5xx are worth retrying; other 4xx are not
            retryable = status == 429 or status >= 500
            raise TransportError(f"LLM proxy returned {status}", retryable=retryable) from e
        except httpx.RequestError as e:
            raise TransportError(f"LLM proxy request error: {e}") from e

        try:
            data = response.json()
            return data["choices"][0]["message"]["content"] or ""
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise TransportError(f"Unexpected LLM proxy payload: {e}", retryable=False) from e


def create_transport(settings: Settings | None = None) -> LLMTransport:
    """Build the transport selected in settings."""
    settings = settings or get_settings()

    if settings.llm_provider == "proxy":
        if not settings.llm_proxy_url:
            raise ValueError("LLM_PROXY_URL required when LLM_PROVIDER=proxy")
        return ProxyTransport(
            api_url=settings.llm_proxy_url,
            model_name=settings.llm_proxy_model,
            api_key=settings.llm_proxy_api_key or None,
            timeout_ms=settings.llm_timeout_ms,
            retry_attempts=settings.llm_transport_retries,
        )

    return GeminiTransport(
        api_key=settings.gemini_api_key,
        model_name=settings.ai_model,
        timeout_ms=settings.llm_timeout_ms,
        retry_attempts=settings.llm_transport_retries,
    )
