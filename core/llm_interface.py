# core/llm_interface.py
"""
Handles all direct interactions with the text-generation backend.
Defines the backend interface the engine depends on, an OpenAI-compatible
chat-completions implementation over httpx, and an offline echo backend
used for dry runs.

Retries are not performed here: each ``generate`` call is a single attempt
and failures are classified into transient or fatal errors for the retry
controller.
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Protocol, runtime_checkable

import httpx
import structlog
from config import settings

from core.errors import (
    BackendFatalError,
    BackendTimeoutError,
    BackendTransientError,
    RateLimitedError,
)
from core.usage import TokenUsage

logger = structlog.get_logger(__name__)


# Token parameter handling
def _completion_token_param(api_base: str) -> str:
    """Return the token count parameter expected by the provider."""
    if "api.openai.com" in api_base or "api.anthropic.com" in api_base:
        return "max_completion_tokens"
    return "max_tokens"


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


@runtime_checkable
class GenerationBackend(Protocol):
    """Bounded-context text generation call."""

    async def generate(self, context_text: str, instruction_text: str) -> str:
        """Return generated text or raise a ``BackendError`` subclass."""
        ...


class OpenAICompatibleBackend:
    """Chat-completions backend for OpenAI-compatible endpoints."""

    def __init__(
        self,
        model_name: str | None = None,
        api_base: str | None = None,
        api_key: str | None = None,
        timeout: float = settings.HTTPX_TIMEOUT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.model_name = model_name or settings.GENERATION_MODEL
        self.api_base = (api_base or settings.OPENAI_API_BASE).rstrip("/")
        self.api_key = api_key or settings.OPENAI_API_KEY
        # Use a single async client for all requests to reuse connections
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self.request_count = 0
        self.usage = TokenUsage()
        logger.info(
            "Generation backend initialized.",
            model=self.model_name,
            api_base=self.api_base,
        )

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _build_payload(self, context_text: str, instruction_text: str) -> dict[str, Any]:
        token_param_name = _completion_token_param(self.api_base)
        return {
            "model": self.model_name,
            "messages": [
                {"role": "system", "content": context_text},
                {"role": "user", "content": instruction_text},
            ],
            "temperature": settings.TEMPERATURE_GENERATION,
            "top_p": settings.LLM_TOP_P,
            token_param_name: settings.MAX_GENERATION_TOKENS,
            "stream": False,
        }

    def _log_llm_usage(self, usage_data: dict[str, int] | None) -> None:
        """Helper to log LLM token usage if available in the response."""
        if usage_data and isinstance(usage_data, dict):
            self.usage.add(usage_data)
            logger.info(
                f"LLM ('{self.model_name}') Usage - Prompt: {usage_data.get('prompt_tokens', 'N/A')} tk, "
                f"Comp: {usage_data.get('completion_tokens', 'N/A')} tk, Total: {usage_data.get('total_tokens', 'N/A')} tk"
            )
        else:
            logger.debug(
                f"LLM ('{self.model_name}') response missing 'usage' information or 'usage' was not a dictionary."
            )

    async def generate(self, context_text: str, instruction_text: str) -> str:
        payload = self._build_payload(context_text, instruction_text)
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        logger.debug(
            f"Calling LLM '{self.model_name}'. Context chars: {len(context_text)}. "
            f"Instruction chars: {len(instruction_text)}."
        )
        self.request_count += 1
        try:
            response = await self._client.post(
                f"{self.api_base}/chat/completions", json=payload, headers=headers
            )
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e_timeout:
            raise BackendTimeoutError(f"Request timed out: {e_timeout}") from e_timeout
        except httpx.HTTPStatusError as e_status:
            status = e_status.response.status_code
            detail = f"HTTP status {status}. Body: {e_status.response.text[:200]}"
            if status == 429:
                raise RateLimitedError(
                    detail,
                    retry_after=_parse_retry_after(
                        e_status.response.headers.get("retry-after")
                    ),
                ) from e_status
            if 400 <= status < 500 and status != 408:
                raise BackendFatalError(detail) from e_status
            raise BackendTransientError(detail) from e_status
        except httpx.RequestError as e_req:
            raise BackendTransientError(f"Request error: {e_req}") from e_req
        except json.JSONDecodeError as e_json:
            raise BackendTransientError(
                f"Failed to decode JSON response: {e_json}"
            ) from e_json

        self._log_llm_usage(data.get("usage") if isinstance(data, dict) else None)
        choices = data.get("choices") if isinstance(data, dict) else None
        if not choices:
            logger.error(
                f"LLM ('{self.model_name}') Invalid response structure - missing choices despite 200 OK: {str(data)[:300]}"
            )
            raise BackendTransientError("Response contained no choices.")
        message = choices[0].get("message") or {}
        content = message.get("content")
        if not isinstance(content, str):
            raise BackendTransientError("Response message had no text content.")
        return content


class EchoBackend:
    """Deterministic offline backend used for dry runs and demos."""

    def __init__(self) -> None:
        self.request_count = 0
        self.usage = TokenUsage()

    async def generate(self, context_text: str, instruction_text: str) -> str:
        self.request_count += 1
        digest = hashlib.sha1(
            (context_text + instruction_text).encode("utf-8")
        ).hexdigest()[:8]
        first_line = next(
            (line.strip() for line in instruction_text.splitlines() if line.strip()),
            "",
        )
        return (
            f"Draft {self.request_count} ({digest}) written for: {first_line[:120]}\n\n"
            "This placeholder paragraph stands in for generated prose during a dry run."
        )
