"""Generation backend capability and its OpenAI-compatible implementation."""
from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog
from pydantic import BaseModel
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from ..config import GenerationSettings, get_settings
from .errors import GenerationError

logger = structlog.get_logger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?(.*?)\n?\s*```", re.DOTALL)
_TRANSIENT_STATUS = {429, 500, 502, 503}


@dataclass(frozen=True)
class GenerationConfig:
    model: str
    temperature: float = 0.7
    max_tokens: int = 12_000
    timeout_seconds: float = 120.0

    @classmethod
    def from_settings(cls, settings: GenerationSettings) -> "GenerationConfig":
        return cls(
            model=settings.model,
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            timeout_seconds=settings.timeout_seconds,
        )


class GenerationBackend(Protocol):
    async def generate_structured(
        self,
        schema: type[BaseModel],
        system_prompt: str,
        user_prompt: str,
        config: GenerationConfig,
    ) -> dict[str, Any]:
        """Return the parsed JSON document produced for ``schema``."""
        ...


def strip_fences(text: str) -> str:
    """Strip markdown code fences from model output if present."""
    match = _FENCE_RE.search(text)
    return match.group(1).strip() if match else text.strip()


def parse_document(text: str) -> dict[str, Any]:
    document = json.loads(strip_fences(text))
    if not isinstance(document, dict):
        raise ValueError(f"expected a JSON object, got {type(document).__name__}")
    return document


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, (httpx.TimeoutException, httpx.ConnectError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _TRANSIENT_STATUS
    return False


class OpenAIChatBackend:
    """Structured generation over an OpenAI-compatible ``/chat/completions`` endpoint.

    Transient HTTP failures are retried with exponential backoff. Output
    that is not a JSON object gets ``repair_attempts`` extra round-trips in
    which the model sees its own output and the parse error.
    """

    def __init__(
        self,
        settings: GenerationSettings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        backoff_multiplier: float = 1.0,
    ) -> None:
        self._settings = settings or get_settings().generation
        self._transport = transport
        self._backoff = backoff_multiplier

    async def generate_structured(
        self,
        schema: type[BaseModel],
        system_prompt: str,
        user_prompt: str,
        config: GenerationConfig,
    ) -> dict[str, Any]:
        if not self._settings.api_key:
            raise GenerationError("Generation backend API key is not configured")

        messages: list[dict[str, str]] = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        last_error: ValueError | None = None
        for attempt in range(self._settings.repair_attempts + 1):
            content = await self._complete(schema, messages, config)
            try:
                return parse_document(content)
            except ValueError as exc:
                last_error = exc
                logger.warning("generation.unparseable", schema=schema.__name__, attempt=attempt + 1, error=str(exc))
                messages = messages + [
                    {"role": "assistant", "content": content},
                    {
                        "role": "user",
                        "content": f"That reply was not a valid JSON object ({exc}). "
                        "Reply again with only the corrected JSON object.",
                    },
                ]
        raise GenerationError(
            f"Backend output for {schema.__name__} was not valid JSON after repair attempts",
            details=str(last_error),
        )

    async def _complete(self, schema: type[BaseModel], messages: list[dict[str, str]], config: GenerationConfig) -> str:
        payload = {
            "model": config.model,
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
            "messages": messages,
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": schema.__name__,
                    "schema": schema.model_json_schema(by_alias=True),
                    "strict": False,
                },
            },
        }
        headers = {
            "Authorization": f"Bearer {self._settings.api_key}",
            "Content-Type": "application/json",
        }
        url = self._settings.base_url.rstrip("/") + "/chat/completions"

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._settings.max_retries + 1),
                wait=wait_exponential(multiplier=self._backoff, max=16),
                retry=retry_if_exception(_is_transient),
                reraise=True,
                before_sleep=lambda state: logger.warning(
                    "generation.retrying",
                    schema=schema.__name__,
                    attempt=state.attempt_number,
                    error=repr(state.outcome.exception()),
                ),
            ):
                with attempt:
                    start = time.perf_counter()
                    async with httpx.AsyncClient(transport=self._transport) as client:
                        response = await client.post(url, headers=headers, json=payload, timeout=config.timeout_seconds)
                    latency_ms = int((time.perf_counter() - start) * 1000)
                    logger.info(
                        "generation.call",
                        schema=schema.__name__,
                        model=config.model,
                        latency_ms=latency_ms,
                        status_code=response.status_code,
                    )
                    response.raise_for_status()
        except httpx.HTTPError as exc:
            raise GenerationError(f"Generation backend unavailable: {exc}") from exc

        data = response.json()
        message: dict[str, Any] | None = data.get("message")
        if message is None and "choices" in data:
            choices = data.get("choices", [])
            if choices:
                message = choices[0].get("message")
        if not message or not message.get("content"):
            raise GenerationError("Generation backend response missing message content")
        return message["content"]


__all__ = [
    "GenerationBackend",
    "GenerationConfig",
    "OpenAIChatBackend",
    "parse_document",
    "strip_fences",
]
