"""HealthTest - Completion Gateway

Single point of contact with the text-completion backend.

complete(prompt, shape) sends the prompt plus the shape's JSON Schema, parses
the returned text as JSON and validates it against the shape. Array roots are
sent wrapped in an {"items": ...} object, since structured-output modes only
accept object roots, and unwrapped again before validation. Failures are
mapped onto ServiceError / MalformedResponseError / InvalidShapeError. The
gateway never retries and keeps no state between calls, so concurrent calls
need no locking.
"""
from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Optional, Protocol

import httpx

from healthtest.core.config import settings
from healthtest.services.ai.errors import InvalidShapeError, MalformedResponseError, ServiceError
from healthtest.services.ai.shape import ResponseShape

logger = logging.getLogger(__name__)

PROVIDER_DEFAULTS = {
    "openai": "https://api.openai.com/v1",
    "deepseek": "https://api.deepseek.com",
    "zhipu": "https://open.bigmodel.cn/api/paas/v4",
    "gemini": "https://generativelanguage.googleapis.com/v1beta/openai",
}

# response_format per provider: strict json_schema where supported, plain JSON mode elsewhere
RESPONSE_FORMATS = {
    "openai": "json_schema",
    "gemini": "json_schema",
    "deepseek": "json_object",
    "zhipu": "json_object",
}
DEFAULT_RESPONSE_FORMAT = "json_object"

SYSTEM_PROMPT = "You are a meticulous QA assistant. Respond with JSON only, matching the requested schema."

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class CompletionBackend(Protocol):
    """Anything that turns (prompt, JSON Schema) into raw response text."""

    async def generate(self, prompt: str, schema: dict[str, Any], schema_name: str) -> str:
        ...


@dataclass
class BackendConfig:
    model: str
    api_key: str
    provider: str = "openai"
    base_url: Optional[str] = None
    temperature: float = 0.2
    max_tokens: int = 8192
    timeout: float = 120.0
    response_format: Optional[str] = None

    @classmethod
    def from_settings(cls) -> "BackendConfig":
        return cls(
            model=settings.AI_MODEL,
            api_key=settings.AI_API_KEY,
            provider=settings.AI_PROVIDER,
            base_url=settings.AI_BASE_URL,
            temperature=settings.AI_TEMPERATURE,
            max_tokens=settings.AI_MAX_TOKENS,
            timeout=settings.AI_TIMEOUT_S,
            response_format=settings.AI_RESPONSE_FORMAT,
        )

    @property
    def completions_url(self) -> str:
        base_url = self.base_url or PROVIDER_DEFAULTS.get(self.provider.lower(), PROVIDER_DEFAULTS["openai"])
        return f"{base_url.rstrip('/')}/chat/completions"

    @property
    def resolved_response_format(self) -> str:
        """json_schema, json_object or none."""
        if self.response_format:
            return self.response_format.lower()
        return RESPONSE_FORMATS.get(self.provider.lower(), DEFAULT_RESPONSE_FORMAT)


class OpenAICompatibleBackend:
    """Chat-completions backend speaking the OpenAI wire format."""

    def __init__(self, config: BackendConfig, *, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    def build_payload(self, prompt: str, schema: dict[str, Any], schema_name: str) -> dict[str, Any]:
        mode = self.config.resolved_response_format
        if mode != "json_schema":
            # Without strict schema support the schema travels in the prompt
            prompt = f"{prompt}\n\nRespond with a JSON object matching this JSON Schema:\n{json.dumps(schema)}"

        payload: dict[str, Any] = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
        }
        if mode == "json_schema":
            payload["response_format"] = {
                "type": "json_schema",
                "json_schema": {"name": schema_name, "schema": schema},
            }
        elif mode == "json_object":
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def generate(self, prompt: str, schema: dict[str, Any], schema_name: str) -> str:
        payload = self.build_payload(prompt, schema, schema_name)

        async with httpx.AsyncClient(transport=self._transport, timeout=self.config.timeout) as client:
            response = await client.post(
                self.config.completions_url,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.config.api_key}",
                    "Content-Type": "application/json",
                },
            )
            response.raise_for_status()

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ServiceError(details=[f"Unexpected completion payload: {e!r}"]) from e
        if not isinstance(content, str):
            raise ServiceError(details=["Completion payload carried no text content"])
        return content


def parse_json_text(raw: str) -> Any:
    """Parse backend text as JSON, tolerating a surrounding Markdown fence."""
    text = raw.strip()
    match = _FENCE_RE.match(text)
    if match:
        text = match.group(1)
    try:
        return json.loads(text)
    except ValueError as e:
        raise MalformedResponseError(details=[str(e)]) from e


class CompletionGateway:
    def __init__(self, backend: CompletionBackend):
        self.backend = backend

    @classmethod
    def from_settings(cls) -> "CompletionGateway":
        return cls(OpenAICompatibleBackend(BackendConfig.from_settings()))

    async def complete(self, prompt: str, shape: ResponseShape) -> Any:
        """Run one completion and return JSON data conforming to ``shape``.

        Raises:
            ServiceError: transport failure, non-2xx status or timeout
            MalformedResponseError: response text is not JSON
            InvalidShapeError: JSON does not match ``shape``
        """
        start_time = time.time()
        try:
            raw = await self.backend.generate(prompt, shape.to_wire_schema(), shape.name)
        except ServiceError:
            raise
        except httpx.HTTPStatusError as e:
            logger.warning("Completion backend returned %s for %s", e.response.status_code, shape.name)
            raise ServiceError(details=[str(e)]) from e
        except (httpx.HTTPError, asyncio.TimeoutError, TimeoutError) as e:
            logger.warning("Completion backend unreachable for %s: %r", shape.name, e)
            raise ServiceError(details=[repr(e)]) from e

        duration = int((time.time() - start_time) * 1000)
        logger.info("Completion %s finished in %dms (%d chars)", shape.name, duration, len(raw))

        data = shape.unwrap(parse_json_text(raw))

        errors = shape.validate(data)
        if errors:
            logger.warning("Completion %s failed shape validation: %s", shape.name, errors[:5])
            raise InvalidShapeError(details=errors)
        return data
