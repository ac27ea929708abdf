"""Minimal client for an OpenAI-compatible chat completions endpoint."""
from __future__ import annotations

import json
import logging
from time import perf_counter
from typing import Any

import httpx

from awareness.core.config import Settings

logger = logging.getLogger(__name__)


class LLMError(Exception):
    """Transport, status or payload failure talking to the model provider."""


class ChatCompletionClient:
    def __init__(
        self,
        api_url: str,
        model: str,
        *,
        api_key: str | None = None,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_url = api_url
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(
        cls, settings: Settings, transport: httpx.AsyncBaseTransport | None = None
    ) -> "ChatCompletionClient":
        return cls(
            settings.llm_api_url,
            settings.llm_model,
            api_key=settings.llm_api_key,
            timeout=settings.llm_timeout,
            transport=transport,
        )

    async def complete_json(self, system: str, prompt: str, *, temperature: float = 0.0) -> dict[str, Any]:
        """Send one system+user exchange and return the assistant message parsed as a JSON object."""
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else None
        payload = {
            "model": self.model,
            "temperature": temperature,
            "response_format": {"type": "json_object"},
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
        }

        start = perf_counter()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "LLM HTTP %s from model %s after %d ms",
                exc.response.status_code,
                self.model,
                int((perf_counter() - start) * 1000),
            )
            raise LLMError(f"LLM HTTP {exc.response.status_code}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("LLM request to model %s failed: %s", self.model, exc.__class__.__name__)
            raise LLMError(f"LLM request failed: {exc.__class__.__name__}") from exc

        logger.info("LLM call to %s completed in %d ms", self.model, int((perf_counter() - start) * 1000))

        try:
            content = data["choices"][0]["message"]["content"]
            parsed = json.loads(content)
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise LLMError("Unexpected LLM response shape") from exc
        if not isinstance(parsed, dict):
            raise LLMError("LLM response is not a JSON object")
        return parsed
