from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Optional

import openai

from nebula.config.loader import get_llm_settings

logger = logging.getLogger("app")


class LLMCallError(Exception):
    """LLM call failed or returned unusable output."""

    def __init__(self, message: str, retryable: bool = False):
        super().__init__(message)
        self.retryable = retryable


@dataclass(frozen=True)
class LLMUsage:
    prompt_tokens: int
    completion_tokens: int
    total_tokens: int


@dataclass(frozen=True)
class LLMResponse:
    content: str
    model: str
    usage: Optional[LLMUsage] = None


class LLMClient:
    """Async chat-completion client that always asks for a JSON object back."""

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout_seconds: Optional[int] = None,
    ):
        settings = get_llm_settings()
        self.enabled = settings["enabled"]
        self.model = model or settings["model"]
        self.temperature = settings["temperature"] if temperature is None else temperature
        self.max_tokens = max_tokens or settings["max_tokens"]
        self.timeout_seconds = timeout_seconds or settings["timeout_seconds"]
        self._api_key = api_key or settings["api_key"]
        self._base_url = base_url or settings["base_url"]
        self._client: Any = None

    def _get_client(self) -> Any:
        if self._client is not None:
            return self._client
        if not self.enabled:
            raise LLMCallError("AI features are disabled for this deployment.")

        kwargs: Dict[str, Any] = {"timeout": self.timeout_seconds}
        if self._api_key:
            kwargs["api_key"] = self._api_key
        if self._base_url:
            kwargs["base_url"] = self._base_url
        try:
            self._client = openai.AsyncOpenAI(**kwargs)
        except openai.OpenAIError as exc:
            raise LLMCallError(f"LLM client is not configured: {exc}") from exc
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def complete_json(self, system: str, user: str) -> LLMResponse:
        """Send a system+user message pair and return the raw JSON text with usage."""
        client = self._get_client()
        try:
            response = await client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
            )
        except Exception as exc:
            raise LLMCallError(f"LLM API call failed: {exc}", retryable=True) from exc

        content = response.choices[0].message.content if response.choices else None
        if not content or not content.strip():
            raise LLMCallError("Empty response from OpenAI")

        usage = None
        if getattr(response, "usage", None) is not None:
            usage = LLMUsage(
                prompt_tokens=int(response.usage.prompt_tokens or 0),
                completion_tokens=int(response.usage.completion_tokens or 0),
                total_tokens=int(response.usage.total_tokens or 0),
            )
        logger.debug(
            "LLM call complete: model=%s total_tokens=%s",
            self.model,
            usage.total_tokens if usage else None,
        )
        return LLMResponse(
            content=content,
            model=getattr(response, "model", None) or self.model,
            usage=usage,
        )


def parse_json_object(content: str) -> Dict[str, Any]:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise LLMCallError(f"LLM returned invalid JSON: {content[:200]}") from exc
    if not isinstance(data, dict):
        raise LLMCallError("LLM returned JSON that is not an object.")
    return data


@lru_cache(maxsize=1)
def get_llm_client() -> LLMClient:
    """Process-wide LLM client dependency; overridden in tests."""
    return LLMClient()


async def close_llm_client() -> None:
    """Close the cached client, if one was ever created, and forget it."""
    if get_llm_client.cache_info().currsize:
        await get_llm_client().aclose()
    get_llm_client.cache_clear()
