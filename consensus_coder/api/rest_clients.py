"""
Direct REST clients for providers without an OpenAI-compatible API.

Anthropic Messages API and Google Generative Language API, called with httpx.
Non-200 responses surface as ``APIClientError`` messages starting with the
HTTP status code.
"""

import time
from typing import Any

import httpx
import structlog

from ..config.settings import settings
from ..models import ChatResponse
from .base import (
    APIClientError,
    BaseModelClient,
    EndpointConnectionError,
    ModelNotFoundError,
    RateLimitError,
)

logger = structlog.get_logger()

ANTHROPIC_ENDPOINT = "https://api.anthropic.com/v1"
ANTHROPIC_VERSION = "2023-06-01"
GOOGLE_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta"


class _RESTClient(BaseModelClient):
    """Shared POST/JSON handling."""

    def __init__(
        self,
        default_model: str,
        api_key: str,
        base_url: str,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(default_model)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s or settings.request_timeout_s
        self._transport = transport

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout_s, transport=self._transport)

    async def _post_json(
        self,
        url: str,
        model: str,
        body: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        try:
            async with self._http() as client:
                resp = await client.post(
                    url,
                    headers={"Content-Type": "application/json", **(headers or {})},
                    params=params,
                    json=body,
                )
        except httpx.TimeoutException as e:
            raise EndpointConnectionError(
                f"Request timed out after {self.timeout_s}s", self.name, e
            ) from e
        except httpx.RequestError as e:
            raise EndpointConnectionError(str(e), self.name, e) from e

        if resp.status_code == 429:
            retry_after = resp.headers.get("retry-after")
            raise RateLimitError(
                self.name, retry_after=float(retry_after) if retry_after else None
            )
        if resp.status_code == 404:
            raise ModelNotFoundError(self.name, model)
        if resp.status_code != 200:
            logger.error(
                f"{self.name}_completion_error",
                model=model,
                http_status=resp.status_code,
                error=resp.text[:500],
            )
            raise APIClientError(f"{resp.status_code} {resp.text}", self.name)

        return resp.json()


class AnthropicClient(_RESTClient):
    """Anthropic Messages API client."""

    name = "anthropic"

    def __init__(
        self,
        default_model: str,
        api_key: str,
        base_url: str | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            default_model, api_key, base_url or ANTHROPIC_ENDPOINT, timeout_s, transport
        )

    def _headers(self) -> dict[str, str]:
        return {"x-api-key": self.api_key, "anthropic-version": ANTHROPIC_VERSION}

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 2048,
        response_format: dict[str, Any] | None = None,
    ) -> ChatResponse:
        """Execute a Messages API request; the system message moves to ``system``."""
        model = model or self.default_model
        system_content = None
        api_messages = []
        for msg in messages:
            if msg.get("role") == "system":
                system_content = msg.get("content", "")
            else:
                api_messages.append(msg)

        body: dict[str, Any] = {
            "model": model,
            "messages": api_messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        if system_content:
            body["system"] = system_content

        start_time = time.perf_counter()
        data = await self._post_json(
            f"{self.base_url}/messages", model, body, headers=self._headers()
        )
        latency_ms = (time.perf_counter() - start_time) * 1000

        text = "".join(
            block.get("text", "")
            for block in data.get("content", [])
            if block.get("type") == "text"
        )
        content = self._require_content(text, model)

        usage_data = data.get("usage", {})
        usage = {
            "prompt_tokens": usage_data.get("input_tokens") or 0,
            "completion_tokens": usage_data.get("output_tokens") or 0,
        }
        usage["total_tokens"] = usage["prompt_tokens"] + usage["completion_tokens"]

        logger.info(
            "anthropic_completion_success",
            model=model,
            latency_ms=round(latency_ms, 2),
            tokens=usage["total_tokens"],
        )
        return ChatResponse(content=content, model=model, usage=usage, latency_ms=latency_ms)

    async def health_check(self) -> bool:
        try:
            async with self._http() as client:
                resp = await client.get(f"{self.base_url}/models", headers=self._headers())
            return resp.status_code == 200
        except httpx.HTTPError as e:
            logger.warning("anthropic_health_check_failed", error=str(e))
            return False


class GoogleClient(_RESTClient):
    """Google Generative Language API client."""

    name = "google"

    def __init__(
        self,
        default_model: str,
        api_key: str,
        base_url: str | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(
            default_model, api_key, base_url or GOOGLE_ENDPOINT, timeout_s, transport
        )

    @staticmethod
    def _convert_messages(
        messages: list[dict[str, str]],
    ) -> tuple[list[dict[str, Any]], str | None]:
        """Convert OpenAI-style messages to Google contents + system instruction."""
        contents = []
        system_instruction = None
        for msg in messages:
            role = msg.get("role", "user")
            if role == "system":
                system_instruction = msg.get("content", "")
                continue
            contents.append({
                "role": "user" if role == "user" else "model",
                "parts": [{"text": msg.get("content", "")}],
            })
        return contents, system_instruction

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 2048,
        response_format: dict[str, Any] | None = None,
    ) -> ChatResponse:
        """Execute a generateContent request."""
        model = model or self.default_model
        model_name = model.split("/")[-1]
        contents, system_instruction = self._convert_messages(messages)

        generation_config: dict[str, Any] = {
            "maxOutputTokens": max_tokens,
            "temperature": temperature,
        }
        if response_format and response_format.get("type") == "json_object":
            generation_config["responseMimeType"] = "application/json"

        body: dict[str, Any] = {"contents": contents, "generationConfig": generation_config}
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}

        start_time = time.perf_counter()
        data = await self._post_json(
            f"{self.base_url}/models/{model_name}:generateContent",
            model,
            body,
            params={"key": self.api_key},
        )
        latency_ms = (time.perf_counter() - start_time) * 1000

        candidates = data.get("candidates", [])
        parts = candidates[0].get("content", {}).get("parts", []) if candidates else []
        content = self._require_content("".join(p.get("text", "") for p in parts), model)

        usage_metadata = data.get("usageMetadata", {})
        usage = {
            "prompt_tokens": usage_metadata.get("promptTokenCount") or 0,
            "completion_tokens": usage_metadata.get("candidatesTokenCount") or 0,
            "total_tokens": usage_metadata.get("totalTokenCount") or 0,
        }

        logger.info(
            "google_completion_success",
            model=model,
            latency_ms=round(latency_ms, 2),
            tokens=usage["total_tokens"],
        )
        return ChatResponse(content=content, model=model, usage=usage, latency_ms=latency_ms)

    async def health_check(self) -> bool:
        try:
            async with self._http() as client:
                resp = await client.get(
                    f"{self.base_url}/models", params={"key": self.api_key}
                )
            return resp.status_code == 200
        except httpx.HTTPError as e:
            logger.warning("google_health_check_failed", error=str(e))
            return False
