"""
Ollama client for local LLM inference.
"""

import time
from typing import Any

import httpx
import structlog
from ollama import AsyncClient, ResponseError

from ..config.settings import settings
from ..models import ChatResponse
from .base import (
    APIClientError,
    BaseModelClient,
    EndpointConnectionError,
    ModelNotFoundError,
)

logger = structlog.get_logger()

DEFAULT_OLLAMA_HOST = "http://localhost:11434"


class OllamaClient(BaseModelClient):
    """
    Ollama client for local inference.

    Accepts either the native host URL or the OpenAI-compatible ``/v1`` URL.
    """

    name = "ollama"

    def __init__(
        self,
        default_model: str,
        host: str | None = None,
        timeout_s: float | None = None,
    ):
        """
        Initialize Ollama client.

        Args:
            default_model: Model used when a request names none
            host: Ollama server URL (defaults to localhost:11434)
            timeout_s: Request timeout in seconds
        """
        super().__init__(default_model)
        host = (host or DEFAULT_OLLAMA_HOST).rstrip("/")
        if host.endswith("/v1"):
            host = host[: -len("/v1")]
        self.host = host
        self.client = AsyncClient(
            host=self.host, timeout=timeout_s or settings.request_timeout_s
        )

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 2048,
        response_format: dict[str, Any] | None = None,
    ) -> ChatResponse:
        """
        Execute chat completion with Ollama.

        Raises:
            ModelNotFoundError: If the model is not pulled
            EndpointConnectionError: If the server is unreachable
            APIClientError: On any other error
        """
        model = model or self.default_model
        start_time = time.perf_counter()

        options = {
            "temperature": temperature,
            "num_predict": max_tokens,
        }

        # Handle JSON mode
        format_spec = None
        if response_format and response_format.get("type") == "json_object":
            format_spec = "json"

        try:
            response = await self.client.chat(
                model=model,
                messages=messages,
                options=options,
                format=format_spec,
            )
        except ResponseError as e:
            if e.status_code == 404:
                raise ModelNotFoundError(self.name, model) from e
            logger.error("ollama_completion_error", model=model, error=str(e))
            raise APIClientError(f"{e.status_code} {e.error}", self.name, e) from e
        except (httpx.HTTPError, ConnectionError) as e:
            logger.error("ollama_connection_error", host=self.host, error=str(e))
            raise EndpointConnectionError(
                f"Cannot connect to Ollama at {self.host}", self.name, e
            ) from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        content = self._require_content(response.message.content, model)
        usage = {
            "prompt_tokens": response.prompt_eval_count or 0,
            "completion_tokens": response.eval_count or 0,
            "total_tokens": (response.prompt_eval_count or 0)
            + (response.eval_count or 0),
        }

        logger.info(
            "ollama_completion_success",
            model=model,
            latency_ms=round(latency_ms, 2),
            tokens=usage.get("total_tokens", 0),
        )

        return ChatResponse(
            content=content,
            model=model,
            usage=usage,
            latency_ms=latency_ms,
        )

    async def health_check(self) -> bool:
        """
        Check Ollama server availability.

        Returns:
            True if server is responding
        """
        try:
            await self.client.list()
            return True
        except (ResponseError, httpx.HTTPError, ConnectionError) as e:
            logger.warning("ollama_health_check_failed", error=str(e))
            return False
