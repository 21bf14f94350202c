"""
Groq API client for high-speed LLM inference.
"""

import time
from typing import Any

import groq
import structlog
from groq import AsyncGroq

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


class GroqClient(BaseModelClient):
    """Groq API client for fast inference."""

    name = "groq"

    def __init__(
        self,
        default_model: str,
        api_key: str,
        timeout_s: float | None = None,
    ):
        """
        Initialize Groq client.

        Args:
            default_model: Model used when a request names none
            api_key: Groq API key
            timeout_s: Request timeout in seconds
        """
        super().__init__(default_model)
        self.client = AsyncGroq(
            api_key=api_key,
            timeout=timeout_s or settings.request_timeout_s,
            max_retries=0,
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
        Execute chat completion with Groq API.

        Raises:
            APIClientError: On API errors
            RateLimitError: On rate limit
        """
        model = model or self.default_model
        start_time = time.perf_counter()

        kwargs: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if response_format:
            kwargs["response_format"] = response_format

        try:
            response = await self.client.chat.completions.create(**kwargs)
        except groq.RateLimitError as e:
            logger.warning("groq_rate_limit", model=model, error=str(e))
            raise RateLimitError(self.name, retry_after=60) from e
        except groq.NotFoundError as e:
            raise ModelNotFoundError(self.name, model) from e
        except groq.APIConnectionError as e:
            raise EndpointConnectionError(str(e), self.name, e) from e
        except groq.APIError as e:
            latency_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                "groq_completion_error",
                model=model,
                error=str(e),
                latency_ms=round(latency_ms, 2),
            )
            raise APIClientError(str(e), self.name, e) from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        content = self._require_content(response.choices[0].message.content, model)
        usage = {
            "prompt_tokens": response.usage.prompt_tokens if response.usage else 0,
            "completion_tokens": response.usage.completion_tokens if response.usage else 0,
            "total_tokens": response.usage.total_tokens if response.usage else 0,
        }

        logger.info(
            "groq_completion_success",
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
        Check Groq API availability.

        Returns:
            True if API is responding
        """
        try:
            models = await self.client.models.list()
            return bool(models.data)
        except groq.APIError as e:
            logger.warning("groq_health_check_failed", error=str(e))
            return False
