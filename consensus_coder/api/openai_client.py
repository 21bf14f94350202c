"""
OpenAI-compatible chat client.

Serves OpenAI itself and every provider exposing the same API: Together,
OpenRouter, LM Studio, custom endpoints and Azure OpenAI.
"""

import time
from typing import Any

import openai
import structlog
from openai import AsyncAzureOpenAI, AsyncOpenAI

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

AZURE_API_VERSION = "2024-10-21"


class OpenAICompatibleClient(BaseModelClient):
    """
    Chat client for OpenAI-compatible endpoints.

    SDK-level retries are disabled; retrying is left to the caller's
    backoff policy.
    """

    def __init__(
        self,
        default_model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        name: str = "openai",
        default_headers: dict[str, str] | None = None,
        timeout_s: float | None = None,
        client: AsyncOpenAI | None = None,
    ):
        """
        Initialize OpenAI-compatible client.

        Args:
            default_model: Model used when a request names none
            api_key: Provider credential ("local" is sent when empty)
            base_url: API base URL (OpenAI's when None)
            name: Provider name used in logs and error messages
            default_headers: Extra headers sent on every request
            timeout_s: Request timeout in seconds
            client: Preconfigured SDK client (used instead of building one)
        """
        super().__init__(default_model)
        self.name = name
        self.base_url = base_url
        self.client = client or AsyncOpenAI(
            api_key=api_key or "local",
            base_url=base_url or None,
            default_headers=default_headers,
            timeout=timeout_s or settings.request_timeout_s,
            max_retries=0,
        )

    @classmethod
    def for_azure(
        cls,
        default_model: str,
        api_key: str,
        resource_name: str,
        timeout_s: float | None = None,
    ) -> "OpenAICompatibleClient":
        """Build a client for an Azure OpenAI resource; the model is the deployment name."""
        client = AsyncAzureOpenAI(
            api_key=api_key,
            azure_endpoint=f"https://{resource_name}.openai.azure.com",
            api_version=AZURE_API_VERSION,
            timeout=timeout_s or settings.request_timeout_s,
            max_retries=0,
        )
        return cls(default_model, name="azure", client=client)

    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 2048,
        response_format: dict[str, Any] | None = None,
    ) -> ChatResponse:
        """
        Execute chat completion against the configured endpoint.

        Raises:
            RateLimitError: On HTTP 429
            ModelNotFoundError: On HTTP 404
            EndpointConnectionError: On network failure or timeout
            APIClientError: On any other API error
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
        except openai.RateLimitError as e:
            logger.warning(f"{self.name}_rate_limit", model=model, error=str(e))
            raise RateLimitError(self.name) from e
        except openai.NotFoundError as e:
            raise ModelNotFoundError(self.name, model) from e
        except openai.APIConnectionError as e:
            logger.error(f"{self.name}_connection_error", model=model, error=str(e))
            raise EndpointConnectionError(str(e), self.name, e) from e
        except openai.APIError as e:
            latency_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"{self.name}_completion_error",
                model=model,
                error=str(e),
                latency_ms=round(latency_ms, 2),
            )
            raise APIClientError(str(e), self.name, e) from e

        latency_ms = (time.perf_counter() - start_time) * 1000
        content = response.choices[0].message.content if response.choices else None
        content = self._require_content(content, model)

        usage = {
            "prompt_tokens": response.usage.prompt_tokens if response.usage else 0,
            "completion_tokens": response.usage.completion_tokens if response.usage else 0,
            "total_tokens": response.usage.total_tokens if response.usage else 0,
        }

        logger.info(
            f"{self.name}_completion_success",
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
        Check endpoint availability by listing models.

        Returns:
            True if the endpoint responds
        """
        try:
            await self.client.models.list()
            return True
        except openai.APIError as e:
            logger.warning(f"{self.name}_health_check_failed", error=str(e))
            return False
