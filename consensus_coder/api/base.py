"""
Base API client interface for all LLM providers.

Defines the abstract interface that all API clients must implement. Error
messages keep the provider's own wording (status codes included) because
retry classification inspects them.
"""

from abc import ABC, abstractmethod
from typing import Any

from ..models import ChatResponse


class BaseModelClient(ABC):
    """Abstract base class for LLM API clients bound to one model."""

    name: str = "base"

    def __init__(self, default_model: str):
        self.default_model = default_model

    @abstractmethod
    async def chat_completion(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
        temperature: float = 0.0,
        max_tokens: int = 2048,
        response_format: dict[str, Any] | None = None,
    ) -> ChatResponse:
        """
        Execute a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model identifier (uses default if None)
            temperature: Sampling temperature
            max_tokens: Maximum tokens in response
            response_format: Optional format spec (e.g., {"type": "json_object"})

        Returns:
            ChatResponse with content, model, usage, and latency

        Raises:
            APIClientError: On any provider failure
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the API is available and responding.

        Returns:
            True if healthy, False otherwise
        """
        pass

    async def call(
        self,
        system_prompt: str,
        user_content: str,
        temperature: float = 0.0,
        max_tokens: int = 2048,
    ) -> ChatResponse:
        """Send one system + user exchange to the bound model."""
        return await self.chat_completion(
            messages=self._build_messages(system_prompt, user_content),
            temperature=temperature,
            max_tokens=max_tokens,
        )

    def _build_messages(
        self,
        system_prompt: str,
        user_prompt: str,
    ) -> list[dict[str, str]]:
        """Helper to build standard message format."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})
        return messages

    def _require_content(self, content: str | None, model: str) -> str:
        if not content or not content.strip():
            raise EmptyResponseError(self.name, model)
        return content


class APIClientError(Exception):
    """Base exception for API client errors."""

    def __init__(self, message: str, provider: str, original_error: Exception | None = None):
        self.message = message
        self.provider = provider
        self.original_error = original_error
        super().__init__(f"[{provider}] {message}")


class RateLimitError(APIClientError):
    """Raised when rate limit is exceeded."""

    def __init__(self, provider: str, retry_after: float | None = None):
        # retry_after is kept out of the message; its digits can match a marker
        self.retry_after = retry_after
        super().__init__("429 Rate limit exceeded", provider)


class ModelNotFoundError(APIClientError):
    """Raised when requested model is not available."""

    def __init__(self, provider: str, model: str):
        self.model = model
        super().__init__(f"Model '{model}' not found", provider)


class EndpointConnectionError(APIClientError):
    """Raised when connection to API fails."""

    pass


class EmptyResponseError(APIClientError):
    """Raised when the model returns no text."""

    def __init__(self, provider: str, model: str):
        self.model = model
        super().__init__("Empty response content", provider)


class UnsupportedProviderError(ValueError):
    """Raised when a spec names a provider with no client."""

    def __init__(self, provider: str):
        self.provider = provider
        super().__init__(f"Unsupported provider: {provider}")
