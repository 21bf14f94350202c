"""
API clients for LLM providers.

Provides one interface over OpenAI-compatible endpoints, Groq, Ollama,
Anthropic and Google.
"""

from .base import (
    APIClientError,
    BaseModelClient,
    EmptyResponseError,
    EndpointConnectionError,
    ModelNotFoundError,
    RateLimitError,
    UnsupportedProviderError,
)
from .groq_client import GroqClient
from .ollama_client import OllamaClient
from .openai_client import OpenAICompatibleClient
from .registry import ClientFactory, create_client, supported_providers
from .rest_clients import AnthropicClient, GoogleClient

__all__ = [
    # Base
    "BaseModelClient",
    "APIClientError",
    "RateLimitError",
    "ModelNotFoundError",
    "EndpointConnectionError",
    "EmptyResponseError",
    "UnsupportedProviderError",
    # Clients
    "OpenAICompatibleClient",
    "GroqClient",
    "OllamaClient",
    "AnthropicClient",
    "GoogleClient",
    # Registry
    "ClientFactory",
    "create_client",
    "supported_providers",
]
