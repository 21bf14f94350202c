"""
Provider routing.

Builds a model client from a worker or judge spec. Every credential and
endpoint comes from the spec itself; nothing is read from global state.
"""

from typing import Callable

import structlog

from ..models import ModelSpec
from .base import BaseModelClient, UnsupportedProviderError
from .groq_client import GroqClient
from .ollama_client import OllamaClient
from .openai_client import OpenAICompatibleClient
from .rest_clients import AnthropicClient, GoogleClient

logger = structlog.get_logger()

TOGETHER_BASE_URL = "https://api.together.xyz/v1"
OPENROUTER_BASE_URL = "https://openrouter.ai/api/v1"
LMSTUDIO_BASE_URL = "http://localhost:1234/v1"

OPENROUTER_HEADERS = {
    "HTTP-Referer": "http://localhost",
    "X-Title": "Consensus Coder",
}

ClientFactory = Callable[[ModelSpec], BaseModelClient]


def _openai(spec: ModelSpec) -> BaseModelClient:
    return OpenAICompatibleClient(spec.model, api_key=spec.api_key, base_url=spec.base_url)


def _together(spec: ModelSpec) -> BaseModelClient:
    return OpenAICompatibleClient(
        spec.model,
        api_key=spec.api_key,
        base_url=spec.base_url or TOGETHER_BASE_URL,
        name="together",
    )


def _openrouter(spec: ModelSpec) -> BaseModelClient:
    return OpenAICompatibleClient(
        spec.model,
        api_key=spec.api_key,
        base_url=spec.base_url or OPENROUTER_BASE_URL,
        name="openrouter",
        default_headers=OPENROUTER_HEADERS,
    )


def _lmstudio(spec: ModelSpec) -> BaseModelClient:
    return OpenAICompatibleClient(
        spec.model,
        api_key=spec.api_key or "lm-studio",
        base_url=spec.base_url or LMSTUDIO_BASE_URL,
        name="lmstudio",
    )


def _custom(spec: ModelSpec) -> BaseModelClient:
    if not spec.base_url:
        raise ValueError("Custom provider requires a base_url")
    return OpenAICompatibleClient(
        spec.model, api_key=spec.api_key, base_url=spec.base_url, name="custom"
    )


def _azure(spec: ModelSpec) -> BaseModelClient:
    # base_url carries the Azure resource name
    return OpenAICompatibleClient.for_azure(
        spec.model, api_key=spec.api_key, resource_name=spec.base_url or ""
    )


def _groq(spec: ModelSpec) -> BaseModelClient:
    return GroqClient(spec.model, api_key=spec.api_key)


def _ollama(spec: ModelSpec) -> BaseModelClient:
    return OllamaClient(spec.model, host=spec.base_url)


def _anthropic(spec: ModelSpec) -> BaseModelClient:
    return AnthropicClient(spec.model, api_key=spec.api_key, base_url=spec.base_url)


def _google(spec: ModelSpec) -> BaseModelClient:
    return GoogleClient(spec.model, api_key=spec.api_key)


_PROVIDERS: dict[str, ClientFactory] = {
    "openai": _openai,
    "anthropic": _anthropic,
    "google": _google,
    "groq": _groq,
    "together": _together,
    "azure": _azure,
    "openrouter": _openrouter,
    "ollama": _ollama,
    "lmstudio": _lmstudio,
    "custom": _custom,
}


def supported_providers() -> list[str]:
    """Names accepted in a spec's ``provider`` field."""
    return list(_PROVIDERS)


def create_client(spec: ModelSpec) -> BaseModelClient:
    """
    Build a client bound to the spec's model.

    Args:
        spec: Worker or judge spec

    Returns:
        A ready-to-call model client

    Raises:
        UnsupportedProviderError: If the provider is unknown
        ValueError: If the spec is incomplete for its provider
    """
    factory = _PROVIDERS.get(spec.provider.lower())
    if factory is None:
        raise UnsupportedProviderError(spec.provider)

    logger.debug("model_client_created", provider=spec.provider, model=spec.model)
    return factory(spec)
