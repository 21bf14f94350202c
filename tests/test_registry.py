"""Tests for provider routing."""

import pytest

from consensus_coder.api import (
    AnthropicClient,
    GoogleClient,
    GroqClient,
    OllamaClient,
    OpenAICompatibleClient,
    UnsupportedProviderError,
    create_client,
    supported_providers,
)
from consensus_coder.models import JudgeSpec, WorkerSpec


class TestCreateClient:
    """Tests for create_client."""

    @pytest.mark.parametrize(
        ("provider", "client_type", "name"),
        [
            ("openai", OpenAICompatibleClient, "openai"),
            ("together", OpenAICompatibleClient, "together"),
            ("openrouter", OpenAICompatibleClient, "openrouter"),
            ("lmstudio", OpenAICompatibleClient, "lmstudio"),
            ("anthropic", AnthropicClient, "anthropic"),
            ("google", GoogleClient, "google"),
            ("groq", GroqClient, "groq"),
            ("ollama", OllamaClient, "ollama"),
        ],
    )
    def test_routes_provider(self, provider, client_type, name):
        client = create_client(WorkerSpec(provider=provider, model="m", api_key="key"))

        assert isinstance(client, client_type)
        assert client.name == name
        assert client.default_model == "m"

    def test_provider_is_case_insensitive(self):
        client = create_client(WorkerSpec(provider="OpenAI", model="gpt-4o", api_key="k"))

        assert isinstance(client, OpenAICompatibleClient)

    def test_azure_uses_resource_name(self):
        client = create_client(
            JudgeSpec(provider="azure", model="gpt4o-deploy", api_key="k", base_url="my-resource")
        )

        assert client.name == "azure"
        assert "my-resource.openai.azure.com" in str(client.client.base_url)

    def test_together_default_endpoint(self):
        client = create_client(WorkerSpec(provider="together", model="m", api_key="k"))

        assert str(client.client.base_url).startswith("https://api.together.xyz/v1")

    def test_lmstudio_defaults(self):
        client = create_client(WorkerSpec(provider="lmstudio", model="local-model"))

        assert str(client.client.base_url).startswith("http://localhost:1234/v1")
        assert client.client.api_key == "lm-studio"

    def test_custom_requires_base_url(self):
        with pytest.raises(ValueError, match="base_url"):
            create_client(WorkerSpec(provider="custom", model="m"))

    def test_custom_endpoint(self):
        client = create_client(
            WorkerSpec(provider="custom", model="m", base_url="http://vllm.internal:8000/v1")
        )

        assert str(client.client.base_url).startswith("http://vllm.internal:8000/v1")

    def test_ollama_uses_base_url_as_host(self):
        client = create_client(
            WorkerSpec(provider="ollama", model="llama3.1", base_url="http://gpu-box:11434/v1")
        )

        assert client.host == "http://gpu-box:11434"

    def test_unknown_provider(self):
        with pytest.raises(UnsupportedProviderError, match="Unsupported provider: cohere"):
            create_client(WorkerSpec(provider="cohere", model="command-r"))

    def test_unsupported_provider_is_value_error(self):
        assert issubclass(UnsupportedProviderError, ValueError)


def test_supported_providers():
    assert set(supported_providers()) == {
        "openai",
        "anthropic",
        "google",
        "groq",
        "together",
        "azure",
        "openrouter",
        "ollama",
        "lmstudio",
        "custom",
    }
