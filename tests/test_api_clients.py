"""Tests for model endpoint clients."""

import json

import httpx
import pytest
from openai import AsyncOpenAI

from conftest import FakeModelClient
from consensus_coder.api import (
    AnthropicClient,
    APIClientError,
    EmptyResponseError,
    EndpointConnectionError,
    GoogleClient,
    ModelNotFoundError,
    OllamaClient,
    OpenAICompatibleClient,
    RateLimitError,
)
from consensus_coder.resilience import is_non_retryable

MESSAGES = [
    {"role": "system", "content": "Code the ticket."},
    {"role": "user", "content": "App crashes on login"},
]


def mock_transport(handler) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


class TestBaseModelClient:
    """Tests for the shared call helper."""

    @pytest.mark.asyncio
    async def test_call_builds_system_and_user_messages(self):
        client = FakeModelClient(replies=["Bug"])

        response = await client.call("Code it.", "text", temperature=0.3, max_tokens=64)

        assert response.content == "Bug"
        assert client.calls[0]["system"] == "Code it."
        assert client.calls[0]["temperature"] == 0.3
        assert client.calls[0]["max_tokens"] == 64

    def test_empty_system_prompt_is_skipped(self):
        client = FakeModelClient()

        messages = client._build_messages("", "text")

        assert messages == [{"role": "user", "content": "text"}]

    def test_error_message_names_provider(self):
        error = APIClientError("503 Service Unavailable", "together")

        assert str(error) == "[together] 503 Service Unavailable"
        assert error.provider == "together"


class TestOpenAICompatibleClient:
    """Tests for OpenAICompatibleClient error mapping."""

    @staticmethod
    def _client(handler) -> OpenAICompatibleClient:
        sdk = AsyncOpenAI(
            api_key="sk-test",
            base_url="http://llm.test/v1",
            max_retries=0,
            http_client=httpx.AsyncClient(transport=mock_transport(handler)),
        )
        return OpenAICompatibleClient("gpt-4o-mini", name="together", client=sdk)

    @pytest.mark.asyncio
    async def test_success(self):
        def handler(request):
            body = json.loads(request.content)
            assert body["model"] == "gpt-4o-mini"
            assert body["messages"] == MESSAGES
            return httpx.Response(
                200,
                json={
                    "id": "chatcmpl-1",
                    "object": "chat.completion",
                    "created": 0,
                    "model": "gpt-4o-mini",
                    "choices": [
                        {
                            "index": 0,
                            "message": {"role": "assistant", "content": "Bug"},
                            "finish_reason": "stop",
                        }
                    ],
                    "usage": {"prompt_tokens": 12, "completion_tokens": 1, "total_tokens": 13},
                },
            )

        response = await self._client(handler).chat_completion(MESSAGES)

        assert response.content == "Bug"
        assert response.usage["total_tokens"] == 13

    @pytest.mark.asyncio
    async def test_unauthorized_is_permanent(self):
        client = self._client(
            lambda request: httpx.Response(401, json={"error": {"message": "Incorrect API key"}})
        )

        with pytest.raises(APIClientError) as exc_info:
            await client.chat_completion(MESSAGES)

        assert "401" in str(exc_info.value)
        assert is_non_retryable(exc_info.value)

    @pytest.mark.asyncio
    async def test_rate_limit(self):
        client = self._client(
            lambda request: httpx.Response(429, json={"error": {"message": "slow down"}})
        )

        with pytest.raises(RateLimitError):
            await client.chat_completion(MESSAGES)

    @pytest.mark.asyncio
    async def test_model_not_found(self):
        client = self._client(
            lambda request: httpx.Response(404, json={"error": {"message": "no such model"}})
        )

        with pytest.raises(ModelNotFoundError):
            await client.chat_completion(MESSAGES)

    @pytest.mark.asyncio
    async def test_server_error_is_retryable(self):
        client = self._client(
            lambda request: httpx.Response(503, json={"error": {"message": "overloaded"}})
        )

        with pytest.raises(APIClientError) as exc_info:
            await client.chat_completion(MESSAGES)

        assert not is_non_retryable(exc_info.value)


class TestAnthropicClient:
    """Tests for AnthropicClient."""

    @pytest.mark.asyncio
    async def test_success_moves_system_prompt(self):
        def handler(request):
            assert request.url.path == "/v1/messages"
            assert request.headers["x-api-key"] == "sk-ant"
            assert request.headers["anthropic-version"] == "2023-06-01"
            body = json.loads(request.content)
            assert body["system"] == "Code the ticket."
            assert body["messages"] == [MESSAGES[1]]
            return httpx.Response(
                200,
                json={
                    "content": [{"type": "text", "text": "Bug"}],
                    "usage": {"input_tokens": 9, "output_tokens": 1},
                },
            )

        client = AnthropicClient(
            "claude-3-5-haiku-latest", api_key="sk-ant", transport=mock_transport(handler)
        )

        response = await client.chat_completion(MESSAGES)

        assert response.content == "Bug"
        assert response.usage == {"prompt_tokens": 9, "completion_tokens": 1, "total_tokens": 10}

    @pytest.mark.asyncio
    async def test_rate_limit_with_retry_after(self):
        client = AnthropicClient(
            "claude",
            api_key="k",
            transport=mock_transport(
                lambda request: httpx.Response(429, headers={"retry-after": "2"}, text="busy")
            ),
        )

        with pytest.raises(RateLimitError) as exc_info:
            await client.chat_completion(MESSAGES)

        assert exc_info.value.retry_after == 2.0

    @pytest.mark.asyncio
    async def test_unauthorized_message_starts_with_status(self):
        client = AnthropicClient(
            "claude",
            api_key="bad",
            transport=mock_transport(lambda request: httpx.Response(401, text="invalid x-api-key")),
        )

        with pytest.raises(APIClientError) as exc_info:
            await client.chat_completion(MESSAGES)

        assert exc_info.value.message.startswith("401")
        assert is_non_retryable(exc_info.value)

    @pytest.mark.asyncio
    async def test_empty_content(self):
        client = AnthropicClient(
            "claude",
            api_key="k",
            transport=mock_transport(lambda request: httpx.Response(200, json={"content": []})),
        )

        with pytest.raises(EmptyResponseError):
            await client.chat_completion(MESSAGES)

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        client = AnthropicClient("claude", api_key="k", transport=mock_transport(handler))

        with pytest.raises(EndpointConnectionError):
            await client.chat_completion(MESSAGES)


class TestGoogleClient:
    """Tests for GoogleClient."""

    @pytest.mark.asyncio
    async def test_success(self):
        def handler(request):
            assert request.url.path == "/v1beta/models/gemini-1.5-flash:generateContent"
            assert request.url.params["key"] == "g-key"
            body = json.loads(request.content)
            assert body["systemInstruction"] == {"parts": [{"text": "Code the ticket."}]}
            assert body["contents"] == [
                {"role": "user", "parts": [{"text": "App crashes on login"}]}
            ]
            return httpx.Response(
                200,
                json={
                    "candidates": [{"content": {"parts": [{"text": "Bug"}]}}],
                    "usageMetadata": {
                        "promptTokenCount": 8,
                        "candidatesTokenCount": 1,
                        "totalTokenCount": 9,
                    },
                },
            )

        client = GoogleClient(
            "models/gemini-1.5-flash", api_key="g-key", transport=mock_transport(handler)
        )

        response = await client.chat_completion(MESSAGES)

        assert response.content == "Bug"
        assert response.usage["total_tokens"] == 9

    @pytest.mark.asyncio
    async def test_bad_request_is_permanent(self):
        client = GoogleClient(
            "gemini-1.5-flash",
            api_key="g-key",
            transport=mock_transport(
                lambda request: httpx.Response(400, text="API key not valid")
            ),
        )

        with pytest.raises(APIClientError) as exc_info:
            await client.chat_completion(MESSAGES)

        assert is_non_retryable(exc_info.value)

    @pytest.mark.asyncio
    async def test_no_candidates(self):
        client = GoogleClient(
            "gemini-1.5-flash",
            api_key="g-key",
            transport=mock_transport(lambda request: httpx.Response(200, json={"candidates": []})),
        )

        with pytest.raises(EmptyResponseError):
            await client.chat_completion(MESSAGES)


class TestOllamaClient:
    """Tests for OllamaClient configuration."""

    def test_strips_openai_compatible_suffix(self):
        client = OllamaClient("llama3.1", host="http://gpu-box:11434/v1/")

        assert client.host == "http://gpu-box:11434"

    def test_default_host(self):
        assert OllamaClient("llama3.1").host == "http://localhost:11434"
