"""Shared fixtures for consensus pipeline tests."""

from typing import Callable, Optional, Union
from unittest.mock import AsyncMock

import pytest
import structlog

from consensus_coder.api import BaseModelClient
from consensus_coder.config.settings import Settings
from consensus_coder.models import (
    ChatResponse,
    ConsensusRequest,
    JudgeSpec,
    ModelSpec,
    WorkerSpec,
)
from consensus_coder.resilience import BackoffExecutor

Reply = Union[str, BaseException]


class FakeModelClient(BaseModelClient):
    """
    Scripted model client.

    Replies are consumed in order and the last one repeats. A reply that is
    an exception is raised instead of returned. A ``responder`` receives the
    system prompt and user content and takes precedence over ``replies``.
    """

    name = "fake"

    def __init__(
        self,
        default_model: str = "fake-model",
        replies: Optional[list[Reply]] = None,
        responder: Optional[Callable[[str, str], Reply]] = None,
    ):
        super().__init__(default_model)
        self.replies = list(replies or ["ok"])
        self.responder = responder
        self.calls: list[dict] = []

    async def chat_completion(
        self,
        messages,
        model=None,
        temperature=0.0,
        max_tokens=2048,
        response_format=None,
    ) -> ChatResponse:
        system = next((m["content"] for m in messages if m["role"] == "system"), "")
        user = messages[-1]["content"]
        self.calls.append(
            {"system": system, "user": user, "temperature": temperature, "max_tokens": max_tokens}
        )

        if self.responder is not None:
            reply = self.responder(system, user)
        else:
            reply = self.replies.pop(0) if len(self.replies) > 1 else self.replies[0]

        if isinstance(reply, BaseException):
            raise reply
        return ChatResponse(content=reply, model=model or self.default_model)

    async def health_check(self) -> bool:
        return True


class FakeClientFactory:
    """Maps a spec's model name to a prepared fake client."""

    def __init__(self, clients: dict[str, BaseModelClient]):
        self.clients = clients
        self.created: list[str] = []

    def __call__(self, spec: ModelSpec) -> BaseModelClient:
        self.created.append(spec.model)
        if spec.model not in self.clients:
            raise ValueError(f"No fake client for {spec.model}")
        return self.clients[spec.model]


@pytest.fixture(autouse=True)
def reset_structlog():
    """Drop logging config a test installed, including its captured stream."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def fake_sleep():
    """Sleep replacement that records requested delays."""
    return AsyncMock()


@pytest.fixture
def executor(fake_sleep):
    """Backoff executor that never actually waits."""
    return BackoffExecutor(sleep=fake_sleep)


@pytest.fixture
def test_settings():
    """Settings isolated from the environment."""
    return Settings(
        _env_file=None,
        worker_max_attempts=3,
        judge_max_attempts=3,
        enrichment_max_attempts=2,
        retry_base_delay_s=0.1,
    )


def make_request(
    worker_models: list[str],
    judge_model: str = "judge",
    content: str = "My invoice was charged twice and the app crashes",
    **overrides,
) -> ConsensusRequest:
    """Build a request whose workers and judge use the fake provider."""
    fields = {
        "workers": [WorkerSpec(provider="fake", model=m) for m in worker_models],
        "judge": JudgeSpec(provider="fake", model=judge_model),
        "worker_prompt": "Code the text. Reply with labels only.",
        "judge_prompt": "Synthesize the best answer.",
        "content": content,
    }
    return ConsensusRequest(**{**fields, **overrides})
