"""Shared fixtures for the support chat tests."""

from __future__ import annotations

import time
from typing import Dict, Iterable, List, Optional

import pytest

from support_chat.config import ChatConfig, ChatLLMConfig


class FakeLLMClient:
    """Stands in for ChatLLMClient; records every upstream call."""

    def __init__(
        self,
        *,
        reply: str = "",
        tokens: Optional[List[str]] = None,
        error: Optional[Exception] = None,
        token_delay: float = 0,
    ) -> None:
        self.reply = reply
        self.tokens = tokens or []
        self.error = error
        self.token_delay = token_delay
        self.calls: List[Dict[str, object]] = []
        self.stream_closed = False

    def complete(self, messages, *, model_kwargs=None) -> str:
        self.calls.append({"kind": "complete", "messages": messages, "model_kwargs": model_kwargs})
        if self.error is not None:
            raise self.error
        return self.reply

    def stream_completion(self, messages, *, model_kwargs=None) -> Iterable[str]:
        self.calls.append({"kind": "stream", "messages": messages, "model_kwargs": model_kwargs})
        try:
            for token in self.tokens:
                if self.token_delay:
                    time.sleep(self.token_delay)
                yield token
            if self.error is not None:
                raise self.error
        finally:
            self.stream_closed = True


@pytest.fixture
def fake_client_cls():
    return FakeLLMClient


@pytest.fixture
def config() -> ChatConfig:
    return ChatConfig(
        llm=ChatLLMConfig(api_key="test-key"),
        cache_stream_delay=0,
        degraded_stream_delay=0,
    )


@pytest.fixture
def unconfigured() -> ChatConfig:
    return ChatConfig(
        llm=ChatLLMConfig(api_key=None),
        cache_stream_delay=0,
        degraded_stream_delay=0,
    )
