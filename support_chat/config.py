"""Configuration objects for the support chat service."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional


def _env_api_key() -> Optional[str]:
    value = os.getenv("OPENAI_API_KEY", "").strip()
    return value or None


@dataclass
class ChatLLMConfig:
    """LLM connection details."""

    endpoint: str = "https://api.openai.com/v1/chat/completions"
    model: str = "gpt-3.5-turbo"
    api_key: Optional[str] = field(default_factory=_env_api_key)
    request_timeout: int = 60

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)


@dataclass
class ChatConfig:
    """Runtime controls for reply generation."""

    llm: ChatLLMConfig = field(default_factory=ChatLLMConfig)
    cache_size: int = 50
    history_limit: int = 10
    max_context_turns: int = 9
    max_message_chars: int = 2000
    cache_stream_delay: float = 0.03
    degraded_stream_delay: float = 0.05
    heartbeat_interval: float = 15.0
    cors_allow_origins: List[str] = field(default_factory=lambda: ["*"])
    system_prompt: str = (
        'You are a helpful support agent for "GadgetStore", a small e-commerce store.\n'
        "Answer clearly and concisely.\n\n"
        "Here is some information about the store:\n"
        "- Shipping Policy: We ship worldwide. Shipping to USA is free for orders over $50. "
        "Otherwise, it's $5 flat rate. International shipping is $15.\n"
        "- Return Policy: You can return items within 30 days of purchase if they are unused "
        "and in original packaging.\n"
        "- Support Hours: Mon-Fri 9am-5pm EST.\n"
        "- Contact: support@gadgetstore.com\n\n"
        "If you don't know the answer, politely say you don't know and offer to connect "
        "them to a human agent via email."
    )
    model_kwargs: Dict[str, object] = field(
        default_factory=lambda: {"max_tokens": 150, "temperature": 0.7}
    )
