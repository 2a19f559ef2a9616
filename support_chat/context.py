"""Conversation turns and context-window assembly."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Sequence

logger = logging.getLogger(__name__)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def from_sender(cls, sender: Any) -> "Role":
        """Map a stored sender value onto a role; anything but "user" is the assistant."""
        return cls.USER if sender == cls.USER.value else cls.ASSISTANT


@dataclass(frozen=True)
class Turn:
    role: Role
    content: str

    def as_message(self) -> Dict[str, str]:
        return {"role": self.role.value, "content": self.content}


def _field(record: Any, name: str) -> Any:
    if isinstance(record, Mapping):
        return record.get(name)
    return getattr(record, name, None)


class ContextBuilder:
    """Turn a newest-first message history into a chronological context window.

    The newest record is the just-stored copy of the incoming user message, so
    it is dropped; the remaining records are reversed and capped at
    ``max_turns``.
    """

    def __init__(self, max_turns: int = 9) -> None:
        if max_turns < 0:
            raise ValueError("max_turns must not be negative")
        self.max_turns = max_turns

    def build(self, history: Sequence[Any]) -> List[Turn]:
        if len(history) < 2:
            return []

        prior = list(history[1:])
        prior.reverse()
        if len(prior) > self.max_turns:
            prior = prior[len(prior) - self.max_turns :]

        window = [
            Turn(role=Role.from_sender(_field(record, "sender")), content=str(_field(record, "content") or ""))
            for record in prior
        ]
        logger.debug("Built context window with %d turn(s) from %d record(s)", len(window), len(history))
        return window
