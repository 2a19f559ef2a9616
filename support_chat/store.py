"""In-memory persistence for conversations and their messages."""

from __future__ import annotations

import itertools
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class Conversation:
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=_now)


@dataclass
class Message:
    conversation_id: str
    sender: str
    content: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=_now)
    seq: int = 0

    def to_dict(self) -> Dict[str, object]:
        payload = asdict(self)
        payload.pop("seq")
        payload["created_at"] = self.created_at.isoformat()
        return payload


class ConversationStore:
    """Create/find operations on conversations and messages, kept in process memory."""

    def __init__(self) -> None:
        self._conversations: Dict[str, Conversation] = {}
        self._messages: Dict[str, List[Message]] = {}
        # Tie-breaker for messages recorded within the same clock tick.
        self._counter = itertools.count(1)

    def create_conversation(self) -> Conversation:
        conversation = Conversation()
        self._conversations[conversation.id] = conversation
        self._messages[conversation.id] = []
        logger.info("Created conversation %s", conversation.id)
        return conversation

    def find_conversation(self, conversation_id: Optional[str]) -> Optional[Conversation]:
        if not conversation_id:
            return None
        return self._conversations.get(conversation_id)

    def create_message(self, conversation_id: str, sender: str, content: str) -> Message:
        if conversation_id not in self._conversations:
            raise KeyError(f"No conversation found for id '{conversation_id}'")
        message = Message(
            conversation_id=conversation_id,
            sender=sender,
            content=content,
            seq=next(self._counter),
        )
        self._messages[conversation_id].append(message)
        logger.debug("Stored %s message in conversation %s", sender, conversation_id)
        return message

    def find_messages(
        self,
        conversation_id: str,
        *,
        newest_first: bool = False,
        limit: Optional[int] = None,
    ) -> List[Message]:
        messages = sorted(
            self._messages.get(conversation_id, []),
            key=lambda msg: (msg.created_at, msg.seq),
            reverse=newest_first,
        )
        if limit is not None:
            messages = messages[:limit]
        return messages

    def ping(self) -> bool:
        return True
