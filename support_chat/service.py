"""High level orchestration for support chat sessions."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import AsyncIterator, Dict, List, Optional, Tuple

from .cache import ResponseCache
from .config import ChatConfig
from .context import ContextBuilder, Turn
from .degraded import DegradedModeClassifier
from .engine import EMPTY_REPLY_MESSAGE, ReplyGenerator, StreamEmitter
from .llm_client import ChatLLMClient
from .store import Conversation, ConversationStore

logger = logging.getLogger(__name__)

USER_SENDER = "user"
ASSISTANT_SENDER = "ai"


@dataclass
class ChatReply:
    reply: str
    session_id: str


@dataclass
class _PreparedTurn:
    conversation: Conversation
    context: List[Turn]
    message: str
    truncated: bool


class ChatService:
    """Core chat engine used by both the API and direct Python consumers."""

    def __init__(
        self,
        config: Optional[ChatConfig] = None,
        *,
        store: Optional[ConversationStore] = None,
        cache: Optional[ResponseCache] = None,
        client: Optional[ChatLLMClient] = None,
        classifier: Optional[DegradedModeClassifier] = None,
    ) -> None:
        self.config = config or ChatConfig()
        self.store = store or ConversationStore()
        self.cache = cache if cache is not None else ResponseCache(self.config.cache_size)
        self.client = client or ChatLLMClient(self.config.llm)
        self.context_builder = ContextBuilder(self.config.max_context_turns)
        self.generator = ReplyGenerator(self.config, cache=self.cache, client=self.client, classifier=classifier)
        self.emitter = StreamEmitter(self.config, cache=self.cache, client=self.client, classifier=classifier)

    async def reply(self, message: str, session_id: Optional[str] = None) -> ChatReply:
        """Answer ``message`` in one piece and record both sides of the exchange."""
        turn = self._prepare(message, session_id)
        reply = await self.generator.generate_reply(turn.context, turn.message)
        if turn.truncated:
            reply += self._truncation_note()

        self.store.create_message(turn.conversation.id, ASSISTANT_SENDER, reply)
        return ChatReply(reply=reply, session_id=turn.conversation.id)

    def stream_chat(self, message: str, session_id: Optional[str] = None) -> Tuple[str, AsyncIterator[str]]:
        """Return the session id and a fragment stream for the assistant reply.

        The user message is recorded before this returns; the assistant reply is
        recorded once the stream has been consumed to the end.
        """
        turn = self._prepare(message, session_id)

        async def generator() -> AsyncIterator[str]:
            parts: List[str] = []
            async for fragment in self.emitter.generate_stream(turn.context, turn.message):
                parts.append(fragment)
                yield fragment
            if turn.truncated:
                note = self._truncation_note()
                parts.append(note)
                yield note

            reply = "".join(parts).strip() or EMPTY_REPLY_MESSAGE
            self.store.create_message(turn.conversation.id, ASSISTANT_SENDER, reply)
            logger.debug("Recorded streamed reply for session %s", turn.conversation.id)

        return turn.conversation.id, generator()

    def resolve_session(self, session_id: Optional[str]) -> Conversation:
        """Return the conversation for ``session_id``, starting a new one when it is unknown."""
        conversation = self.store.find_conversation(session_id)
        if conversation is None:
            if session_id:
                logger.info("Unknown session %s; starting a new conversation", session_id)
            conversation = self.store.create_conversation()
        return conversation

    def get_history(self, session_id: str) -> List[Dict[str, object]]:
        """Return the recorded conversation in chronological order."""
        return [message.to_dict() for message in self.store.find_messages(session_id)]

    def health(self) -> Dict[str, bool]:
        return {
            "ok": True,
            "db": self.store.ping(),
            "openaiKey": self.config.llm.is_configured,
        }

    def _prepare(self, message: str, session_id: Optional[str]) -> _PreparedTurn:
        if not message or not message.strip():
            raise ValueError("Message cannot be empty")

        conversation = self.resolve_session(session_id)
        self.store.create_message(conversation.id, USER_SENDER, message)

        history = self.store.find_messages(
            conversation.id,
            newest_first=True,
            limit=self.config.history_limit,
        )
        context = self.context_builder.build(history)

        limit = self.config.max_message_chars
        truncated = len(message) > limit
        if truncated:
            logger.info("Truncating %d-char message to %d chars (session %s)", len(message), limit, conversation.id)
            message = message[:limit]

        return _PreparedTurn(conversation=conversation, context=context, message=message, truncated=truncated)

    def _truncation_note(self) -> str:
        return (
            "\n\nNote: Your message was very long, so I processed the first "
            f"{self.config.max_message_chars} characters."
        )
