"""Customer-support chat service for a small e-commerce store.

Replies are produced by a chat-completions model with the recent conversation
as context. Repeated questions are answered from an in-memory FIFO cache, and
when the model quota is exhausted a keyword classifier answers in demo mode.
The primary entry points are ``support_chat.api.create_app`` for running the
HTTP service and ``support_chat.service.ChatService`` for embedding the chat
engine directly into Python code.
"""

from .cache import ResponseCache, make_cache_key
from .config import ChatConfig, ChatLLMConfig
from .context import ContextBuilder, Role, Turn
from .degraded import DegradedModeClassifier
from .engine import ReplyGenerator, StreamEmitter
from .service import ChatService

__all__ = [
    "ChatConfig",
    "ChatLLMConfig",
    "ChatService",
    "ContextBuilder",
    "DegradedModeClassifier",
    "ReplyGenerator",
    "ResponseCache",
    "Role",
    "StreamEmitter",
    "Turn",
    "make_cache_key",
]
