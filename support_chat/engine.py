"""Reply generation: cache lookup, upstream call and fallback answers.

``ReplyGenerator`` returns one complete reply; ``StreamEmitter`` yields the
reply as text fragments. Both share the same decision order:

1. no API key configured -> advisory message (cache and upstream untouched)
2. cache hit -> cached reply
3. upstream call -> reply is cached when non-empty
4. quota exhaustion -> demo-mode answer from the keyword classifier
5. any other failure -> technical-difficulties message

Neither entry point raises; every failure becomes an in-band reply. Only
genuine upstream replies are cached.
"""

from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Dict, Iterable, List, Optional, Sequence

from fastapi.concurrency import iterate_in_threadpool, run_in_threadpool

from .cache import ResponseCache, make_cache_key
from .config import ChatConfig
from .context import Turn
from .degraded import DegradedModeClassifier
from .llm_client import ChatLLMClient, is_quota_error

logger = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "I'm sorry, I'm not configured correctly (Missing API Key)."
EMPTY_REPLY_MESSAGE = "I'm sorry, I couldn't generate a response."
TECHNICAL_DIFFICULTIES_MESSAGE = (
    "I'm currently experiencing technical difficulties (OpenAI API Error). "
    "Please check the backend logs."
)


async def emulate_stream(text: str, delay: float) -> AsyncIterator[str]:
    """Yield ``text`` split on whitespace, each word followed by a space and a pause."""
    for word in text.split():
        yield f"{word} "
        if delay > 0:
            await asyncio.sleep(delay)


async def _release(tokens: Iterable[str]) -> None:
    # Closing the generator exits the client's open HTTP response.
    close = getattr(tokens, "close", None)
    if close is not None:
        await run_in_threadpool(close)


class _ReplyPipeline:
    def __init__(
        self,
        config: Optional[ChatConfig] = None,
        *,
        cache: Optional[ResponseCache] = None,
        client: Optional[ChatLLMClient] = None,
        classifier: Optional[DegradedModeClassifier] = None,
    ) -> None:
        self.config = config or ChatConfig()
        self.cache = cache if cache is not None else ResponseCache(self.config.cache_size)
        self.client = client or ChatLLMClient(self.config.llm)
        self.classifier = classifier or DegradedModeClassifier()

    @property
    def is_configured(self) -> bool:
        return self.config.llm.is_configured

    def _build_messages(self, context: Sequence[Turn], message: str) -> List[Dict[str, str]]:
        prompt: List[Dict[str, str]] = [{"role": "system", "content": self.config.system_prompt}]
        prompt.extend(turn.as_message() for turn in context)
        prompt.append({"role": "user", "content": message})
        return prompt


class ReplyGenerator(_ReplyPipeline):
    """Produce a single complete reply for a user message."""

    async def generate_reply(self, context: Sequence[Turn], message: str) -> str:
        if not self.is_configured:
            logger.warning("No API key configured; returning advisory reply")
            return NOT_CONFIGURED_MESSAGE

        key = make_cache_key(context, message)
        cached = self.cache.lookup(key)
        if cached is not None:
            logger.info("Cache hit (non-streaming)")
            logger.debug("Cache key: %r", key)
            return cached

        try:
            reply = await run_in_threadpool(
                self.client.complete,
                self._build_messages(context, message),
                model_kwargs=self.config.model_kwargs,
            )
        except Exception as exc:
            if is_quota_error(exc):
                logger.warning("Upstream quota exceeded; answering in demo mode")
                return self.classifier.reply_for(message)
            logger.exception("Chat completion failed")
            return TECHNICAL_DIFFICULTIES_MESSAGE

        if not reply:
            logger.warning("Upstream returned an empty completion")
            return EMPTY_REPLY_MESSAGE

        self.cache.store(key, reply)
        return reply


class StreamEmitter(_ReplyPipeline):
    """Produce a reply as a lazy sequence of text fragments."""

    async def generate_stream(self, context: Sequence[Turn], message: str) -> AsyncIterator[str]:
        if not self.is_configured:
            logger.warning("No API key configured; returning advisory reply")
            yield NOT_CONFIGURED_MESSAGE
            return

        key = make_cache_key(context, message)
        cached = self.cache.lookup(key)
        if cached is not None:
            logger.info("Cache hit (streaming)")
            logger.debug("Cache key: %r", key)
            async for fragment in emulate_stream(cached, self.config.cache_stream_delay):
                yield fragment
            return

        parts: List[str] = []
        try:
            tokens = self.client.stream_completion(
                self._build_messages(context, message),
                model_kwargs=self.config.model_kwargs,
            )
            try:
                async for token in iterate_in_threadpool(tokens):
                    parts.append(token)
                    yield token
            finally:
                await _release(tokens)
        except Exception as exc:
            if is_quota_error(exc):
                logger.warning("Upstream quota exceeded; streaming demo-mode answer")
                fallback = self.classifier.reply_for(message)
                async for fragment in emulate_stream(fallback, self.config.degraded_stream_delay):
                    yield fragment
                return
            logger.exception("Streaming chat completion failed after %d fragment(s)", len(parts))
            yield TECHNICAL_DIFFICULTIES_MESSAGE
            return

        reply = "".join(parts)
        if not reply:
            logger.warning("Upstream stream finished without content")
            yield EMPTY_REPLY_MESSAGE
            return

        self.cache.store(key, reply)
        logger.debug("Cached streamed reply of %d chars", len(reply))
