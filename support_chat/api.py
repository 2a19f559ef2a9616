"""FastAPI entry point for the support chat service."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import time
from typing import AsyncIterator, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field
import uvicorn

from .config import ChatConfig, ChatLLMConfig
from .service import ChatService
from .utils import setup_logging

logger = logging.getLogger(__name__)

EMPTY_MESSAGE_DETAIL = "Message cannot be empty"


class ChatMessageRequest(BaseModel):
    message: str = Field(..., description="User message to answer.")
    session_id: Optional[str] = Field(
        None, alias="sessionId", description="Existing conversation id; a new one is created when absent."
    )


class ChatMessageResponse(BaseModel):
    reply: str
    sessionId: str


class HistoryResponse(BaseModel):
    messages: List[dict] = Field(default_factory=list)


def _sse(data: object, event: Optional[str] = None) -> str:
    frame = f"data: {json.dumps(data)}\n\n"
    return f"event: {event}\n{frame}" if event else frame


def _heartbeat() -> str:
    return ": heartbeat\n\n" + _sse(int(time.time() * 1000), event="ping")


async def _with_heartbeat(fragments: AsyncIterator[str], interval: float) -> AsyncIterator[Optional[str]]:
    """Yield each fragment, or ``None`` whenever ``interval`` seconds pass without one."""
    pending: Optional[asyncio.Future] = None
    try:
        while True:
            if pending is None:
                pending = asyncio.ensure_future(fragments.__anext__())
            done, _ = await asyncio.wait({pending}, timeout=interval)
            if not done:
                yield None
                continue
            task, pending = pending, None
            try:
                fragment = task.result()
            except StopAsyncIteration:
                return
            yield fragment
    finally:
        if pending is not None:
            pending.cancel()
            await asyncio.gather(pending, return_exceptions=True)
        await fragments.aclose()


def _is_message_error(error: dict) -> bool:
    return tuple(error.get("loc", ())) in {("body",), ("body", "message")}


def create_app(
    chat_config: Optional[ChatConfig] = None,
    *,
    log_dir: Optional[str] = None,
    service: Optional[ChatService] = None,
) -> FastAPI:
    if log_dir:
        setup_logging(log_dir, logging.INFO)

    app = FastAPI(title="Support Chat", version="0.1.0")
    app.state.service = service or ChatService(chat_config)
    config: ChatConfig = app.state.service.config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        # A missing or non-string chat message is treated like an empty one.
        if request.url.path == "/chat/message" and any(_is_message_error(err) for err in exc.errors()):
            logger.info("Rejected chat message with invalid body")
            return JSONResponse(status_code=400, content={"detail": EMPTY_MESSAGE_DETAIL})
        return await request_validation_exception_handler(request, exc)

    @app.get("/health")
    async def health() -> Dict[str, bool]:
        try:
            return app.state.service.health()
        except Exception as exc:
            logger.exception("Health check failed")
            raise HTTPException(status_code=500, detail={"ok": False}) from exc

    @app.post("/chat/message", response_model=ChatMessageResponse)
    async def chat_message(request: ChatMessageRequest):
        try:
            result = await app.state.service.reply(request.message, request.session_id)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except Exception as exc:
            logger.exception("Chat request failed (session_id=%s)", request.session_id)
            raise HTTPException(status_code=500, detail="Internal Server Error") from exc

        return {"reply": result.reply, "sessionId": result.session_id}

    @app.get("/chat/stream")
    async def chat_stream(
        message: str = Query("", description="User message to answer."),
        session_id: Optional[str] = Query(None, alias="sessionId"),
    ):
        try:
            resolved_id, fragments = app.state.service.stream_chat(message, session_id)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        except Exception as exc:
            logger.exception("Stream request failed (session_id=%s)", session_id)
            raise HTTPException(status_code=500, detail="Stream failed") from exc

        logger.info("Streaming reply for session %s", resolved_id)

        async def events() -> AsyncIterator[str]:
            try:
                async for fragment in _with_heartbeat(fragments, config.heartbeat_interval):
                    yield _heartbeat() if fragment is None else _sse(fragment)
            except Exception:
                logger.exception("Stream failed (session_id=%s)", resolved_id)
                yield _sse({"error": "Stream failed"}, event="error")
                return
            yield _sse({"sessionId": resolved_id}, event="end")

        return StreamingResponse(
            events(),
            media_type="text/event-stream",
            headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
        )

    @app.get("/chat/history/{session_id}", response_model=HistoryResponse)
    async def history(session_id: str):
        logger.info("Fetching history for session %s", session_id)
        try:
            messages = app.state.service.get_history(session_id)
        except Exception as exc:
            logger.exception("Failed to fetch history for session %s", session_id)
            raise HTTPException(status_code=500, detail="Failed to fetch history") from exc
        return {"messages": messages}

    return app


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Run the support chat service.")
    parser.add_argument("--host", default="0.0.0.0", help="Host interface to bind.")
    parser.add_argument("--port", type=int, default=3001, help="Port to bind.")
    parser.add_argument("--log_dir", help="Directory for application logs.")
    parser.add_argument(
        "--llm_endpoint",
        default="https://api.openai.com/v1/chat/completions",
        help="Chat-completions endpoint.",
    )
    parser.add_argument("--llm_model", default="gpt-3.5-turbo", help="Model name for completions.")
    parser.add_argument("--request_timeout", type=int, default=60, help="Timeout for LLM calls (seconds).")
    parser.add_argument("--cache_size", type=int, default=50, help="Max replies kept in the response cache.")
    parser.add_argument(
        "--max_message_chars", type=int, default=2000, help="User messages are truncated to this length."
    )
    parser.add_argument(
        "--heartbeat_interval", type=float, default=15.0, help="Seconds between SSE keep-alive pings."
    )
    parser.add_argument(
        "--cors_origins",
        default="*",
        help="Comma-separated origins allowed by CORS ('*' allows any).",
    )
    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> None:
    load_dotenv()
    args = parse_args(argv)
    chat_cfg = ChatConfig(
        llm=ChatLLMConfig(
            endpoint=args.llm_endpoint,
            model=args.llm_model,
            request_timeout=args.request_timeout,
        ),
        cache_size=args.cache_size,
        max_message_chars=args.max_message_chars,
        heartbeat_interval=args.heartbeat_interval,
        cors_allow_origins=[origin.strip() for origin in args.cors_origins.split(",") if origin.strip()],
    )

    app = create_app(chat_cfg, log_dir=args.log_dir)
    logger.info("Starting support chat service on %s:%d", args.host, args.port)
    uvicorn.run(app, host=args.host, port=args.port)


if __name__ == "__main__":
    main()
