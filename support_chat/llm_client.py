"""Client wrapper for streaming chat-completions requests."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

from .config import ChatLLMConfig

logger = logging.getLogger(__name__)

QUOTA_STATUS_CODE = 429
QUOTA_ERROR_CODE = "insufficient_quota"


class LLMRequestError(Exception):
    """Raised when the chat-completions endpoint rejects a request."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        error_type: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.type = error_type

    @classmethod
    def from_response(cls, response: requests.Response) -> "LLMRequestError":
        code = error_type = None
        message = f"Chat completion request failed with HTTP {response.status_code}"
        try:
            body = response.json()
        except ValueError:
            body = None
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            code = error.get("code")
            error_type = error.get("type")
            message = error.get("message") or message
        return cls(message, status_code=response.status_code, code=code, error_type=error_type)


def is_quota_error(exc: BaseException) -> bool:
    """Return True when ``exc`` signals rate or quota exhaustion upstream."""
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if status == QUOTA_STATUS_CODE:
        return True
    return QUOTA_ERROR_CODE in (getattr(exc, "code", None), getattr(exc, "type", None))


class ChatLLMClient:
    """Thin wrapper around a chat-completions endpoint with streaming support."""

    def __init__(self, config: ChatLLMConfig) -> None:
        self.config = config

    def stream_completion(
        self,
        messages: List[Dict[str, str]],
        *,
        model_kwargs: Optional[Dict[str, object]] = None,
    ) -> Iterable[str]:
        """Yield tokens from the model as they arrive."""
        payload = self._payload(messages, stream=True, model_kwargs=model_kwargs)

        logger.info("Streaming chat completion to %s using model %s", self.config.endpoint, self.config.model)
        with requests.post(
            self.config.endpoint,
            json=payload,
            headers=self._headers(),
            stream=True,
            timeout=self.config.request_timeout,
        ) as response:
            self._raise_for_status(response)

            for raw_line in response.iter_lines():
                if not raw_line:
                    continue
                line = raw_line.decode("utf-8").strip()
                if line.startswith("data:"):
                    line = line[5:].strip()
                if not line:
                    continue
                if line == "[DONE]":
                    break

                try:
                    chunk = json.loads(line)
                except json.JSONDecodeError:
                    logger.debug("Skipping non-JSON stream line: %s", line)
                    continue

                token = self._extract_delta(chunk)
                if token:
                    yield token

    def complete(
        self,
        messages: List[Dict[str, str]],
        *,
        model_kwargs: Optional[Dict[str, object]] = None,
    ) -> str:
        """Return a full completion (no streaming)."""
        payload = self._payload(messages, stream=False, model_kwargs=model_kwargs)

        logger.debug("Requesting non-streaming completion for %d message(s)", len(messages))
        response = requests.post(
            self.config.endpoint,
            json=payload,
            headers=self._headers(),
            timeout=self.config.request_timeout,
        )
        self._raise_for_status(response)
        data = response.json()
        choice = (data.get("choices") or [{}])[0]
        message = choice.get("message") or {}
        return message.get("content", "") or ""

    def _payload(
        self,
        messages: List[Dict[str, str]],
        *,
        stream: bool,
        model_kwargs: Optional[Dict[str, object]],
    ) -> Dict[str, object]:
        payload: Dict[str, object] = {
            "model": self.config.model,
            "messages": messages,
            "stream": stream,
        }
        if model_kwargs:
            payload.update(model_kwargs)
        return payload

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        return headers

    @staticmethod
    def _raise_for_status(response: requests.Response) -> None:
        if response.status_code >= 400:
            raise LLMRequestError.from_response(response)

    @staticmethod
    def _extract_delta(payload: Dict[str, Any]) -> str:
        try:
            choices = payload.get("choices") or []
            if not choices:
                return ""
            delta = choices[0].get("delta") or {}
            content = delta.get("content") or ""
            return str(content)
        except Exception:
            logger.debug("Failed to parse stream payload: %s", payload, exc_info=True)
            return ""
