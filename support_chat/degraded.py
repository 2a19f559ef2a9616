"""Canned answers used when the upstream model quota is exhausted."""

from __future__ import annotations

from typing import Sequence, Tuple

DEMO_MODE_PREFIX = (
    "I am currently operating in Demo Mode because the OpenAI API quota has been exceeded. "
    "\n\n(Simulated Response): "
)

GENERIC_GREETING = (
    "Hello! I can help you with shipping, returns, and support hours. What would you like to know?"
)

# Checked in order; the first group with a matching keyword wins.
KEYWORD_ANSWERS: Sequence[Tuple[Tuple[str, ...], str]] = (
    (
        ("shipping", "ship", "delivery", "cost"),
        "Shipping to the USA is free for orders over $50. Otherwise, it's a $5 flat rate. "
        "International shipping is $15.",
    ),
    (
        ("return", "refund", "back"),
        "You can return items within 30 days of purchase if they are unused and in original packaging.",
    ),
    (("hour", "open", "time"), "Our support hours are Mon-Fri 9am-5pm EST."),
    (("contact", "email", "support"), "You can contact us at support@gadgetstore.com."),
    (("hello", "hi"), "Hello! How can I help you today?"),
)


class DegradedModeClassifier:
    """Keyword matcher producing a demo-mode answer without calling the model."""

    def __init__(
        self,
        answers: Sequence[Tuple[Tuple[str, ...], str]] = KEYWORD_ANSWERS,
        *,
        fallback: str = GENERIC_GREETING,
        prefix: str = DEMO_MODE_PREFIX,
    ) -> None:
        self.answers = answers
        self.fallback = fallback
        self.prefix = prefix

    def classify(self, message: str) -> str:
        """Return the bare answer for the first keyword group found in ``message``."""
        lowered = message.lower()
        for keywords, answer in self.answers:
            if any(keyword in lowered for keyword in keywords):
                return answer
        return self.fallback

    def reply_for(self, message: str) -> str:
        return f"{self.prefix}{self.classify(message)}"
