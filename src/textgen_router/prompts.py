"""Prompt builders."""

from __future__ import annotations

from .llm.types import InvalidRequestError, Message

TELUGU_SYSTEM_PROMPT = (
    "You are an expert Telugu entertainment journalist covering Tollywood cinema. "
    "Write naturally in Telugu script, keep celebrity and movie names in English, "
    "and do not invent facts, dates, or box-office numbers."
)


def build_telugu_messages(topic: str) -> tuple[Message, ...]:
    topic = (topic or "").strip()
    if not topic:
        raise InvalidRequestError("topic must not be empty")
    return (
        Message(role="system", content=TELUGU_SYSTEM_PROMPT),
        Message(
            role="user",
            content=(
                f"Write a short Telugu article about: {topic}\n\n"
                "Open with one engaging sentence, then give 2-3 paragraphs of context "
                "for Telugu cinema fans."
            ),
        ),
    )
