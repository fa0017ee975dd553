from __future__ import annotations

import re
from typing import Sequence

from ..schemas.context import Message, MessageRole

_CYRILLIC_RANGE = re.compile(r"[\u0400-\u04FF]")
_CYRILLIC_LETTER = re.compile(r"[а-яё]", re.IGNORECASE)
_LATIN_LETTER = re.compile(r"[a-z]", re.IGNORECASE)


def contains_cyrillic(text: str) -> bool:
    return bool(_CYRILLIC_RANGE.search(text or ""))


def detect_generation_language(message: str, history: Sequence[Message], *, default: str = "en") -> str:
    """Language hint for the generation backend.

    Any Cyrillic character in the current message, then in any user message of
    the history, selects ``ru``.
    """
    if contains_cyrillic(message):
        return "ru"
    for entry in history:
        if entry.role == MessageRole.USER and contains_cyrillic(entry.content):
            return "ru"
    return default


def detect_conversation_language(message: str, history: Sequence[Message], *, window: int = 5) -> str | None:
    """Best-effort language of the conversation, ``None`` when undecided.

    A message written purely in one script decides on its own. Mixed or empty
    messages defer to a majority vote over the user messages among the last
    ``window`` history entries.
    """
    has_cyrillic = bool(_CYRILLIC_LETTER.search(message or ""))
    has_latin = bool(_LATIN_LETTER.search(message or ""))
    if has_cyrillic and not has_latin:
        return "ru"
    if has_latin and not has_cyrillic:
        return "en"

    cyrillic_votes = 0
    latin_votes = 0
    recent = history[-window:] if window > 0 else []
    for entry in recent:
        if entry.role != MessageRole.USER:
            continue
        if _CYRILLIC_LETTER.search(entry.content):
            cyrillic_votes += 1
        if _LATIN_LETTER.search(entry.content):
            latin_votes += 1
    if cyrillic_votes > latin_votes:
        return "ru"
    if latin_votes > cyrillic_votes:
        return "en"
    return None


__all__ = ["contains_cyrillic", "detect_conversation_language", "detect_generation_language"]
