from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, Sequence

from ..schemas.context import Attachment, Message


class BackendError(RuntimeError):
    """Raised when an AI backend call fails or returns an unusable result."""


class BackendTimeoutError(BackendError):
    """Raised when an AI backend call exceeds its configured timeout."""


@dataclass(slots=True)
class TextResult:
    text: str
    confidence: float | None = None


@dataclass(slots=True)
class GenerationResult:
    text: str = ""
    images: list[bytes] = field(default_factory=list)
    mime_types: list[str] = field(default_factory=list)

    @property
    def has_images(self) -> bool:
        return bool(self.images)


class TextBackend(Protocol):
    """Text/vision model reached by the specialist agents."""

    async def complete(
        self,
        message: str,
        history: Sequence[Message],
        attachments: Sequence[Attachment] | None = None,
    ) -> TextResult:
        ...


class GenerationBackend(Protocol):
    """Image generation model reached by the generation agent."""

    backend_id: str

    async def generate(
        self,
        prompt: str,
        images: Sequence[bytes],
        language: str,
        image_count: int,
    ) -> GenerationResult:
        ...


__all__ = [
    "BackendError",
    "BackendTimeoutError",
    "GenerationBackend",
    "GenerationResult",
    "TextBackend",
    "TextResult",
]
