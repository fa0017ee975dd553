from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

RECENT_MESSAGE_WINDOW = 5


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AttachmentType(str, Enum):
    IMAGE = "image"
    FILE = "file"
    VIDEO = "video"
    AUDIO = "audio"


class Attachment(BaseModel):
    """Media attached to a chat message or produced by an agent."""

    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    id: str = Field(..., min_length=1)
    type: AttachmentType = AttachmentType.FILE
    name: str = ""
    mime_type: str = "application/octet-stream"
    data: bytes | None = None
    url: str | None = None
    size: int = Field(default=0, ge=0)
    width: int | None = None
    height: int | None = None

    @classmethod
    def image(
        cls,
        *,
        id: str,
        name: str,
        data: bytes,
        mime_type: str = "image/png",
        width: int | None = None,
        height: int | None = None,
    ) -> "Attachment":
        return cls(
            id=id,
            type=AttachmentType.IMAGE,
            name=name,
            mime_type=mime_type,
            data=data,
            size=len(data),
            width=width,
            height=height,
        )

    @property
    def is_image(self) -> bool:
        return self.type == AttachmentType.IMAGE

    @property
    def has_data(self) -> bool:
        return bool(self.data)

    @property
    def has_url(self) -> bool:
        return bool(self.url)


class MessageRole(str, Enum):
    USER = "user"
    AI = "ai"
    SYSTEM = "system"


class Message(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    role: MessageRole
    content: str = ""
    timestamp: datetime = Field(default_factory=_utcnow)
    agent_id: str | None = None
    attachments: list[Attachment] | None = None
    image_analysis: str | None = None
    is_error: bool = False

    @property
    def image_attachments(self) -> list[Attachment]:
        return [attachment for attachment in self.attachments or () if attachment.is_image]

    @property
    def has_images(self) -> bool:
        return any(attachment.is_image for attachment in self.attachments or ())


class RequestContext(BaseModel):
    """Snapshot of the conversation at dispatch time.

    ``conversation_history`` is ordered chronologically (oldest first). A new
    context is built for every request; derived copies go through
    ``model_copy(update=...)``.
    """

    model_config = ConfigDict(frozen=True)

    user_message: str = ""
    conversation_history: list[Message] = Field(default_factory=list)
    attachments: list[Attachment] | None = None
    current_agent_id: str | None = None
    timestamp: datetime = Field(default_factory=_utcnow)
    metadata: dict[str, Any] = Field(default_factory=dict)
    previous_image_analyses: list[str] | None = None
    has_recent_images: bool = False
    user_language: str | None = None

    @property
    def has_attachments(self) -> bool:
        return bool(self.attachments)

    @property
    def has_images(self) -> bool:
        return any(attachment.is_image for attachment in self.attachments or ())

    @property
    def image_attachments(self) -> list[Attachment]:
        return [attachment for attachment in self.attachments or () if attachment.is_image]

    @property
    def conversation_length(self) -> int:
        return len(self.conversation_history)

    @property
    def is_conversation_empty(self) -> bool:
        return not self.conversation_history

    @property
    def last_message(self) -> Message | None:
        if not self.conversation_history:
            return None
        return self.conversation_history[-1]

    @property
    def user_message_count(self) -> int:
        return sum(1 for message in self.conversation_history if message.role == MessageRole.USER)

    @property
    def ai_message_count(self) -> int:
        return sum(1 for message in self.conversation_history if message.role == MessageRole.AI)

    @property
    def has_recent_images_in_history(self) -> bool:
        # Short conversations fall back to the current turn's attachments.
        if len(self.conversation_history) < RECENT_MESSAGE_WINDOW:
            return self.has_images
        recent = self.conversation_history[-RECENT_MESSAGE_WINDOW:]
        return any(message.has_images for message in recent)

    def history_images(self) -> list[Attachment]:
        """Every image in the history, flattened in chronological order."""
        images: list[Attachment] = []
        for message in self.conversation_history:
            images.extend(message.image_attachments)
        return images

    def __str__(self) -> str:
        return (
            f"RequestContext(user_message={len(self.user_message)} chars, "
            f"conversation_length={self.conversation_length}, has_attachments={self.has_attachments})"
        )
