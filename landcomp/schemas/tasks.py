from __future__ import annotations

import base64
import binascii
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field, field_validator

from .context import Attachment, AttachmentType, Message, MessageRole


class AttachmentPayload(BaseModel):
    """Wire form of an attachment; ``data`` is base64 encoded."""

    id: str = Field(default_factory=lambda: uuid4().hex, min_length=1)
    type: AttachmentType = AttachmentType.IMAGE
    name: str = ""
    mime_type: str = "image/png"
    data: str | None = None
    url: str | None = None
    width: int | None = None
    height: int | None = None

    @field_validator("data")
    @classmethod
    def _check_base64(cls, value: str | None) -> str | None:
        if value is None:
            return None
        try:
            base64.b64decode(value, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise ValueError("data must be base64 encoded") from exc
        return value

    def to_attachment(self) -> Attachment:
        raw = base64.b64decode(self.data) if self.data else None
        return Attachment(
            id=self.id,
            type=self.type,
            name=self.name or self.id,
            mime_type=self.mime_type,
            data=raw,
            url=self.url,
            size=len(raw) if raw else 0,
            width=self.width,
            height=self.height,
        )


class MessagePayload(BaseModel):
    id: str = Field(default_factory=lambda: uuid4().hex)
    role: MessageRole
    content: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    agent_id: str | None = None
    attachments: list[AttachmentPayload] = Field(default_factory=list)
    image_analysis: str | None = None

    def to_message(self) -> Message:
        return Message(
            id=self.id,
            role=self.role,
            content=self.content,
            timestamp=self.timestamp,
            agent_id=self.agent_id,
            attachments=[item.to_attachment() for item in self.attachments] or None,
            image_analysis=self.image_analysis,
        )


class OrchestrateRequest(BaseModel):
    message: str = Field(..., min_length=1)
    history: list[MessagePayload] = Field(default_factory=list)
    attachments: list[AttachmentPayload] = Field(default_factory=list)
    current_agent_id: str | None = None
    intent: dict[str, Any] | None = Field(
        default=None,
        description="Classifier output for this turn (camelCase or snake_case keys).",
    )


__all__ = ["AttachmentPayload", "MessagePayload", "OrchestrateRequest"]
