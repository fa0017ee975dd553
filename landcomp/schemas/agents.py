from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from .context import Attachment, Message, RequestContext
from .intents import Intent


class AgentCapability(str, Enum):
    TEXT_GENERATION = "text_generation"
    IMAGE_ANALYSIS = "image_analysis"
    IMAGE_GENERATION = "image_generation"
    CONSULTATION = "consultation"
    PLANNING = "planning"
    ANALYSIS = "analysis"
    MODIFICATION = "modification"
    GARDENING = "gardening"
    LANDSCAPE_DESIGN = "landscape_design"
    CONSTRUCTION = "construction"
    ECOLOGY = "ecology"
    # Escape value for capabilities registered after the fact; the raw tag
    # travels separately in an agent's ``custom_capabilities``.
    CUSTOM = "custom"

    @classmethod
    def parse(cls, raw: "str | AgentCapability") -> "AgentCapability":
        if isinstance(raw, cls):
            return raw
        try:
            return cls(str(raw).strip().lower())
        except ValueError:
            return cls.CUSTOM


def capability_tags(capabilities: Iterable[AgentCapability], custom: Iterable[str] = ()) -> list[str]:
    """Sorted string tags for display and JSON payloads."""
    tags = {capability.value for capability in capabilities if capability is not AgentCapability.CUSTOM}
    tags.update(custom)
    return sorted(tags)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_request_id() -> str:
    return uuid4().hex


class AgentRequest(BaseModel):
    """One dispatch attempt; retries get a fresh ``request_id``."""

    model_config = ConfigDict(frozen=True)

    request_id: str = Field(default_factory=new_request_id, min_length=1)
    context: RequestContext
    intent: Intent
    timestamp: datetime = Field(default_factory=_utcnow)

    @property
    def user_message(self) -> str:
        return self.context.user_message

    @property
    def conversation_history(self) -> list[Message]:
        return self.context.conversation_history

    @property
    def intent_type(self) -> str:
        return self.intent.type.value

    @property
    def intent_confidence(self) -> float:
        return self.intent.confidence

    @property
    def has_attachments(self) -> bool:
        return self.context.has_attachments

    @property
    def has_images(self) -> bool:
        return self.context.has_images


class AgentResponse(BaseModel):
    model_config = ConfigDict(frozen=True, ser_json_bytes="base64")

    request_id: str
    is_success: bool
    message: str | None = None
    agent_id: str | None = None
    agent_name: str | None = None
    generated_attachments: list[Attachment] | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    timestamp: datetime = Field(default_factory=_utcnow)

    @classmethod
    def success(
        cls,
        *,
        request_id: str,
        message: str,
        agent_id: str | None = None,
        agent_name: str | None = None,
        generated_attachments: list[Attachment] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "AgentResponse":
        return cls(
            request_id=request_id,
            is_success=True,
            message=message,
            agent_id=agent_id,
            agent_name=agent_name,
            generated_attachments=generated_attachments,
            metadata=metadata or {},
        )

    @classmethod
    def failure(
        cls,
        *,
        request_id: str,
        error: str,
        agent_id: str | None = None,
        agent_name: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> "AgentResponse":
        return cls(
            request_id=request_id,
            is_success=False,
            error=error,
            agent_id=agent_id,
            agent_name=agent_name,
            metadata=metadata or {},
        )

    @property
    def has_generated_attachments(self) -> bool:
        return bool(self.generated_attachments)

    @property
    def has_generated_images(self) -> bool:
        return any(attachment.is_image for attachment in self.generated_attachments or ())

    @property
    def generated_image_attachments(self) -> list[Attachment]:
        return [attachment for attachment in self.generated_attachments or () if attachment.is_image]

    def __str__(self) -> str:
        return f"AgentResponse(request_id={self.request_id}, is_success={self.is_success}, agent={self.agent_name})"


__all__ = [
    "AgentCapability",
    "AgentRequest",
    "AgentResponse",
    "capability_tags",
    "new_request_id",
]
