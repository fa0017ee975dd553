from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Sequence

from ..core.config import OrchestrationSettings
from ..core.logging import get_logger
from ..schemas.context import Attachment, Message, MessageRole, RequestContext
from ..schemas.intents import ImageIntent, Intent
from ..services.language import detect_conversation_language

logger = get_logger(name=__name__)


class ContextBuilder:
    """Builds the immutable ``RequestContext`` for one user turn."""

    def __init__(self, settings: OrchestrationSettings | None = None) -> None:
        self._settings = settings or OrchestrationSettings()

    def build(
        self,
        *,
        user_message: str,
        history: Sequence[Message] = (),
        attachments: Sequence[Attachment] | None = None,
        current_agent_id: str | None = None,
    ) -> RequestContext:
        history = list(history)
        analyses = self._image_analyses(history)
        resolved = list(attachments) if attachments else None
        from_history = False
        if not resolved:
            resolved = self._attachments_from_history(history)
            from_history = resolved is not None

        metadata = self._metadata(history, current_agent_id)
        metadata["attachments_from_history"] = from_history

        context = RequestContext(
            user_message=user_message,
            conversation_history=history,
            attachments=resolved,
            current_agent_id=current_agent_id,
            timestamp=datetime.now(timezone.utc),
            metadata=metadata,
            previous_image_analyses=analyses or None,
            has_recent_images=self._has_recent_images(history),
            user_language=detect_conversation_language(
                user_message,
                history,
                window=self._settings.recent_message_window,
            ),
        )
        logger.debug(
            "context_built",
            history=len(history),
            attachments=len(resolved or ()),
            language=context.user_language,
        )
        return context

    def relevant_images(
        self,
        intent: Intent,
        history: Sequence[Message],
        current_attachments: Sequence[Attachment] | None,
    ) -> list[Attachment]:
        """Images worth forwarding for the intent's declared image intent."""
        limit = self._settings.max_selected_images
        current = [attachment for attachment in current_attachments or () if attachment.is_image]
        image_intent = intent.image_intent

        if image_intent == ImageIntent.ANALYZE_NEW:
            return current
        if image_intent == ImageIntent.ANALYZE_RECENT:
            return _newest_images(history, intent.images_needed or limit)
        if image_intent == ImageIntent.COMPARE_MULTIPLE:
            needed = limit - len(current)
            return current + (_newest_images(history, needed) if needed > 0 else [])
        if image_intent == ImageIntent.REFERENCE_SPECIFIC:
            flattened = [image for message in history for image in message.image_attachments]
            indices = intent.referenced_image_indices or []
            return [flattened[index] for index in indices if 0 <= index < len(flattened)]
        if image_intent == ImageIntent.GENERATE_BASED:
            return current[:1]
        return []

    def _image_analyses(self, history: Sequence[Message]) -> list[str]:
        analyses = [message.image_analysis for message in history if message.image_analysis]
        limit = self._settings.analysis_history_limit
        return analyses[-limit:] if limit > 0 else []

    def _has_recent_images(self, history: Sequence[Message]) -> bool:
        window = self._settings.recent_image_scan_window
        return any(message.has_images for message in history[-window:])

    def _attachments_from_history(self, history: Sequence[Message]) -> list[Attachment] | None:
        window = self._settings.recent_message_window
        for message in reversed(history[-window:]):
            if message.attachments:
                return list(message.attachments)
        return None

    def _metadata(self, history: Sequence[Message], current_agent_id: str | None) -> dict[str, Any]:
        agent_usage: dict[str, int] = {}
        for message in history:
            if message.role == MessageRole.AI and message.agent_id:
                agent_usage[message.agent_id] = agent_usage.get(message.agent_id, 0) + 1

        metadata: dict[str, Any] = {
            "conversation_length": len(history),
            "user_message_count": sum(1 for message in history if message.role == MessageRole.USER),
            "ai_message_count": sum(1 for message in history if message.role == MessageRole.AI),
            "system_message_count": sum(1 for message in history if message.role == MessageRole.SYSTEM),
            "current_agent_id": current_agent_id,
            "has_attachments": any(message.attachments for message in history),
            "has_image_analyses": any(message.image_analysis for message in history),
            "agent_usage": agent_usage,
        }
        if history:
            window = self._settings.recent_message_window
            metadata["recent_message_types"] = [message.role.value for message in history[-window:]]
        first, last = (history[0].timestamp, history[-1].timestamp) if len(history) >= 2 else (None, None)
        # Naive and aware timestamps cannot be subtracted.
        if first is not None and last is not None and (first.tzinfo is None) == (last.tzinfo is None):
            elapsed = last - first
            metadata["conversation_duration_minutes"] = int(elapsed.total_seconds() // 60)
        return metadata


def _newest_images(history: Sequence[Message], limit: int) -> list[Attachment]:
    images: list[Attachment] = []
    if limit <= 0:
        return images
    for message in reversed(history):
        for attachment in message.image_attachments:
            images.append(attachment)
            if len(images) >= limit:
                return images
    return images


__all__ = ["ContextBuilder"]
