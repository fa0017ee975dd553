from __future__ import annotations

import asyncio
import base64
from dataclasses import dataclass
from typing import Any, ClassVar, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage

from ..core.config import TextBackendSettings
from ..core.logging import get_logger
from ..schemas.context import Attachment, Message, MessageRole
from .backends import BackendError, BackendTimeoutError, TextResult

try:  # pragma: no cover - optional heavy dependency
    from langchain_ollama import ChatOllama
except ModuleNotFoundError:  # pragma: no cover
    ChatOllama = None  # type: ignore[misc, assignment]

logger = get_logger(name=__name__)


def _build_base_url(host: str, port: int) -> str:
    if ":" in host.rsplit("/", maxsplit=1)[-1]:
        return host.rstrip("/")
    return f"{host.rstrip('/')}:{port}"


def _image_block(attachment: Attachment) -> dict[str, Any] | None:
    if attachment.data:
        encoded = base64.b64encode(attachment.data).decode("ascii")
        return {"type": "image_url", "image_url": {"url": f"data:{attachment.mime_type};base64,{encoded}"}}
    if attachment.url:
        return {"type": "image_url", "image_url": {"url": attachment.url}}
    return None


def _human_message(text: str, attachments: Sequence[Attachment] | None) -> HumanMessage:
    blocks = [block for block in (_image_block(item) for item in attachments or () if item.is_image) if block]
    if not blocks:
        return HumanMessage(content=text)
    return HumanMessage(content=[{"type": "text", "text": text}, *blocks])


def build_chat_messages(
    message: str,
    history: Sequence[Message],
    attachments: Sequence[Attachment] | None,
    *,
    system_prompt: str | None = None,
) -> list[BaseMessage]:
    """Translate the conversation into LangChain messages, oldest first."""
    messages: list[BaseMessage] = []
    if system_prompt:
        messages.append(SystemMessage(content=system_prompt))
    for entry in history:
        if entry.role == MessageRole.USER:
            messages.append(_human_message(entry.content, entry.attachments))
        elif entry.role == MessageRole.AI:
            messages.append(AIMessage(content=entry.content))
        # system notices are UI-only
    messages.append(_human_message(message, attachments))
    return messages


def _extract_content(result: Any) -> str:
    content = getattr(result, "content", result)
    if isinstance(content, list):
        parts: list[str] = []
        for item in content:
            if isinstance(item, dict):
                if item.get("type") == "text":
                    parts.append(str(item.get("text", "")))
            else:
                parts.append(str(item))
        return " ".join(part for part in parts if part)
    return str(content)


@dataclass
class ChatModelTextBackend:
    """Text/vision backend over any LangChain chat model exposing ``ainvoke``."""

    _client: Any
    system_prompt: str | None = None
    timeout_seconds: float = 60.0
    default_confidence: float = 0.8
    _client_cache: ClassVar[dict[str, Any]] = {}

    @classmethod
    def from_settings(
        cls,
        settings: TextBackendSettings,
        *,
        client: Any | None = None,
        system_prompt: str | None = None,
    ) -> "ChatModelTextBackend":
        if client is None:
            cache_key = f"{settings.host}:{settings.port}:{settings.model}:{settings.temperature}"
            cached = cls._client_cache.get(cache_key)
            if cached is None:
                if ChatOllama is None:  # pragma: no cover - handled in runtime logs
                    raise RuntimeError("langchain_ollama is not installed")
                base_url = _build_base_url(settings.host, settings.port)
                cached = ChatOllama(model=settings.model, base_url=base_url, temperature=settings.temperature)
                cls._client_cache[cache_key] = cached
            client = cached
        return cls(
            _client=client,
            system_prompt=system_prompt,
            timeout_seconds=settings.timeout_seconds,
            default_confidence=settings.default_confidence,
        )

    def with_system_prompt(self, system_prompt: str) -> "ChatModelTextBackend":
        return ChatModelTextBackend(
            _client=self._client,
            system_prompt=system_prompt,
            timeout_seconds=self.timeout_seconds,
            default_confidence=self.default_confidence,
        )

    async def complete(
        self,
        message: str,
        history: Sequence[Message],
        attachments: Sequence[Attachment] | None = None,
    ) -> TextResult:
        messages = build_chat_messages(message, history, attachments, system_prompt=self.system_prompt)
        try:
            result = await asyncio.wait_for(self._client.ainvoke(messages), timeout=self.timeout_seconds)
        except asyncio.TimeoutError as exc:
            logger.warning("text_backend_timeout", timeout=self.timeout_seconds)
            raise BackendTimeoutError(f"Text backend timed out after {self.timeout_seconds:.0f}s") from exc
        except Exception as exc:
            logger.warning("text_backend_failed", error=str(exc))
            raise BackendError(f"Text backend call failed: {exc}") from exc

        text = _extract_content(result).strip()
        if not text:
            raise BackendError("Text backend returned an empty response")
        metadata = getattr(result, "response_metadata", None) or {}
        confidence = metadata.get("confidence") if isinstance(metadata, dict) else None
        if not isinstance(confidence, (int, float)) or isinstance(confidence, bool):
            confidence = self.default_confidence
        return TextResult(text=text, confidence=float(confidence))


__all__ = ["ChatModelTextBackend", "build_chat_messages"]
