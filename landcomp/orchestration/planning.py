"""Execution-plan defaults, validation and image selection for generation work.

Everything here is synchronous and side-effect free apart from debug logging:
the same plan and context always produce the same result.
"""
from __future__ import annotations

import re

from ..core.logging import get_logger
from ..schemas.context import Attachment, RequestContext
from ..schemas.intents import (
    ExecutionAction,
    ExecutionPlan,
    ExpectedOutputs,
    ImageSelectionPlan,
    ImageSource,
)

logger = get_logger(name=__name__)

MAX_SELECTED_IMAGES = 5
RECENT_MESSAGE_WINDOW = 5
RECENT_IMAGE_LIMIT = 3
SIMPLIFIED_PROMPT_MAX_CHARS = 100
DEFAULT_PROMPT = "Create a landscape design"
DEFAULT_SELECTION_EXPLANATION = "Smart defaults applied"

_NON_WORD = re.compile(r"[^\w\s]")
_WHITESPACE = re.compile(r"\s+")


def build_default_plan(context: RequestContext, target_api: str) -> ExecutionPlan:
    return ExecutionPlan(
        action=ExecutionAction.GENERATE_IMAGE,
        target_api=target_api,
        image_selection=ImageSelectionPlan(
            sources=[ImageSource.USER_CURRENT],
            all_from_user_message=True,
            explanation="Default plan: use all images from current message",
        ),
        enhanced_prompt=context.user_message,
        expected_outputs=ExpectedOutputs(image_count=1, include_text=True),
    )


def validate_plan(
    plan: ExecutionPlan,
    context: RequestContext,
    target_api: str,
    *,
    default_prompt: str = DEFAULT_PROMPT,
) -> ExecutionPlan:
    """Return a copy of ``plan`` with smart defaults applied.

    The result always has a non-empty ``target_api`` and ``enhanced_prompt``
    and requests at least one image.
    """
    selection = plan.image_selection
    validated_selection = selection.model_copy(
        update={
            "sources": list(selection.sources) or [ImageSource.USER_CURRENT],
            # Only honoured when the current turn carries images.
            "all_from_user_message": selection.all_from_user_message and context.has_images,
            "explanation": selection.explanation or DEFAULT_SELECTION_EXPLANATION,
        }
    )
    outputs = plan.expected_outputs
    if outputs.image_count <= 0:
        outputs = outputs.model_copy(update={"image_count": 1})

    prompt = plan.enhanced_prompt.strip() or context.user_message.strip() or default_prompt
    return plan.model_copy(
        update={
            "target_api": plan.target_api.strip() or target_api or "default",
            "enhanced_prompt": prompt,
            "image_selection": validated_selection,
            "expected_outputs": outputs,
        }
    )


def recent_history_images(
    context: RequestContext,
    *,
    window: int = RECENT_MESSAGE_WINDOW,
    limit: int = RECENT_IMAGE_LIMIT,
) -> list[Attachment]:
    """Newest-first images from the trailing ``window`` messages, at most ``limit``."""
    images: list[Attachment] = []
    recent = context.conversation_history[-window:] if window > 0 else []
    for message in reversed(recent):
        for attachment in message.image_attachments:
            images.append(attachment)
            if len(images) >= limit:
                return images
    return images


def images_by_index(context: RequestContext, indices: list[int]) -> list[Attachment]:
    flattened = context.history_images()
    selected: list[Attachment] = []
    for index in indices:
        if 0 <= index < len(flattened):
            selected.append(flattened[index])
        else:
            # Intentional leniency: out-of-range indices are skipped, not reported as errors.
            logger.debug("image_index_out_of_range", index=index, available=len(flattened))
    return selected


def select_images(
    selection: ImageSelectionPlan,
    context: RequestContext,
    *,
    max_images: int = MAX_SELECTED_IMAGES,
    recent_window: int = RECENT_MESSAGE_WINDOW,
    recent_limit: int = RECENT_IMAGE_LIMIT,
) -> list[Attachment]:
    candidates: list[Attachment] = []
    if selection.all_from_user_message:
        candidates.extend(context.image_attachments)
    elif selection.indices:
        candidates.extend(images_by_index(context, selection.indices))
    else:
        for source in selection.sources:
            if source == ImageSource.USER_CURRENT:
                candidates.extend(context.image_attachments)
            elif source == ImageSource.HISTORY_RECENT:
                candidates.extend(recent_history_images(context, window=recent_window, limit=recent_limit))
            # HISTORY_SPECIFIC needs indices, handled above.

    selected: list[Attachment] = []
    seen: set[str] = set()
    for attachment in candidates:
        if attachment.id in seen:
            continue
        seen.add(attachment.id)
        selected.append(attachment)
        if len(selected) >= max_images:
            break
    logger.debug("images_selected", candidates=len(candidates), selected=len(selected))
    return selected


def simplify_prompt(
    prompt: str,
    *,
    max_chars: int = SIMPLIFIED_PROMPT_MAX_CHARS,
    default: str = DEFAULT_PROMPT,
) -> str:
    simplified = _WHITESPACE.sub(" ", _NON_WORD.sub(" ", prompt or "")).strip()
    if len(simplified) > max_chars:
        return f"{simplified[:max_chars]}..."
    return simplified or default


__all__ = [
    "DEFAULT_PROMPT",
    "MAX_SELECTED_IMAGES",
    "build_default_plan",
    "images_by_index",
    "recent_history_images",
    "select_images",
    "simplify_prompt",
    "validate_plan",
]
