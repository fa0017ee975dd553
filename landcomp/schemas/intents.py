from __future__ import annotations

import math
import re
from enum import Enum
from typing import Any, Mapping, TypeVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

_E = TypeVar("_E", bound=Enum)
_INTEGER = re.compile(r"-?[0-9]+")


class IntentType(str, Enum):
    CONSULTATION = "consultation"
    GENERATION = "generation"
    MODIFICATION = "modification"
    ANALYSIS = "analysis"
    UNCLEAR = "unclear"


class IntentSubtype(str, Enum):
    LANDSCAPE_PLANNING = "landscapePlanning"
    PLANT_SELECTION = "plantSelection"
    CONSTRUCTION_ADVICE = "constructionAdvice"
    MAINTENANCE_ADVICE = "maintenanceAdvice"
    GENERAL_QUESTION = "generalQuestion"
    IMAGE_GENERATION = "imageGeneration"
    TEXT_GENERATION = "textGeneration"
    PLAN_GENERATION = "planGeneration"
    IMAGE_ANALYSIS = "imageAnalysis"
    SITE_ANALYSIS = "siteAnalysis"
    PROBLEM_DIAGNOSIS = "problemDiagnosis"
    DESIGN_MODIFICATION = "designModification"
    PLAN_ADJUSTMENT = "planAdjustment"
    CONTENT_UPDATE = "contentUpdate"
    AMBIGUOUS = "ambiguous"
    INCOMPLETE = "incomplete"


class ImageIntent(str, Enum):
    """What the user wants done with attached or historical images."""

    ANALYZE_NEW = "analyzeNew"
    ANALYZE_RECENT = "analyzeRecent"
    COMPARE_MULTIPLE = "compareMultiple"
    REFERENCE_SPECIFIC = "referenceSpecific"
    GENERATE_BASED = "generateBased"
    NO_IMAGE_NEEDED = "noImageNeeded"
    UNCLEAR = "unclear"


class ExecutionAction(str, Enum):
    GENERATE_IMAGE = "generateImage"
    ANALYZE_IMAGE = "analyzeImage"
    CONSULT_TEXT = "consultText"


class ImageSource(str, Enum):
    USER_CURRENT = "userCurrent"
    HISTORY_RECENT = "historyRecent"
    HISTORY_SPECIFIC = "historySpecific"


class ImageSelectionPlan(BaseModel):
    """Declarative rule for choosing input media; the same plan and context always yield the same images."""

    model_config = ConfigDict(frozen=True)

    sources: list[ImageSource] = Field(default_factory=list)
    all_from_user_message: bool = False
    indices: list[int] | None = None
    explanation: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "sources": [source.value for source in self.sources],
            "allFromUserMessage": self.all_from_user_message,
            "indices": list(self.indices) if self.indices is not None else None,
            "explanation": self.explanation,
        }


class ExpectedOutputs(BaseModel):
    model_config = ConfigDict(frozen=True)

    image_count: int = 1
    include_text: bool = True

    def to_payload(self) -> dict[str, Any]:
        return {"imageCount": self.image_count, "includeText": self.include_text}


class ExecutionPlan(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: ExecutionAction = ExecutionAction.GENERATE_IMAGE
    target_api: str = ""
    image_selection: ImageSelectionPlan = Field(default_factory=ImageSelectionPlan)
    enhanced_prompt: str = ""
    expected_outputs: ExpectedOutputs = Field(default_factory=ExpectedOutputs)

    def to_payload(self) -> dict[str, Any]:
        return {
            "action": self.action.value,
            "targetAPI": self.target_api,
            "imageSelection": self.image_selection.to_payload(),
            "enhancedPrompt": self.enhanced_prompt,
            "expectedOutputs": self.expected_outputs.to_payload(),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "ExecutionPlan":
        """Build a plan from classifier JSON, defaulting anything missing or malformed."""
        selection_raw = _first(payload, "imageSelection", "image_selection")
        selection_raw = selection_raw if isinstance(selection_raw, Mapping) else {}
        outputs_raw = _first(payload, "expectedOutputs", "expected_outputs")
        outputs_raw = outputs_raw if isinstance(outputs_raw, Mapping) else {}

        sources: list[ImageSource] = []
        raw_sources = selection_raw.get("sources")
        if isinstance(raw_sources, (list, tuple)):
            for raw in raw_sources:
                source = _coerce_enum(ImageSource, raw, None)
                if source is not None and source not in sources:
                    sources.append(source)

        selection = ImageSelectionPlan(
            sources=sources,
            all_from_user_message=bool(_first(selection_raw, "allFromUserMessage", "all_from_user_message")),
            indices=_coerce_indices(selection_raw.get("indices")),
            explanation=_coerce_text(selection_raw.get("explanation")),
        )
        image_count = _coerce_int(_first(outputs_raw, "imageCount", "image_count"))
        include_text = _first(outputs_raw, "includeText", "include_text")
        outputs = ExpectedOutputs(
            image_count=image_count if image_count is not None else 1,
            include_text=include_text if isinstance(include_text, bool) else True,
        )
        return cls(
            action=_coerce_enum(ExecutionAction, payload.get("action"), ExecutionAction.GENERATE_IMAGE),
            target_api=_coerce_text(_first(payload, "targetAPI", "targetApi", "target_api")) or "",
            image_selection=selection,
            enhanced_prompt=_coerce_text(_first(payload, "enhancedPrompt", "enhanced_prompt")) or "",
            expected_outputs=outputs,
        )


class Intent(BaseModel):
    """Classification result for one user turn, produced upstream and never mutated."""

    model_config = ConfigDict(frozen=True)

    type: IntentType
    confidence: float = 0.0
    reasoning: str = ""
    subtype: IntentSubtype | None = None
    image_intent: ImageIntent | None = None
    referenced_image_indices: list[int] | None = None
    images_needed: int | None = None
    execution_plan: ExecutionPlan | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    extracted_entities: list[str] = Field(default_factory=list)

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        return max(0.0, min(1.0, value))

    @property
    def is_consultation(self) -> bool:
        return self.type == IntentType.CONSULTATION

    @property
    def is_generation(self) -> bool:
        return self.type == IntentType.GENERATION

    @property
    def is_analysis(self) -> bool:
        return self.type == IntentType.ANALYSIS

    @property
    def is_modification(self) -> bool:
        return self.type == IntentType.MODIFICATION

    @property
    def is_unclear(self) -> bool:
        return self.type == IntentType.UNCLEAR

    @property
    def is_high_confidence(self) -> bool:
        return self.confidence >= 0.8

    @property
    def is_medium_confidence(self) -> bool:
        return self.confidence >= 0.5

    @property
    def is_low_confidence(self) -> bool:
        return self.confidence < 0.5

    @classmethod
    def unclear(cls, reasoning: str, **metadata: Any) -> "Intent":
        return cls(type=IntentType.UNCLEAR, confidence=0.1, reasoning=reasoning, metadata=dict(metadata))

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any] | None) -> "Intent":
        """Parse classifier JSON. Structural defects are repaired, never raised."""
        if not isinstance(payload, Mapping):
            return cls.unclear("Classifier payload missing or not an object")

        subtype_raw = payload.get("subtype")
        subtype = (
            _coerce_enum(IntentSubtype, subtype_raw, IntentSubtype.GENERAL_QUESTION)
            if subtype_raw is not None
            else None
        )
        image_intent_raw = _first(payload, "imageIntent", "image_intent")
        image_intent = (
            _coerce_enum(ImageIntent, image_intent_raw, ImageIntent.UNCLEAR)
            if image_intent_raw is not None
            else None
        )

        plan_raw = _first(payload, "executionPlan", "execution_plan")
        plan = ExecutionPlan.from_payload(plan_raw) if isinstance(plan_raw, Mapping) else None

        entities_raw = _first(payload, "extractedEntities", "extracted_entities")
        entities = [str(item) for item in entities_raw] if isinstance(entities_raw, (list, tuple)) else []
        metadata_raw = payload.get("metadata")
        confidence = _coerce_float(payload.get("confidence"))

        return cls(
            type=_coerce_enum(IntentType, payload.get("type"), IntentType.UNCLEAR),
            subtype=subtype,
            confidence=confidence if confidence is not None else 0.0,
            reasoning=_coerce_text(payload.get("reasoning")) or "No reasoning provided",
            image_intent=image_intent,
            referenced_image_indices=_coerce_indices(
                _first(payload, "referencedImageIndices", "referenced_image_indices")
            ),
            images_needed=_coerce_int(_first(payload, "imagesNeeded", "images_needed")),
            execution_plan=plan,
            metadata=dict(metadata_raw) if isinstance(metadata_raw, Mapping) else {},
            extracted_entities=entities,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "type": self.type.value,
            "subtype": self.subtype.value if self.subtype else None,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "imageIntent": self.image_intent.value if self.image_intent else None,
            "referencedImageIndices": self.referenced_image_indices,
            "imagesNeeded": self.images_needed,
            "executionPlan": self.execution_plan.to_payload() if self.execution_plan else None,
            "metadata": dict(self.metadata),
            "extractedEntities": list(self.extracted_entities),
        }


def _first(payload: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def _coerce_enum(enum_cls: type[_E], value: Any, default: Any) -> Any:
    if isinstance(value, enum_cls):
        return value
    if isinstance(value, str):
        try:
            return enum_cls(value.strip())
        except ValueError:
            pass
    return default


def _coerce_text(value: Any) -> str | None:
    if isinstance(value, str):
        return value.strip()
    return None


def _coerce_float(value: Any) -> float | None:
    if isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value)
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None


def _coerce_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and _INTEGER.fullmatch(value.strip()):
        try:
            return int(value)
        except ValueError:
            # digit limit for str conversion
            return None
    return None


def _coerce_indices(value: Any) -> list[int] | None:
    if not isinstance(value, (list, tuple)):
        return None
    indices = [index for index in (_coerce_int(item) for item in value) if index is not None]
    return indices


__all__ = [
    "ExecutionAction",
    "ExecutionPlan",
    "ExpectedOutputs",
    "ImageIntent",
    "ImageSelectionPlan",
    "ImageSource",
    "Intent",
    "IntentSubtype",
    "IntentType",
]
