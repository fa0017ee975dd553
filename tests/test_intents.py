from __future__ import annotations

from landcomp.schemas.intents import (
    ExecutionAction,
    ImageIntent,
    ImageSource,
    Intent,
    IntentSubtype,
    IntentType,
)


def test_intent_from_camel_case_payload() -> None:
    intent = Intent.from_payload(
        {
            "type": "generation",
            "subtype": "imageGeneration",
            "confidence": 0.92,
            "reasoning": "User asked for a render",
            "imageIntent": "generateBased",
            "executionPlan": {
                "action": "generateImage",
                "targetAPI": "gemini",
                "imageSelection": {"sources": ["userCurrent", "historyRecent"], "allFromUserMessage": True},
                "enhancedPrompt": "Modern garden with a pond",
                "expectedOutputs": {"imageCount": 2, "includeText": False},
            },
        }
    )

    assert intent.type == IntentType.GENERATION
    assert intent.subtype == IntentSubtype.IMAGE_GENERATION
    assert intent.image_intent == ImageIntent.GENERATE_BASED
    assert intent.is_high_confidence
    plan = intent.execution_plan
    assert plan is not None
    assert plan.action == ExecutionAction.GENERATE_IMAGE
    assert plan.image_selection.sources == [ImageSource.USER_CURRENT, ImageSource.HISTORY_RECENT]
    assert plan.image_selection.all_from_user_message is True
    assert plan.expected_outputs.image_count == 2
    assert plan.expected_outputs.include_text is False


def test_missing_payload_degrades_to_unclear() -> None:
    intent = Intent.from_payload(None)

    assert intent.type == IntentType.UNCLEAR
    assert intent.is_low_confidence


def test_garbled_fields_are_defaulted() -> None:
    intent = Intent.from_payload(
        {
            "type": "teleportation",
            "subtype": "nonsense",
            "confidence": "not-a-number",
            "imageIntent": 42,
            "referencedImageIndices": [0, "2", "x", 3.0],
            "executionPlan": {"imageSelection": "broken", "expectedOutputs": {"imageCount": "many"}},
            "metadata": ["not", "a", "dict"],
        }
    )

    assert intent.type == IntentType.UNCLEAR
    assert intent.subtype == IntentSubtype.GENERAL_QUESTION
    assert intent.confidence == 0.0
    assert intent.image_intent == ImageIntent.UNCLEAR
    assert intent.referenced_image_indices == [0, 2, 3]
    assert intent.metadata == {}
    assert intent.execution_plan is not None
    assert intent.execution_plan.image_selection.sources == []
    assert intent.execution_plan.expected_outputs.image_count == 1


def test_malformed_numbers_default_instead_of_raising() -> None:
    intent = Intent.from_payload(
        {
            "type": "analysis",
            "confidence": 10**400,
            "imagesNeeded": "--5",
            "referencedImageIndices": ["\u00b2", "--1", " -2 ", 1],
        }
    )

    assert intent.type == IntentType.ANALYSIS
    assert intent.confidence == 0.0
    assert intent.images_needed is None
    assert intent.referenced_image_indices == [-2, 1]
    assert Intent.from_payload({"type": "analysis", "imagesNeeded": "\u00b2"}).images_needed is None


def test_bad_image_count_keeps_plan_and_prompt() -> None:
    intent = Intent.from_payload(
        {
            "type": "generation",
            "executionPlan": {
                "enhancedPrompt": "Japanese garden with koi pond",
                "imageSelection": {"sources": ["userCurrent"], "indices": ["--1", 0]},
                "expectedOutputs": {"imageCount": "--5", "includeText": False},
            },
        }
    )

    plan = intent.execution_plan
    assert plan is not None
    assert plan.enhanced_prompt == "Japanese garden with koi pond"
    assert plan.image_selection.sources == [ImageSource.USER_CURRENT]
    assert plan.image_selection.indices == [0]
    assert plan.expected_outputs.image_count == 1
    assert plan.expected_outputs.include_text is False


def test_confidence_is_clamped() -> None:
    assert Intent.from_payload({"type": "consultation", "confidence": 3}).confidence == 1.0
    assert Intent.from_payload({"type": "consultation", "confidence": -1}).confidence == 0.0


def test_payload_round_trip_keeps_wire_keys() -> None:
    intent = Intent.from_payload({"type": "analysis", "subtype": "siteAnalysis", "confidence": 0.6})

    payload = intent.to_payload()

    assert payload["type"] == "analysis"
    assert payload["subtype"] == "siteAnalysis"
    assert payload["executionPlan"] is None
    assert Intent.from_payload(payload) == intent
