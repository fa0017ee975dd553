from __future__ import annotations

import pytest

from landcomp.orchestration.planning import (
    MAX_SELECTED_IMAGES,
    build_default_plan,
    select_images,
    simplify_prompt,
    validate_plan,
)
from landcomp.schemas.intents import (
    ExecutionPlan,
    ExpectedOutputs,
    ImageSelectionPlan,
    ImageSource,
)
from tests.helpers.stubs import make_context, make_image, make_message


def _history_with_images(count: int) -> list:
    return [make_message(f"m{i}", f"photo {i}", images=[make_image(f"h{i}")]) for i in range(count)]


def test_default_plan_uses_current_images_and_raw_message() -> None:
    context = make_context("Make it greener", attachments=[make_image("a")])

    plan = build_default_plan(context, "gemini")

    assert plan.target_api == "gemini"
    assert plan.enhanced_prompt == "Make it greener"
    assert plan.image_selection.all_from_user_message is True
    assert plan.image_selection.sources == [ImageSource.USER_CURRENT]
    assert plan.expected_outputs.image_count == 1


def test_validation_of_empty_plan_satisfies_invariants() -> None:
    context = make_context("")
    empty = ExecutionPlan(expected_outputs=ExpectedOutputs(image_count=0))

    validated = validate_plan(empty, context, "")

    assert validated.target_api
    assert validated.enhanced_prompt == "Create a landscape design"
    assert validated.expected_outputs.image_count >= 1
    assert validated.image_selection.sources == [ImageSource.USER_CURRENT]
    assert validated.image_selection.explanation


@pytest.mark.parametrize("image_count", [0, -3])
def test_validation_forces_at_least_one_image(image_count: int) -> None:
    plan = ExecutionPlan(expected_outputs=ExpectedOutputs(image_count=image_count))

    validated = validate_plan(plan, make_context("garden"), "gemini")

    assert validated.expected_outputs.image_count == 1


def test_validation_fills_target_and_prompt_without_touching_original() -> None:
    plan = ExecutionPlan(
        image_selection=ImageSelectionPlan(all_from_user_message=True),
        enhanced_prompt="  ",
    )
    context = make_context("A cottage garden")

    validated = validate_plan(plan, context, "gemini")

    assert validated.target_api == "gemini"
    assert validated.enhanced_prompt == "A cottage garden"
    # No images on the current turn, so the flag is dropped.
    assert validated.image_selection.all_from_user_message is False
    assert plan.enhanced_prompt == "  "
    assert plan.image_selection.all_from_user_message is True


def test_explicit_indices_pick_from_flattened_history_in_order() -> None:
    history = _history_with_images(3)
    context = make_context("Use these", history=history)
    selection = ImageSelectionPlan(indices=[0, 2], sources=[])

    selected = select_images(selection, context)

    assert [image.id for image in selected] == ["h0", "h2"]


def test_out_of_range_indices_are_skipped() -> None:
    context = make_context("Use these", history=_history_with_images(2))
    selection = ImageSelectionPlan(indices=[0, 2], sources=[])

    selected = select_images(selection, context)

    assert [image.id for image in selected] == ["h0"]


def test_sources_accumulate_current_then_recent_history() -> None:
    history = _history_with_images(6)
    context = make_context("Blend them", history=history, attachments=[make_image("current")])
    selection = ImageSelectionPlan(sources=[ImageSource.USER_CURRENT, ImageSource.HISTORY_RECENT])

    selected = select_images(selection, context)

    # Recent history is scanned newest-first over the last five messages, capped at three.
    assert [image.id for image in selected] == ["current", "h5", "h4", "h3"]


def test_selection_is_capped_and_deduplicated() -> None:
    shared = make_image("shared")
    attachments = [shared, shared] + [make_image(f"c{i}") for i in range(8)]
    context = make_context("All of them", attachments=attachments)

    selected = select_images(ImageSelectionPlan(all_from_user_message=True), context)

    ids = [image.id for image in selected]
    assert len(ids) <= MAX_SELECTED_IMAGES
    assert len(ids) == len(set(ids))
    assert ids[0] == "shared"


def test_duplicate_index_references_collapse() -> None:
    context = make_context("Again", history=_history_with_images(3))

    selected = select_images(ImageSelectionPlan(indices=[1, 1, 1]), context)

    assert [image.id for image in selected] == ["h1"]


def test_simplify_prompt_strips_symbols_and_truncates() -> None:
    assert simplify_prompt("Modern   garden!!! with #pond & lights...") == "Modern garden with pond lights"
    assert simplify_prompt("?!#$%") == "Create a landscape design"
    long_prompt = "word " * 50
    simplified = simplify_prompt(long_prompt)
    assert simplified.endswith("...")
    assert len(simplified) == 103


def test_simplify_prompt_keeps_cyrillic_words() -> None:
    assert simplify_prompt("Сад с прудом!") == "Сад с прудом"
