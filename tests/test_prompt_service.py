import pytest

from bananary.services.prompt_service import PromptError, apply_mask, resolve_prompt, step_two_prompt
from bananary.services.transformation_catalog import get_transformation, iter_transformations


def test_template_prompt_ignores_user_text():
    lego = get_transformation("lego")
    assert resolve_prompt(lego, "something else") == lego["prompt"]


def test_custom_prompt_uses_user_text():
    custom = get_transformation("customPrompt")
    assert resolve_prompt(custom, "  make it blue ") == "make it blue"
    with pytest.raises(PromptError):
        resolve_prompt(custom, "   ")
    with pytest.raises(PromptError):
        resolve_prompt(custom, None)


def test_mask_wrap():
    assert apply_mask("x", False) == "x"
    assert apply_mask("x", True) == (
        'Apply the following instruction only to the masked area of the image: "x". Preserve the unmasked area.'
    )


def test_lookup_finds_nested_items_but_not_categories():
    assert get_transformation("watercolor")["prompt"].startswith("Transform the image into a soft")
    assert get_transformation("category_effects") is None
    assert get_transformation("missing") is None


def test_keys_are_unique():
    keys = [t["key"] for t in iter_transformations()]
    assert len(keys) == len(set(keys))


def test_step_two():
    assert step_two_prompt(get_transformation("colorPalette")).startswith("Color the line art")
    with pytest.raises(PromptError):
        step_two_prompt(get_transformation("lego"))
