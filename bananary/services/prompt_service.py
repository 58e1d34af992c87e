# FILE: bananary/services/prompt_service.py

from typing import Any, Dict, Optional

from bananary.services.transformation_catalog import CUSTOM_PROMPT

MASK_TEMPLATE = (
    'Apply the following instruction only to the masked area of the image: "{prompt}". '
    "Preserve the unmasked area."
)


class PromptError(ValueError):
    pass


def resolve_prompt(transformation: Dict[str, Any], user_prompt: Optional[str] = None) -> str:
    """Template prompt, or the user's own text for CUSTOM transformations."""
    template = transformation.get("prompt")
    if template == CUSTOM_PROMPT:
        text = (user_prompt or "").strip()
        if not text:
            raise PromptError("Prompt cannot be empty")
        return text
    if not template:
        raise PromptError(f"Transformation {transformation.get('key')} has no prompt")
    return template


def apply_mask(prompt: str, has_mask: bool) -> str:
    if not has_mask:
        return prompt
    return MASK_TEMPLATE.format(prompt=prompt)


def step_two_prompt(transformation: Dict[str, Any]) -> str:
    text = transformation.get("step_two_prompt")
    if not text:
        raise PromptError(f"Transformation {transformation.get('key')} has no second step")
    return text
