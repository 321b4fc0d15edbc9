"""Prompt composition for image generation.

Turns a style preset plus optional user text into the final positive and
negative prompts sent to the generation backend. Pure functions only.
"""

import re
from dataclasses import dataclass
from typing import Optional

from artmorph.models.style_config import StyleConfig
from artmorph.services.exceptions import InvalidInputError

_WHITESPACE = re.compile(r"\s+")
_PLACEHOLDERS = {
    name: re.compile(r"{{\s*" + name + r"\s*}}", re.IGNORECASE)
    for name in ("prompt", "prefix", "suffix")
}


@dataclass(frozen=True)
class PromptTemplate:
    template: Optional[str] = None
    prefix: Optional[str] = None
    suffix: Optional[str] = None
    negative: Optional[str] = None


def _normalize(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip()


def _merge_parts(parts: list[Optional[str]]) -> str:
    return _normalize(", ".join(part for part in parts if part))


def resolve_template(style: StyleConfig) -> PromptTemplate:
    """Merge the structured template with the style's flat prompt fields.

    Keys present in ``prompt_template`` win over the flat columns, even when
    set to an empty string or null.
    """
    template = style.prompt_template or {}

    def pick(key: str, fallback: Optional[str]) -> Optional[str]:
        return template.get(key) if key in template else fallback

    return PromptTemplate(
        template=template.get("template") or None,
        prefix=pick("prefix", style.prompt_prefix),
        suffix=pick("suffix", style.prompt_suffix),
        negative=pick("negative", style.negative_prompt),
    )


def compose_prompt(style: StyleConfig, user_prompt: Optional[str] = None) -> str:
    """Build the positive prompt for a style and optional user text.

    Args:
        style: Style preset
        user_prompt: Free text entered by the user (may be None or blank)

    Returns:
        Final prompt; empty string if the style defines nothing and no text given
    """
    template = resolve_template(style)
    base_prompt = (user_prompt or "").strip()

    if template.template:
        rendered = template.template
        # Function replacements keep backslashes in user text literal
        rendered = _PLACEHOLDERS["prompt"].sub(lambda _: base_prompt, rendered)
        rendered = _PLACEHOLDERS["prefix"].sub(lambda _: template.prefix or "", rendered)
        rendered = _PLACEHOLDERS["suffix"].sub(lambda _: template.suffix or "", rendered)
        return _normalize(rendered)

    style_parts = _merge_parts([template.prefix, template.suffix])
    if base_prompt:
        return _normalize(f"{style_parts}, {base_prompt}") if style_parts else _normalize(base_prompt)
    return style_parts


def compose_negative_prompt(style: StyleConfig, user_negative: Optional[str] = None) -> str:
    """Join the style's negative prompt with the user's, dropping empty parts."""
    template = resolve_template(style)
    return _merge_parts([template.negative, user_negative])


def normalize_user_prompt(prompt: Optional[str], max_length: int = 1000) -> Optional[str]:
    """Validate the user's prompt text before a job is created.

    Args:
        prompt: Raw prompt from the request (may be None)
        max_length: Maximum accepted length after trimming

    Returns:
        Trimmed prompt, or None if nothing meaningful was given

    Raises:
        InvalidInputError: If the prompt is not a string or is too long
    """
    if prompt is None:
        return None

    if not isinstance(prompt, str):
        raise InvalidInputError(f"Prompt must be a string, got {type(prompt).__name__}")

    trimmed = prompt.strip()
    if not trimmed:
        return None

    if len(trimmed) > max_length:
        raise InvalidInputError(
            f"Prompt exceeds maximum length of {max_length} characters (got {len(trimmed)})"
        )

    return trimmed
