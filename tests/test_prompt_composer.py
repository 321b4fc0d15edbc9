"""Prompt Composer tests."""

import pytest

from artmorph.models.style_config import StyleConfig
from artmorph.services.exceptions import InvalidInputError
from artmorph.services.image_generation.prompt_composer import (
    compose_negative_prompt,
    compose_prompt,
    normalize_user_prompt,
    resolve_template,
)


def make_style(**fields) -> StyleConfig:
    return StyleConfig(key="test", name="Test", **fields)


def test_template_placeholders_are_filled():
    style = make_style(
        prompt_template={
            "template": "{{prefix}} portrait of {{ PROMPT }}, {{suffix}}",
            "prefix": "oil",
            "suffix": "dramatic light",
        }
    )

    assert compose_prompt(style, "a cat") == "oil portrait of a cat, dramatic light"


def test_template_without_user_text_leaves_placeholder_empty():
    style = make_style(prompt_template={"template": "anime   style {{prompt}}"})

    assert compose_prompt(style) == "anime style"


def test_user_text_with_backslashes_is_kept_literally():
    style = make_style(prompt_template={"template": "style: {{prompt}}"})

    assert compose_prompt(style, r"C:\path \1") == r"style: C:\path \1"


def test_prefix_suffix_and_user_text_are_joined():
    style = make_style(prompt_prefix="watercolor painting", prompt_suffix="soft palette")

    assert compose_prompt(style, "  a lighthouse ") == "watercolor painting, soft palette, a lighthouse"


def test_style_only_prompt_without_user_text():
    style = make_style(prompt_prefix="watercolor painting", prompt_suffix="soft palette")

    assert compose_prompt(style, "   ") == "watercolor painting, soft palette"


def test_user_text_only_has_no_leading_comma():
    assert compose_prompt(make_style(), "a lighthouse") == "a lighthouse"


def test_empty_style_and_no_text_gives_empty_prompt():
    assert compose_prompt(make_style()) == ""


def test_compose_prompt_is_deterministic():
    style = make_style(prompt_prefix="ink", prompt_template={"suffix": "monochrome"})

    assert compose_prompt(style, "a fox") == compose_prompt(style, "a fox")


def test_template_keys_override_flat_fields():
    style = make_style(
        prompt_prefix="flat prefix",
        negative_prompt="flat negative",
        prompt_template={"prefix": "template prefix"},
    )

    template = resolve_template(style)

    assert template.prefix == "template prefix"
    assert template.negative == "flat negative"


def test_empty_template_keys_suppress_flat_fields():
    style = make_style(
        prompt_prefix="flat prefix",
        prompt_suffix="flat suffix",
        negative_prompt="flat negative",
        prompt_template={"prefix": "", "suffix": "", "negative": ""},
    )

    assert compose_prompt(style, "a fox") == "a fox"
    assert compose_negative_prompt(style) == ""


def test_negative_prompt_joins_style_and_user_parts():
    style = make_style(negative_prompt="blurry, low quality")

    assert compose_negative_prompt(style, "text") == "blurry, low quality, text"
    assert compose_negative_prompt(style) == "blurry, low quality"
    assert compose_negative_prompt(make_style()) == ""


def test_normalize_user_prompt_blank_is_none():
    assert normalize_user_prompt(None) is None
    assert normalize_user_prompt("   ") is None
    assert normalize_user_prompt("  hi  ") == "hi"


def test_normalize_user_prompt_rejects_too_long():
    with pytest.raises(InvalidInputError, match="maximum length of 10"):
        normalize_user_prompt("x" * 11, max_length=10)

    assert normalize_user_prompt("x" * 10, max_length=10) == "x" * 10
