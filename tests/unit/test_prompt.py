"""Unit tests for prompt validation and @handle reference resolution."""

import pytest

from nanobanana.core.prompt import (
    ParsedPrompt,
    Reference,
    extract_handles,
    parse_prompt_for_elements,
    reference_text,
    validate_prompt,
)
from nanobanana.utils.exceptions import ValidationError


def _pairs(parsed: ParsedPrompt) -> list[tuple[str, int]]:
    return [(ref.handle, ref.ref_index) for ref in parsed.references]


@pytest.mark.unit
class TestParsePromptForElements:
    def test_no_handles_unchanged(self):
        parsed = parse_prompt_for_elements("a cat")
        assert parsed.cleaned_prompt == "a cat"
        assert parsed.references == []

    def test_empty_prompt(self):
        parsed = parse_prompt_for_elements("")
        assert parsed.cleaned_prompt == ""
        assert parsed.references == []

    def test_two_handles_numbered_in_order(self):
        parsed = parse_prompt_for_elements("@Riley holding @Max")
        assert parsed.cleaned_prompt == "Reference Image 1 holding Reference Image 2"
        assert _pairs(parsed) == [("@Riley", 1), ("@Max", 2)]

    def test_repeated_handle_single_reference(self):
        parsed = parse_prompt_for_elements("@Riley and @Riley again")
        assert parsed.cleaned_prompt == "Reference Image 1 and Reference Image 1 again"
        assert _pairs(parsed) == [("@Riley", 1)]

    def test_first_occurrence_decides_index(self):
        parsed = parse_prompt_for_elements("@Max then @Riley then @Max")
        assert _pairs(parsed) == [("@Max", 1), ("@Riley", 2)]
        assert parsed.cleaned_prompt == (
            "Reference Image 1 then Reference Image 2 then Reference Image 1"
        )

    def test_bare_at_sign_is_not_a_handle(self):
        parsed = parse_prompt_for_elements("email me @ noon")
        assert parsed.references == []
        assert parsed.cleaned_prompt == "email me @ noon"

    def test_trailing_at_sign_untouched(self):
        parsed = parse_prompt_for_elements("ends with @")
        assert parsed.references == []
        assert parsed.cleaned_prompt == "ends with @"

    def test_handles_are_case_sensitive(self):
        parsed = parse_prompt_for_elements("@max and @Max")
        assert _pairs(parsed) == [("@max", 1), ("@Max", 2)]
        assert parsed.cleaned_prompt == "Reference Image 1 and Reference Image 2"

    def test_digits_and_underscores_are_part_of_handle(self):
        parsed = parse_prompt_for_elements("@car_2 parked")
        assert _pairs(parsed) == [("@car_2", 1)]
        assert parsed.cleaned_prompt == "Reference Image 1 parked"

    def test_hyphen_ends_handle(self):
        parsed = parse_prompt_for_elements("a @red-car on a road")
        assert _pairs(parsed) == [("@red", 1)]
        assert parsed.cleaned_prompt == "a Reference Image 1-car on a road"

    def test_handle_inside_email_address_matches(self):
        parsed = parse_prompt_for_elements("mail bob@example.com")
        assert _pairs(parsed) == [("@example", 1)]
        assert parsed.cleaned_prompt == "mail bobReference Image 1.com"

    def test_non_ascii_letters_end_handle(self):
        parsed = parse_prompt_for_elements("@Zoë waves")
        assert _pairs(parsed) == [("@Zo", 1)]

    def test_prefix_handle_rewrites_inside_longer_handle(self):
        parsed = parse_prompt_for_elements("@Max and @Maxine")
        assert _pairs(parsed) == [("@Max", 1), ("@Maxine", 2)]
        assert parsed.cleaned_prompt == "Reference Image 1 and Reference Image 1ine"

    def test_handle_adjacent_to_punctuation(self):
        parsed = parse_prompt_for_elements("(@Riley), @Max!")
        assert _pairs(parsed) == [("@Riley", 1), ("@Max", 2)]
        assert parsed.cleaned_prompt == "(Reference Image 1), Reference Image 2!"

    def test_references_sorted_and_contiguous(self):
        parsed = parse_prompt_for_elements("@c @a @b @a @c @d")
        indices = [ref.ref_index for ref in parsed.references]
        assert indices == list(range(1, len(parsed.references) + 1))
        assert parsed.handles == ["@c", "@a", "@b", "@d"]

    @pytest.mark.parametrize(
        "prompt",
        ["", "plain text", "multi\nline\tprompt", "50% off & more", "email me @ noon"],
    )
    def test_prompts_without_handles_round_trip(self, prompt):
        parsed = parse_prompt_for_elements(prompt)
        assert parsed.cleaned_prompt == prompt
        assert parsed.references == []

    def test_no_handle_left_in_cleaned_prompt(self):
        parsed = parse_prompt_for_elements("@a1 @b2 @a1 and @c3")
        for handle in parsed.handles:
            assert handle not in parsed.cleaned_prompt

    def test_as_dict(self):
        parsed = parse_prompt_for_elements("@Riley waves")
        assert parsed.as_dict() == {
            "cleaned_prompt": "Reference Image 1 waves",
            "references": [{"handle": "@Riley", "ref_index": 1}],
        }

    def test_reference_is_hashable_value(self):
        assert Reference("@a", 1) == Reference("@a", 1)
        assert len({Reference("@a", 1), Reference("@a", 1)}) == 1

    def test_reference_text(self):
        assert reference_text(3) == "Reference Image 3"


@pytest.mark.unit
class TestExtractHandles:
    def test_first_appearance_order_without_duplicates(self):
        assert extract_handles("@b @a @b @c") == ["@b", "@a", "@c"]

    def test_none(self):
        assert extract_handles("nothing here @ all") == []

    def test_matches_parse(self):
        prompt = "@x with @y-z and @x"
        assert extract_handles(prompt) == parse_prompt_for_elements(prompt).handles


@pytest.mark.unit
class TestValidatePrompt:
    def test_valid(self):
        validate_prompt("a red barn")

    @pytest.mark.parametrize("prompt", ["", "   ", "\n\t"])
    def test_blank_raises(self, prompt):
        with pytest.raises(ValidationError) as exc_info:
            validate_prompt(prompt)
        assert exc_info.value.field == "prompt"
