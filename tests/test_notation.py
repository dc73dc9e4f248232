"""
Tests for the slip notation parser
Run with: pytest tests/test_notation.py -v
"""

import pytest
from types import SimpleNamespace

from numbers_book.core.notation import (
    ParsedToken,
    clean_ocr_text,
    group_tokens,
    parse_notation,
    tokens_from_recognized,
    voice_to_notation,
)

ALL_123 = {"123", "132", "213", "231", "312", "321"}


class TestStraightBets:
    """Separator-only tokens stake the exact number"""

    def test_single_token(self):
        assert parse_notation("123-500") == [
            ParsedToken(original="123-500", number="123", amount=500)
        ]

    @pytest.mark.parametrize("text", [
        "123-500", "123=500", "123@500", "123*500", "123.500",
        "123,500", "123/500", "123 500", "123 - 500", "123\t500",
    ])
    def test_every_separator(self, text):
        tokens = parse_notation(text)
        assert len(tokens) == 1
        assert tokens[0].number == "123"
        assert tokens[0].amount == 500
        assert not tokens[0].is_permutation
        assert not tokens[0].is_compound

    def test_leading_zeros_kept(self):
        (token,) = parse_notation("007/150")
        assert token.number == "007"
        assert token.amount == 150


class TestPermutationBets:
    """A marker spreads the amount over every unique arrangement"""

    def test_six_way(self):
        tokens = parse_notation("123R500")
        assert len(tokens) == 6
        assert {t.number for t in tokens} == ALL_123
        assert all(t.amount == 500 for t in tokens)
        assert all(t.is_permutation for t in tokens)
        assert all(t.original == "123R500" for t in tokens)

    @pytest.mark.parametrize("text", ["123r500", "123R-500", "123R/500", "123 R 500", "123R 500"])
    def test_marker_variants(self, text):
        tokens = parse_notation(text)
        assert {t.number for t in tokens} == ALL_123

    def test_repeated_digits_not_double_counted(self):
        assert sorted(t.number for t in parse_notation("112R100")) == ["112", "121", "211"]
        assert [t.number for t in parse_notation("111R100")] == ["111"]


class TestMultipleTokens:

    def test_mixed_lines(self):
        assert len(parse_notation("123-500\n456R200")) == 7

    def test_comma_separated_list(self):
        tokens = parse_notation("123R500,456R200")
        assert len(tokens) == 12
        assert not any(t.is_compound for t in tokens)

    def test_list_with_spaces(self):
        tokens = parse_notation("123R500, 456-200")
        assert len(tokens) == 7
        assert tokens[-1] == ParsedToken(original="456-200", number="456", amount=200)

    def test_noise_between_tokens(self):
        tokens = parse_notation("slip #4: 123-500 and then 789/20 thanks")
        assert [(t.number, t.amount) for t in tokens] == [("123", 500), ("789", 20)]


class TestNothingParsed:

    @pytest.mark.parametrize("text", ["not a bet", "", None, "12-500", "123-", "R500"])
    def test_empty(self, text):
        assert parse_notation(text) == []

    def test_number_inside_longer_digit_run(self):
        assert parse_notation("1234-500") == []

    @pytest.mark.parametrize("text", ["၁၂၃-၅၀၀", "١٢٣R500"])
    def test_non_ascii_digits_ignored(self, text):
        assert parse_notation(text) == []

    def test_token_does_not_cross_line_break(self):
        assert parse_notation("123\n500") == []

    def test_zero_amount_dropped(self):
        assert parse_notation("123-0 456-10") == [
            ParsedToken(original="456-10", number="456", amount=10)
        ]


class TestCompoundBets:
    """The amount right after R covers the other arrangements; the other one the exact order"""

    def test_separator_first(self):
        tokens = parse_notation("123.5000R1000")
        assert all(t.is_compound for t in tokens)
        assert tokens[0].number == "123"
        assert tokens[0].amount == 5000
        others = {t.number: t.amount for t in tokens[1:]}
        assert others == {n: 1000 for n in ALL_123 - {"123"}}

    def test_marker_first(self):
        tokens = parse_notation("123R1000-2000")
        assert all(t.is_compound for t in tokens)
        assert tokens[0].number == "123"
        assert tokens[0].amount == 2000
        others = {t.number: t.amount for t in tokens[1:]}
        assert others == {n: 1000 for n in ALL_123 - {"123"}}

    def test_total_staked(self):
        assert sum(t.amount for t in parse_notation("123.5000R1000")) == 5000 + 5 * 1000
        assert sum(t.amount for t in parse_notation("123R1000-2000")) == 2000 + 5 * 1000

    def test_repeated_digits(self):
        tokens = parse_notation("112.500R100")
        assert [(t.number, t.amount) for t in tokens] == [("112", 500), ("121", 100), ("211", 100)]

    def test_whitespace_never_joins_amounts(self):
        assert parse_notation("123-500 456R200")[0] == ParsedToken(
            original="123-500", number="123", amount=500
        )

    def test_trailing_marker_without_amount(self):
        assert parse_notation("123-500R") == [
            ParsedToken(original="123-500", number="123", amount=500)
        ]

    def test_dangling_marker_before_next_token(self):
        tokens = parse_notation("123-500R 456-200")
        assert [(t.number, t.amount) for t in tokens] == [("123", 500), ("456", 200)]
        assert not any(t.is_compound for t in tokens)

    def test_dangling_marker_before_permutation_token(self):
        tokens = parse_notation("123R 456R10")
        assert {t.number for t in tokens} == {"456", "465", "546", "564", "645", "654"}

    def test_marker_then_whitespace_amount_still_binds(self):
        tokens = parse_notation("123R 500 456-10")
        assert len(tokens) == 7
        assert tokens[-1] == ParsedToken(original="456-10", number="456", amount=10)

    def test_direct_amount_never_opens_a_straight_token(self):
        tokens = parse_notation("123R500-456 200")
        assert [(t.number, t.amount) for t in tokens if not t.is_permutation] == [("456", 200)]
        assert {t.number for t in tokens if t.is_permutation} == ALL_123
        assert not any(t.is_compound for t in tokens)

    def test_compound_followed_by_list(self):
        tokens = parse_notation("123R1000-2000,456-10")
        assert sum(t.amount for t in tokens if t.is_compound) == 7000
        assert tokens[-1] == ParsedToken(original="456-10", number="456", amount=10)


class TestGrouping:

    def test_first_seen_order(self):
        groups = group_tokens(parse_notation("123-500 456R200 123-500"))
        assert list(groups) == ["123-500", "456R200"]
        assert len(groups["123-500"]) == 2
        assert len(groups["456R200"]) == 6


class TestRecognizedItems:

    def test_expansion(self):
        items = [
            SimpleNamespace(number="123", amount=500, is_permutation=True),
            SimpleNamespace(number="456", amount=200, is_permutation=False),
            SimpleNamespace(number="ADJ", amount=-50, is_permutation=False),
        ]
        tokens = tokens_from_recognized(items)
        assert len(tokens) == 8
        assert tokens[0].original == "123R500"
        assert tokens[-1] == ParsedToken(original="ADJ/-50", number="ADJ", amount=-50)


class TestPreprocessing:

    def test_ocr_lookalikes(self):
        assert clean_ocr_text("I23-5OO") == "123-500"

    def test_ocr_strips_noise_and_collapses_whitespace(self):
        assert clean_ocr_text("l23 R 5oo\n\n456/1oo ;;") == "123 R 500 456/100"

    def test_ocr_output_parses(self):
        assert len(parse_notation(clean_ocr_text("I23R5OO"))) == 6

    def test_voice_permutation(self):
        assert voice_to_notation("one two three five hundred") == "123R500"

    def test_voice_thousand(self):
        assert voice_to_notation("four two one one thousand") == "421R1000"

    def test_voice_output_parses(self):
        tokens = parse_notation(voice_to_notation("One Two Three five hundred"))
        assert {t.number for t in tokens} == ALL_123


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
