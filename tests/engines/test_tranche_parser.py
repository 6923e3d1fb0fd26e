"""
Tests for TrancheDescriptorParser.

Covers:
- Each recognized pattern (numbered, amount, final phrase, N of M)
- Priority order between overlapping patterns
- Diacritic and language variants
- Unrecognized text
"""

from decimal import Decimal

import pytest

from hours_engines.tranche_parser import (
    TrancheDescriptorParser,
    TranchePattern,
    match_amount,
    match_n_of_m,
    match_numbered,
)


@pytest.fixture
def parser():
    return TrancheDescriptorParser()


class TestNumberedPattern:
    """'<word> <N>[/<M>]'"""

    def test_number_with_total(self, parser):
        d = parser.parse("Tranșa 1/4")
        assert d.pattern == TranchePattern.NUMBERED
        assert (d.tranche_number, d.total_tranches, d.is_final) == (1, 4, False)

    def test_number_with_amount(self, parser):
        d = parser.parse("transa 2 (2875 euro)")
        assert d.tranche_number == 2
        assert d.total_tranches is None
        assert d.amount == Decimal("2875")

    def test_spaces_around_slash(self, parser):
        d = parser.parse("Tranche 3 / 6")
        assert (d.tranche_number, d.total_tranches) == (3, 6)

    def test_final_keyword_sets_total(self, parser):
        d = parser.parse("Tranșa 4 finală")
        assert d.is_final
        assert d.total_tranches == 4

    @pytest.mark.parametrize("text", ["Tranșa 1/4", "transa 1/4", "tranşa 1/4", "TRANSA 1/4"])
    def test_diacritic_variants(self, parser, text):
        assert parser.parse(text).total_tranches == 4

    @pytest.mark.parametrize("text", ["Installment 2/3", "Instalment 2/3", "tranche 2/3"])
    def test_english_variants(self, parser, text):
        d = parser.parse(text)
        assert (d.tranche_number, d.total_tranches) == (2, 3)

    def test_multi_digit_number_is_not_truncated(self):
        assert match_numbered("transa 12 din 14") is None


class TestAmountPattern:
    """'<word> ... (<amount>)' with no installment number."""

    def test_amount_only(self, parser):
        d = parser.parse("Transa curs PPL (4750 euro)")
        assert d.pattern == TranchePattern.AMOUNT
        assert d.tranche_number == 1
        assert d.total_tranches is None
        assert d.amount == Decimal("4750")

    def test_decimal_comma(self):
        d = match_amount("transa curs (1437,50 eur)")
        assert d.amount == Decimal("1437.50")

    def test_requires_installment_word(self):
        assert match_amount("curs ppl (4750 euro)") is None

    def test_final_text_is_left_to_phrase_matcher(self, parser):
        d = parser.parse("Ultima transa (1200 euro)")
        assert d.pattern == TranchePattern.FINAL_PHRASE


class TestFinalPhrasePattern:

    @pytest.mark.parametrize("text", [
        "Tranșa finală curs PPL",
        "ultima tranșa",
        "Final installment",
        "last tranche",
    ])
    def test_final_phrases(self, parser, text):
        d = parser.parse(text)
        assert d.pattern == TranchePattern.FINAL_PHRASE
        assert d.is_final
        assert (d.tranche_number, d.total_tranches) == (1, 1)


class TestNOfMPattern:

    def test_romanian_din(self, parser):
        d = parser.parse("Tranșa 1 din 4")
        assert d.pattern == TranchePattern.N_OF_M
        assert (d.tranche_number, d.total_tranches, d.is_final) == (1, 4, False)

    def test_english_of(self, parser):
        d = parser.parse("Installment 3 of 3")
        assert (d.tranche_number, d.total_tranches, d.is_final) == (3, 3, True)

    def test_multi_digit(self):
        d = match_n_of_m("transa 12 din 14")
        assert (d.tranche_number, d.total_tranches) == (12, 14)


class TestUnrecognized:

    @pytest.mark.parametrize("text", [None, "", "Curs PPL", "Avans 50%", "Ore zbor (300 euro)"])
    def test_returns_none(self, parser, text):
        assert parser.parse(text) is None

    def test_deterministic(self, parser):
        assert parser.parse("Tranșa 2/4") == parser.parse("Tranșa 2/4")

    def test_custom_matcher_order(self):
        parser = TrancheDescriptorParser(matchers=(match_n_of_m,))
        assert parser.parse("Tranșa 1/4") is None
        assert parser.matchers == (match_n_of_m,)


class TestFinalWordBoundaries:
    """"final" must be a whole word, not the start of another one."""

    def test_finalizare_is_not_final(self, parser):
        d = parser.parse("Tranșa 2 - finalizare dosar")
        assert d.pattern == TranchePattern.NUMBERED
        assert (d.tranche_number, d.total_tranches, d.is_final) == (2, None, False)

    def test_finalizare_without_number_is_unrecognized(self, parser):
        assert parser.parse("Tranșa finalizare dosar") is None

    def test_romanian_inflection_is_final(self, parser):
        d = parser.parse("Tranșa 3 ultimă")
        assert (d.tranche_number, d.total_tranches, d.is_final) == (3, 3, True)
