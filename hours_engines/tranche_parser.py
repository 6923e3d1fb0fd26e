"""
hours_engines.tranche_parser -- TrancheDescriptorParser.

Responsibility:
    Extract installment (tranche) structure from the free text of a course
    contract line item.  Invoice text is written by hand in Romanian or
    English and has never followed one format, so recognition is a set of
    heuristics.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Design:
    The parser is an ORDERED tuple of matchers.  Each matcher takes the
    lowercased text and returns a TrancheDescriptor or None; the first
    non-None result wins.  Priority order:

        1. NUMBERED      "<word> <N>[/<M>]"        "Tranșa 1/4", "transa 2 (2875 euro)"
        2. AMOUNT        "<word> ... (<amount>)"    "transa curs PPL (4750 euro)"
        3. FINAL_PHRASE  "final installment"        "tranșa finală", "ultima transa"
        4. N_OF_M        "<word> <N> din|of <M>"    "tranșa 1 din 4", "installment 2 of 3"

    <word> is one of: tranșa, transa, tranşa, installment, instalment,
    tranche.  NUMBERED does not match when the number is followed by
    "din"/"of", so N_OF_M still sees those texts.

Invariants enforced:
    - Deterministic: same text, same descriptor.
    - The first installment number in the text is authoritative.

Failure modes:
    - Unrecognized text returns None.  Callers skip the item with a note.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum

from hours_kernel.logging_config import get_logger

logger = get_logger("engines.tranche_parser")

_WORD = r"(?:tran[sșş]a|instal{1,2}ment|tranche)"

_NUMBERED = re.compile(
    rf"{_WORD}\s+(\d+)(?!\d|\s+(?:din|of)\s+\d)(?:\s*/\s*(\d+))?"
)
_AMOUNT = re.compile(r"\((\d+(?:[.,]\d+)?)\s*(?:euro|eur|ron|lei)?\)")
_FINAL_WORD = re.compile(r"\b(?:final[aă]?|ultim[aă]|last)\b")
_FINAL_PHRASE = re.compile(
    rf"{_WORD}\s+final[aă]?\b|\bultim[aă]\s+{_WORD}|\b(?:final[aă]?|last)\s+{_WORD}"
)
_N_OF_M = re.compile(rf"{_WORD}\s+(\d+)\s+(?:din|of)\s+(\d+)")
_HAS_WORD = re.compile(_WORD)


class TranchePattern(str, Enum):
    """Which matcher produced a descriptor."""

    NUMBERED = "numbered"
    AMOUNT = "amount"
    FINAL_PHRASE = "final_phrase"
    N_OF_M = "n_of_m"


@dataclass(frozen=True)
class TrancheDescriptor:
    """
    Installment structure recognized in one description.

    ``total_tranches`` is None when the text does not state it; the
    allocation calculator then infers it from ``amount``.
    """

    tranche_number: int
    total_tranches: int | None
    is_final: bool
    amount: Decimal | None
    pattern: TranchePattern


def _parse_amount(text: str) -> Decimal | None:
    match = _AMOUNT.search(text)
    if match is None:
        return None
    try:
        return Decimal(match.group(1).replace(",", "."))
    except InvalidOperation:
        return None


def _is_final(text: str) -> bool:
    return _FINAL_WORD.search(text) is not None


def match_numbered(text: str) -> TrancheDescriptor | None:
    match = _NUMBERED.search(text)
    if match is None:
        return None
    number = int(match.group(1))
    total = int(match.group(2)) if match.group(2) else None
    is_final = _is_final(text)
    if total is None and is_final:
        total = number
    return TrancheDescriptor(
        tranche_number=number,
        total_tranches=total,
        is_final=is_final,
        amount=_parse_amount(text),
        pattern=TranchePattern.NUMBERED,
    )


def match_amount(text: str) -> TrancheDescriptor | None:
    # Final installments without a number are left to the phrase matcher.
    if not _HAS_WORD.search(text) or _is_final(text):
        return None
    amount = _parse_amount(text)
    if amount is None:
        return None
    return TrancheDescriptor(
        tranche_number=1,
        total_tranches=None,
        is_final=False,
        amount=amount,
        pattern=TranchePattern.AMOUNT,
    )


def match_final_phrase(text: str) -> TrancheDescriptor | None:
    if _FINAL_PHRASE.search(text) is None:
        return None
    return TrancheDescriptor(
        tranche_number=1,
        total_tranches=1,
        is_final=True,
        amount=None,
        pattern=TranchePattern.FINAL_PHRASE,
    )


def match_n_of_m(text: str) -> TrancheDescriptor | None:
    match = _N_OF_M.search(text)
    if match is None:
        return None
    number = int(match.group(1))
    total = int(match.group(2))
    return TrancheDescriptor(
        tranche_number=number,
        total_tranches=total,
        is_final=number == total,
        amount=_parse_amount(text),
        pattern=TranchePattern.N_OF_M,
    )


Matcher = Callable[[str], "TrancheDescriptor | None"]

DEFAULT_MATCHERS: tuple[Matcher, ...] = (
    match_numbered,
    match_amount,
    match_final_phrase,
    match_n_of_m,
)


class TrancheDescriptorParser:
    """
    Ordered-matcher parser for installment descriptions.

    Contract:
        ``parse`` returns the result of the first matcher that recognizes
        the text, or None.
    Non-goals:
        - Does not decide hours; see CourseAllocationCalculator.
    """

    def __init__(self, matchers: tuple[Matcher, ...] = DEFAULT_MATCHERS):
        self._matchers = matchers

    @property
    def matchers(self) -> tuple[Matcher, ...]:
        return self._matchers

    def parse(self, text: str | None) -> TrancheDescriptor | None:
        if not text:
            return None
        lowered = text.lower()
        for matcher in self._matchers:
            descriptor = matcher(lowered)
            if descriptor is not None:
                logger.debug("tranche_parsed", extra={
                    "pattern": descriptor.pattern.value,
                    "tranche_number": descriptor.tranche_number,
                    "total_tranches": descriptor.total_tranches,
                })
                return descriptor
        return None
