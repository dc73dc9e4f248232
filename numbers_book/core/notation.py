"""Shorthand betting notation → parsed stake tokens.

Operators type (or dictate, or photograph) slips such as::

    123-500 456R200
    789/1000, 321=50
    123.5000R1000

One tokenizer with named fields handles every form.  Parsing is lenient and
best-effort: anything that does not match is dropped silently and the caller
treats an empty result as an input error.  Nothing here validates limits or
duplicates; this stage is purely syntactic.

Grammar (left to right, several tokens per line, never across a line break)::

    NUMBER [ws] ( MARKER [ws] [SEP] | SEP ) [ws] AMOUNT

``NUMBER`` is exactly three digits not preceded by another digit, ``MARKER``
is ``R``/``r``, ``SEP`` is one of ``- = @ * . , /`` or horizontal whitespace.

* Marker present → permutation bet: the amount goes on every unique
  arrangement of the digits.
* Separator only → the amount goes on the exact number.

Compound forms carry two amounts around the marker::

    123.5000R1000      NUMBER SEP DIRECT MARKER PERM
    123R1000-2000      NUMBER MARKER [SEP] PERM SEP DIRECT

The amount written right after ``R`` is always the per-arrangement stake for
the *other* unique arrangements; the remaining amount is the direct stake on
the digits in the order written.  So both slips above put 5000 (resp. 2000)
on ``123`` and 1000 on each of ``132 213 231 312 321``.  Compound forms need
an explicit separator character; whitespace alone never joins two amounts.

An amount never swallows the start of the next token.  In ``123-500R 456-200``
the marker is dangling and ``456-200`` is a bet of its own; in
``123R500-456 200`` the slip holds ``123R500`` and the straight ``456 200``.
Digits are ASCII ``0-9`` only.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Protocol

from numbers_book.core.permutations import generate_permutations, other_permutations

# ---------------------------------------------------------------------------
# Token pattern
# ---------------------------------------------------------------------------

_SEP = r"[-=@*.,/]"
_WS = r"[ \t]*"
_NUMBER_START = r"(?<![0-9])"

# A 3-digit run followed by a marker or by SEP + digit is the next token's NUMBER
_OPENS_TOKEN = rf"[0-9]{{3}}{_WS}(?:[Rr]|{_SEP}{_WS}[0-9])"

# Between a marker and its amount: an explicit SEP, nothing, or bare whitespace
# that does not run into the next token
_MARKER_GAP = rf"(?:{_WS}{_SEP}{_WS}|[ \t]+(?!{_OPENS_TOKEN})|)"

# NUMBER SEP DIRECT MARKER [SEP] PERM
_COMPOUND_SEP_FIRST = (
    rf"{_NUMBER_START}(?P<cs_number>[0-9]{{3}}){_WS}{_SEP}{_WS}(?P<cs_direct>[0-9]+)"
    rf"{_WS}[Rr]{_MARKER_GAP}(?P<cs_perm>[0-9]+)"
)

# NUMBER MARKER [SEP] PERM SEP DIRECT, where DIRECT must not open another token
_COMPOUND_MARKER_FIRST = (
    rf"{_NUMBER_START}(?P<cm_number>[0-9]{{3}}){_WS}[Rr]{_MARKER_GAP}(?P<cm_perm>[0-9]+)"
    rf"{_WS}{_SEP}{_WS}(?!{_OPENS_TOKEN}|[0-9]{{3}}[ \t]+[0-9])(?P<cm_direct>[0-9]+)(?![0-9])"
)

# NUMBER ( MARKER [SEP] | SEP | whitespace ) AMOUNT
_SIMPLE = (
    rf"{_NUMBER_START}(?P<s_number>[0-9]{{3}}){_WS}"
    rf"(?:(?P<s_marker>[Rr]){_MARKER_GAP}|{_SEP}{_WS}|(?<=[ \t]))"
    rf"(?P<s_amount>[0-9]+)"
)

_TOKEN_RE = re.compile(
    rf"(?P<compound_sep>{_COMPOUND_SEP_FIRST})"
    rf"|(?P<compound_marker>{_COMPOUND_MARKER_FIRST})"
    rf"|(?P<simple>{_SIMPLE})"
)


# ---------------------------------------------------------------------------
# Data structures
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParsedToken:
    """One number/amount pair produced by the parser.

    Permutation slips are already expanded: ``123R500`` yields six tokens
    sharing the same ``original``.  Tokens are transient and are turned into
    stake entries by the book.
    """

    original: str
    number: str
    amount: int
    is_permutation: bool = False
    is_compound: bool = False


class RecognizedItem(Protocol):
    """Shape of a pre-extracted bet from the recognition service."""

    number: str
    amount: int
    is_permutation: bool


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _expand(original: str, number: str, amount: int, is_permutation: bool) -> List[ParsedToken]:
    if amount == 0:
        return []
    if not is_permutation:
        return [ParsedToken(original, number, amount)]
    return [
        ParsedToken(original, perm, amount, is_permutation=True)
        for perm in sorted(generate_permutations(number))
    ]


def _expand_compound(original: str, number: str, direct: int, perm_amount: int) -> List[ParsedToken]:
    tokens = []
    if direct:
        tokens.append(ParsedToken(original, number, direct, is_permutation=True, is_compound=True))
    if perm_amount:
        tokens.extend(
            ParsedToken(original, perm, perm_amount, is_permutation=True, is_compound=True)
            for perm in sorted(other_permutations(number))
        )
    return tokens


def parse_notation(text: str | None) -> List[ParsedToken]:
    """Parse free text into stake tokens.  Never raises.

    >>> [(t.number, t.amount) for t in parse_notation("123-500")]
    [('123', 500)]
    """
    if not text:
        return []

    tokens: List[ParsedToken] = []
    for match in _TOKEN_RE.finditer(text):
        original = match.group(0)
        if match.group("compound_sep"):
            tokens.extend(
                _expand_compound(
                    original,
                    match.group("cs_number"),
                    direct=int(match.group("cs_direct")),
                    perm_amount=int(match.group("cs_perm")),
                )
            )
        elif match.group("compound_marker"):
            tokens.extend(
                _expand_compound(
                    original,
                    match.group("cm_number"),
                    direct=int(match.group("cm_direct")),
                    perm_amount=int(match.group("cm_perm")),
                )
            )
        else:
            tokens.extend(
                _expand(
                    original,
                    match.group("s_number"),
                    int(match.group("s_amount")),
                    is_permutation=match.group("s_marker") is not None,
                )
            )
    return tokens


def tokens_from_recognized(items: Iterable[RecognizedItem]) -> List[ParsedToken]:
    """Expand pre-extracted ``{number, amount, is_permutation}`` items.

    Items are expected to be validated already (see
    :class:`numbers_book.schemas.RecognizedBet`).  ``original`` is
    synthesised in slip notation so callers can group the result the same way
    as parsed text.
    """
    tokens: List[ParsedToken] = []
    for item in items:
        marker = "R" if item.is_permutation else "/"
        original = f"{item.number}{marker}{item.amount}"
        tokens.extend(_expand(original, item.number, item.amount, item.is_permutation))
    return tokens


def group_tokens(tokens: Iterable[ParsedToken]) -> Dict[str, List[ParsedToken]]:
    """Group tokens by their source substring, first-seen order preserved."""
    groups: Dict[str, List[ParsedToken]] = {}
    for token in tokens:
        groups.setdefault(token.original, []).append(token)
    return groups


# ---------------------------------------------------------------------------
# Pre-processing for recognised text
# ---------------------------------------------------------------------------

_OCR_LOOKALIKES = (
    (re.compile(r"[Il]"), "1"),
    (re.compile(r"[oO]"), "0"),
    (re.compile(r"[sS]"), "5"),
    (re.compile(r"[bB]"), "8"),
)
_OCR_STRIP_RE = re.compile(r"[^0-9Rr\-/,\s]")
_WHITESPACE_RE = re.compile(r"\s+")

_SPOKEN_DIGITS = {
    "zero": "0",
    "one": "1",
    "two": "2",
    "three": "3",
    "four": "4",
    "five": "5",
    "six": "6",
    "seven": "7",
    "eight": "8",
    "nine": "9",
    "hundred": "00",
    "thousand": "000",
}
_VOICE_MARKER_RE = re.compile(r"([0-9]{3})([0-9]+)")


def clean_ocr_text(text: str) -> str:
    """Normalise OCR output before parsing.

    Common look-alike letters become digits, everything outside the notation
    alphabet is removed and whitespace collapses to single spaces.
    """
    for pattern, digit in _OCR_LOOKALIKES:
        text = pattern.sub(digit, text)
    text = _OCR_STRIP_RE.sub("", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def voice_to_notation(text: str) -> str:
    """Turn a dictated bet ("one two three five hundred") into ``123R500``.

    Spoken digits are replaced, whitespace removed, and a permutation marker
    is inserted after the first three digits of the first longer digit run.
    """
    processed = text.lower()
    for word, digits in _SPOKEN_DIGITS.items():
        processed = processed.replace(word, digits)
    processed = _WHITESPACE_RE.sub("", processed)
    return _VOICE_MARKER_RE.sub(r"\1R\2", processed, count=1)
