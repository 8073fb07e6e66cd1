"""Numeric input normalisation and the word length bound.

Raw request values arrive as JSON numbers, decimal strings or Python ints. They
are resolved once into :data:`NumericInput` and everything downstream works on
the canonical decimal string or the ``int`` it denotes.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Optional, Union

from .constants import MAX_WORD_LENGTH, MIN_WORD_LENGTH
from .errors import ValidationError

_DECIMAL_RE = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class IntegerInput:
    value: int

    def canonical(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class DecimalStringInput:
    text: str

    def canonical(self) -> str:
        return self.text.lstrip("0") or "0"


NumericInput = Union[IntegerInput, DecimalStringInput]


def parse_numeric_input(value: Any, label: str) -> NumericInput:
    # bool is an int subclass but never a valid count
    if isinstance(value, bool):
        raise ValidationError(f"{label} must be an integer or numeric string")
    if isinstance(value, int):
        if value < 0:
            raise ValidationError(f"{label} must be non-negative")
        return IntegerInput(value)
    if isinstance(value, float):
        if not value.is_integer() or value < 0:
            raise ValidationError(f"{label} must be a non-negative integer")
        return IntegerInput(int(value))
    if isinstance(value, str):
        if not _DECIMAL_RE.fullmatch(value):
            raise ValidationError(f"{label} must be a numeric string")
        return DecimalStringInput(value)
    raise ValidationError(f"{label} must be an integer or numeric string")


def normalize_numeric(value: Any, label: str) -> str:
    return parse_numeric_input(value, label).canonical()


def validate_word_length(value: Any) -> int:
    """Return ``value`` as an int, enforcing the 3..8 word length bound.

    The bound is checked on the canonical digits, so inputs of any length are
    rejected without converting them.
    """
    parsed = parse_numeric_input(value, "wordLength")
    if isinstance(parsed, IntegerInput):
        length: Optional[int] = parsed.value
    else:
        digits = parsed.canonical()
        length = int(digits) if len(digits) <= len(str(MAX_WORD_LENGTH)) else None
    if length is None or length < MIN_WORD_LENGTH or length > MAX_WORD_LENGTH:
        raise ValidationError(
            f"wordLength must be between {MIN_WORD_LENGTH} and {MAX_WORD_LENGTH}"
        )
    return length
