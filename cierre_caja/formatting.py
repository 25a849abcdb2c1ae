"""Parsing and display helpers for whole-peso (CLP) amounts and closing dates.

Amounts are plain integers: the currency has no minor unit shown, so nothing
here deals with decimals.  Parsing is lenient:
every non-digit character is ignored and empty input counts as zero.
"""
from __future__ import annotations

import re
from datetime import date
from typing import Optional

from dateutil import parser as date_parser

_NON_DIGITS = re.compile(r"[^0-9]")

CURRENCY_SYMBOL = "$"
THOUSANDS_SEPARATOR = "."

# Largest amount or count accepted from input.  Sums and denomination
# subtotals built from it still fit a SQLite INTEGER.
MAX_AMOUNT = 999_999_999_999
_MAX_AMOUNT_DIGITS = len(str(MAX_AMOUNT))


def strip_non_digits(text: str) -> str:
    """Return ``text`` with every character that is not ``0-9`` removed."""

    return _NON_DIGITS.sub("", text or "")


def clamp_amount(amount: int) -> int:
    """Bound ``amount`` to ``0..MAX_AMOUNT``."""

    return max(0, min(int(amount), MAX_AMOUNT))


def _digits_to_amount(digits: str) -> int:
    # Checked before int() so very long input never hits the int-conversion limit.
    significant = digits.lstrip("0") or "0"
    if len(significant) > _MAX_AMOUNT_DIGITS:
        return MAX_AMOUNT
    return clamp_amount(int(significant, 10))


def parse_localized_amount(raw: object) -> int:
    """Parse a user-entered amount such as ``"$50.000"`` into ``50000``.

    Never raises; anything without digits yields ``0``.  A leading minus sign
    is ignored like any other non-digit character, so the result is never
    negative.  Amounts above :data:`MAX_AMOUNT` are capped.
    """

    if raw is None:
        return 0
    digits = strip_non_digits(str(raw))
    if not digits:
        return 0
    return _digits_to_amount(digits)


def group_thousands(amount: int) -> str:
    """Render ``abs(amount)`` with ``.`` as thousands separator."""

    return f"{abs(int(amount)):,}".replace(",", THOUSANDS_SEPARATOR)


def format_currency_display(amount: int) -> str:
    """Render ``amount`` the way es-CL shows CLP: ``$50.000`` / ``-$10.000``."""

    sign = "-" if amount < 0 else ""
    return f"{sign}{CURRENCY_SYMBOL}{group_thousands(amount)}"


def format_signed_difference(amount: int) -> str:
    """Render a cash difference with an explicit sign.

    A surplus gets a ``+`` prefix and a shortfall a ``-`` prefix; a balanced
    register is shown without sign.
    """

    if amount > 0:
        return f"+{format_currency_display(amount)}"
    return format_currency_display(amount)


def format_grouped_amount(raw: str) -> str:
    """Normalise a raw entry for echoing back into an input field.

    ``"50000"`` and ``"50.000"`` both become ``"50.000"``; input without any
    digit becomes the empty string so the field shows its placeholder.
    """

    digits = strip_non_digits(raw)
    if not digits:
        return ""
    return group_thousands(_digits_to_amount(digits))


def parse_closing_date(value: Optional[str], default: Optional[date] = None) -> date:
    """Parse a closing date typed as ISO (``2026-10-19``) or day-first (``19/10/2026``).

    Empty input yields ``default`` (today when not given).  Unparseable input
    raises :class:`ValueError`.
    """

    if value is None or not str(value).strip():
        return default or date.today()
    stringified = str(value).strip()
    try:
        return date.fromisoformat(stringified[:10])
    except ValueError:
        pass
    try:
        return date_parser.parse(stringified, dayfirst=True).date()
    except (ValueError, OverflowError) as exc:
        raise ValueError(f"Invalid closing date: {stringified!r}") from exc


__all__ = [
    "MAX_AMOUNT",
    "strip_non_digits",
    "clamp_amount",
    "parse_localized_amount",
    "group_thousands",
    "format_currency_display",
    "format_signed_difference",
    "format_grouped_amount",
    "parse_closing_date",
]
