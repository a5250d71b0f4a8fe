"""Lexical extractors for invoice-shaped sentences.

Each extractor is a pure ``text -> candidate`` function built on a single
regular expression. None of them raise: when nothing matches they return a
documented default, never an empty value.

Example sentence handled end to end:
    "Invoice Acme Studio to Jane Doe for 2 x strategy sessions @ $850, due by March 5"
"""

import math
import re
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

DEFAULT_DUE_DATE = "Net 14"
DEFAULT_CLIENT = "Client"
DEFAULT_LINE_DESCRIPTION = "Services rendered"
DEFAULT_LINE_RATE = "1200"

DUE_DATE_PATTERN = re.compile(r"due\s*(?:on|by)\s*([a-z0-9,/\-\s]+)", re.IGNORECASE)
CLIENT_PATTERN = re.compile(r"\bto\s+([a-z\s.]+?)(?:,|\s+for|\s+at|\s+by)", re.IGNORECASE)
LINE_ITEM_PATTERN = re.compile(
    r"(\d+)\s*(?:x|×)\s*([^@,;]+?)\s*(?:@|at)\s*\$?([\d,.]+)", re.IGNORECASE
)
DOLLAR_AMOUNT_PATTERN = re.compile(r"\$([\d,.]+)")
LEADING_NUMBER_PATTERN = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)")

CENT = Decimal("0.01")


def round2(value: float) -> float:
    """Round a monetary value to cents, half away from zero.

    Goes through the shortest decimal representation so 1.005 rounds the way
    it reads. Applying it twice is a no-op. Magnitudes of 1e15 and above
    carry no cents in binary floating point and are returned unchanged.
    Integers too large for a float yield 0.
    """
    try:
        value = float(value)
    except OverflowError:
        return 0.0
    if not math.isfinite(value) or abs(value) >= 1e15:
        return value
    return float(Decimal(repr(value)).quantize(CENT, rounding=ROUND_HALF_UP))


def parse_amount(value: str) -> float:
    """Parse a human-written amount such as ``"1,250.50"``.

    Thousands separators are stripped and the leading number is used;
    anything unparseable (or too large to represent) yields 0.
    """
    match = LEADING_NUMBER_PATTERN.match(value.replace(",", "").strip())
    if not match:
        return 0.0
    amount = float(match.group(0))
    return amount if math.isfinite(amount) else 0.0


def extract_due_date(text: str) -> str:
    """Return the phrase after "due on"/"due by", or "Net 14"."""
    match = DUE_DATE_PATTERN.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return DEFAULT_DUE_DATE


def extract_client(text: str) -> str:
    """Return the name after "to", up to a comma or "for"/"at"/"by"."""
    match = CLIENT_PATTERN.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    return DEFAULT_CLIENT


def parse_lines(text: str) -> list[dict[str, Any]]:
    """Extract ``<qty> x <description> @ $<rate>`` line items.

    Without any match a single "Services rendered" line is returned, priced
    at the first dollar amount in the text (1200 if there is none).
    """
    lines: list[dict[str, Any]] = [
        {
            "description": match.group(2).strip(),
            "quantity": int(match.group(1)),
            "rate": parse_amount(match.group(3)),
        }
        for match in LINE_ITEM_PATTERN.finditer(text)
    ]

    if not lines:
        fallback_rate = DOLLAR_AMOUNT_PATTERN.search(text)
        lines.append(
            {
                "description": DEFAULT_LINE_DESCRIPTION,
                "quantity": 1,
                "rate": parse_amount(fallback_rate.group(1) if fallback_rate else DEFAULT_LINE_RATE),
            }
        )

    return [{**line, "rate": round2(line["rate"])} for line in lines]
