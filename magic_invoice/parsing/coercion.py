"""Type coercion for untrusted invoice values.

Model output and user defaults arrive as loosely-typed JSON. These helpers
turn a raw value into a usable candidate or ``None`` ("not supplied"), so
that callers can fall through to the next source in line.
"""

import math
from collections.abc import Iterable, Mapping
from typing import Any

from magic_invoice.parsing.extractors import DEFAULT_LINE_DESCRIPTION, round2
from magic_invoice.parsing.schema import CustomCharge, InvoiceLine

DEFAULT_CHARGE_LABEL = "Custom charge"


def _finite_float(value: int | float) -> float | None:
    """Float value of a number, or None when it is not finite or out of range."""
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def coerce_text(value: Any) -> str | None:
    """Return a trimmed non-blank string, stringifying plain numbers."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int | float) and _finite_float(value) is not None:
        return str(value)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def coerce_number(value: Any) -> int | float | None:
    """Return a finite number from a number or numeric string ("1,200.50")."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        # Integers beyond float range cannot be priced or summed
        return value if _finite_float(value) is not None else None
    if isinstance(value, float):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            number = float(value.replace(",", "").strip())
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def _quantity(value: Any) -> int | float:
    number = coerce_number(value)
    if number is None:
        return 1
    if isinstance(number, float) and number.is_integer():
        return int(number)
    return number


def _as_mapping(item: Any) -> Mapping[str, Any]:
    return item if isinstance(item, Mapping) else {}


def build_lines(items: Iterable[Any]) -> list[InvoiceLine]:
    """Build line items with positional ids, discarding upstream ids."""
    lines = []
    for index, item in enumerate(items, start=1):
        raw = _as_mapping(item)
        lines.append(
            InvoiceLine(
                id=str(index),
                description=coerce_text(raw.get("description")) or DEFAULT_LINE_DESCRIPTION,
                quantity=_quantity(raw.get("quantity")),
                rate=round2(coerce_number(raw.get("rate")) or 0),
            )
        )
    return lines


def build_charges(items: Iterable[Any]) -> list[CustomCharge]:
    """Build custom charges with positional ids, discarding upstream ids."""
    charges = []
    for index, item in enumerate(items, start=1):
        raw = _as_mapping(item)
        charges.append(
            CustomCharge(
                id=str(index),
                label=coerce_text(raw.get("label")) or DEFAULT_CHARGE_LABEL,
                amount=round2(coerce_number(raw.get("amount")) or 0),
            )
        )
    return charges


def coerce_lines(value: Any) -> list[InvoiceLine] | None:
    """Model lines are used only when they form a non-empty list."""
    if isinstance(value, list) and value:
        return build_lines(value)
    return None


def coerce_charges(value: Any) -> list[CustomCharge] | None:
    """Model charges are used whenever a list is present, even an empty one."""
    if isinstance(value, list):
        return build_charges(value)
    return None
