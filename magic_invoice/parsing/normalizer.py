"""Response validation and normalization.

``normalize_invoice`` is the single authority that turns whatever the model
returned into a valid ``InvoiceDraft``. It never raises, and feeding its own
output back in yields the same draft.

Precedence per field is declared in ``FIELD_RULES``: the model's value is
coerced first; when it is missing or invalid the value from the fallback
draft (user defaults, then lexical extraction, then static defaults) is used.
"""

import json
import logging
import re
from collections.abc import Callable, Mapping
from datetime import date
from typing import Any

from magic_invoice.parsing.coercion import (
    coerce_charges,
    coerce_lines,
    coerce_number,
    coerce_text,
)
from magic_invoice.parsing.fallback import DEFAULT_INVOICE_PREFIX, compose_fallback
from magic_invoice.parsing.schema import PARTY_FIELDS, InvoiceDefaults, InvoiceDraft, Party

logger = logging.getLogger(__name__)

Coercer = Callable[[Any], Any]

# draft field -> (model JSON key, coercer)
FIELD_RULES: dict[str, tuple[str, Coercer]] = {
    "invoice_number": ("invoiceNumber", coerce_text),
    "due_date": ("dueDate", coerce_text),
    "currency": ("currency", coerce_text),
    "tax_rate": ("taxRate", coerce_number),
    "custom_charges": ("customCharges", coerce_charges),
    "notes": ("notes", coerce_text),
    "lines": ("lines", coerce_lines),
}

# Camel-case keys of the party fields, as the model is asked to return them.
PARTY_KEYS: dict[str, str] = {
    field: Party.model_fields[field].alias or field for field in PARTY_FIELDS
}

CODE_FENCE_PATTERN = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$", re.IGNORECASE)


def parse_model_json(text: str) -> dict[str, Any]:
    """Parse model output as a JSON object.

    Tolerates a surrounding markdown code fence.

    Raises:
        ValueError: If the text is not a JSON object
    """
    stripped = text.strip()
    fenced = CODE_FENCE_PATTERN.match(stripped)
    if fenced:
        stripped = fenced.group(1)

    parsed = json.loads(stripped)
    if not isinstance(parsed, dict):
        raise ValueError(f"Expected a JSON object, got {type(parsed).__name__}")
    return parsed


def _pinned_fields(defaults: InvoiceDefaults | None) -> set[str]:
    """Fields where a non-blank user default outranks the model."""
    if defaults is not None and coerce_text(defaults.due_date):
        return {"due_date"}
    return set()


def _merge_party(raw: Any, fallback: Party) -> Party:
    source = raw if isinstance(raw, Mapping) else {}
    values = {}
    for field, key in PARTY_KEYS.items():
        candidate = coerce_text(source.get(key))
        values[field] = candidate if candidate is not None else getattr(fallback, field)
    return Party(**values)


def normalize_invoice(
    model_output: Any,
    raw_text: str,
    defaults: InvoiceDefaults | None = None,
    *,
    prefix: str = DEFAULT_INVOICE_PREFIX,
    today: date | None = None,
) -> InvoiceDraft:
    """Merge model output, user defaults and fallback extraction into one draft.

    Args:
        model_output: Parsed model JSON (anything non-mapping is treated as empty)
        raw_text: The user's sentence, used for lexical fallback extraction
        defaults: Optional user defaults
        prefix: Invoice number prefix for generated numbers
        today: Issue date (defaults to the current date)

    Returns:
        Fully-populated InvoiceDraft
    """
    output: Mapping[str, Any] = model_output if isinstance(model_output, Mapping) else {}
    fallback = compose_fallback(dict(output), raw_text, defaults, prefix=prefix, today=today)
    pinned = _pinned_fields(defaults)

    values: dict[str, Any] = {}
    for field, (key, coerce) in FIELD_RULES.items():
        candidate = None if field in pinned else coerce(output.get(key))
        values[field] = getattr(fallback, field) if candidate is None else candidate

    if output.get("issuedOn"):
        logger.debug("Ignoring model-supplied issuedOn; drafts are issued today")

    return InvoiceDraft(
        issued_on=fallback.issued_on,
        from_=_merge_party(output.get("from"), fallback.from_),
        to=_merge_party(output.get("to"), fallback.to),
        **values,
    )
