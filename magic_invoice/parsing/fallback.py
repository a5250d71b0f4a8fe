"""Deterministic, model-free invoice drafts.

Used directly for empty prompts, and as the bottom tier of every
normalization: whatever the model leaves out comes from here.
"""

import random
from datetime import date
from typing import Any

from magic_invoice.parsing.coercion import (
    build_charges,
    build_lines,
    coerce_lines,
    coerce_number,
    coerce_text,
)
from magic_invoice.parsing.extractors import extract_client, extract_due_date, parse_lines
from magic_invoice.parsing.schema import (
    PARTY_FIELDS,
    InvoiceDefaults,
    InvoiceDraft,
    Party,
    PartyDefaults,
)

DEFAULT_CURRENCY = "USD"
DEFAULT_INVOICE_PREFIX = "MI"
COURTESY_NOTE = "Payment is due within the agreed terms. Thank you for choosing Magic Invoice."

# Business identity used when neither the model nor the profile names the issuer.
ISSUER_DEFAULTS: dict[str, str] = {
    "name": "You",
    "company": "Magic Invoice Studio",
    "email": "hello@magicinvoice.ai",
}


def build_invoice_number(prefix: str = DEFAULT_INVOICE_PREFIX, today: date | None = None) -> str:
    """Generate ``<PREFIX>-<YYYYMMDD>-<NNN>`` with a random 100-999 suffix."""
    today = today or date.today()
    return f"{prefix}-{today:%Y%m%d}-{random.randint(100, 999)}"


def _issuer(defaults: PartyDefaults | None) -> Party:
    values = {}
    for field in PARTY_FIELDS:
        profile_value = coerce_text(getattr(defaults, field)) if defaults else None
        values[field] = profile_value or ISSUER_DEFAULTS.get(field, "")
    return Party(**values)


def compose_fallback(
    model_output: dict[str, Any] | None,
    raw_text: str,
    defaults: InvoiceDefaults | None = None,
    *,
    prefix: str = DEFAULT_INVOICE_PREFIX,
    today: date | None = None,
) -> InvoiceDraft:
    """Compose a complete draft from user defaults and the lexical extractors.

    Only the model's ``lines`` are consulted (when non-empty); every other
    field comes from ``defaults`` or the raw text.

    Args:
        model_output: Parsed model output, possibly empty
        raw_text: The user's sentence
        defaults: Optional user defaults
        prefix: Invoice number prefix
        today: Issue date (defaults to the current date)

    Returns:
        Fully-populated InvoiceDraft
    """
    today = today or date.today()
    defaults = defaults or InvoiceDefaults()
    model_output = model_output or {}

    lines = coerce_lines(model_output.get("lines"))
    if lines is None:
        lines = build_lines(parse_lines(raw_text))

    tax_rate = coerce_number(defaults.tax_rate)

    return InvoiceDraft(
        invoice_number=coerce_text(defaults.invoice_number) or build_invoice_number(prefix, today),
        issued_on=today,
        due_date=coerce_text(defaults.due_date) or extract_due_date(raw_text),
        from_=_issuer(defaults.from_),
        to=Party(name=extract_client(raw_text)),
        currency=coerce_text(defaults.currency) or DEFAULT_CURRENCY,
        tax_rate=tax_rate if tax_rate is not None else 0,
        custom_charges=build_charges(defaults.custom_charges or []),
        notes=coerce_text(defaults.notes) or COURTESY_NOTE,
        lines=lines,
    )
