"""Unit tests for the fallback composer."""

import re
from datetime import date

from magic_invoice.parsing.fallback import (
    COURTESY_NOTE,
    build_invoice_number,
    compose_fallback,
)
from magic_invoice.parsing.schema import InvoiceDefaults, PartyDefaults

TODAY = date(2026, 3, 1)


def test_invoice_number_format() -> None:
    number = build_invoice_number("MI", TODAY)

    assert re.fullmatch(r"MI-20260301-\d{3}", number)
    assert 100 <= int(number.rsplit("-", 1)[1]) <= 999


def test_invoice_number_custom_prefix() -> None:
    assert build_invoice_number("ACME", TODAY).startswith("ACME-20260301-")


def test_empty_text_without_defaults() -> None:
    draft = compose_fallback({}, "", today=TODAY)

    assert draft.issued_on == TODAY
    assert draft.due_date == "Net 14"
    assert draft.from_.name == "You"
    assert draft.from_.company == "Magic Invoice Studio"
    assert draft.from_.email == "hello@magicinvoice.ai"
    assert draft.from_.city == ""
    assert draft.to.name == "Client"
    assert draft.to.email == ""
    assert draft.currency == "USD"
    assert draft.tax_rate == 0
    assert draft.custom_charges == []
    assert draft.notes == COURTESY_NOTE
    assert len(draft.lines) == 1
    line = draft.lines[0]
    assert (line.id, line.description, line.quantity, line.rate) == (
        "1",
        "Services rendered",
        1,
        1200.0,
    )


def test_text_extraction() -> None:
    draft = compose_fallback(
        {},
        "Invoice to Jane Doe for 2 x strategy sessions @ $850, due by March 5",
        today=TODAY,
    )

    assert draft.to.name == "Jane Doe"
    assert draft.due_date == "March 5"
    assert [(line.description, line.quantity, line.rate) for line in draft.lines] == [
        ("strategy sessions", 2, 850.0)
    ]


def test_defaults_fill_issuer_and_settings() -> None:
    defaults = InvoiceDefaults(
        invoice_number="INV-7",
        due_date="Net 30",
        currency="EUR",
        notes="Thanks!",
        tax_rate=19,
        custom_charges=[{"label": "Rush fee", "amount": "25.555"}, {"amount": 5}],
        from_=PartyDefaults(name="Ana", company="Ana Studio", city="Lisbon"),
    )

    draft = compose_fallback({}, "Invoice due by Friday", defaults, today=TODAY)

    assert draft.invoice_number == "INV-7"
    assert draft.due_date == "Net 30"
    assert draft.currency == "EUR"
    assert draft.notes == "Thanks!"
    assert draft.tax_rate == 19
    assert [(c.id, c.label, c.amount) for c in draft.custom_charges] == [
        ("1", "Rush fee", 25.56),
        ("2", "Custom charge", 5.0),
    ]
    assert draft.from_.name == "Ana"
    assert draft.from_.company == "Ana Studio"
    assert draft.from_.email == "hello@magicinvoice.ai"
    assert draft.from_.city == "Lisbon"


def test_blank_due_date_default_falls_back_to_extraction() -> None:
    draft = compose_fallback({}, "Invoice due on May 2", InvoiceDefaults(due_date="  "), today=TODAY)

    assert draft.due_date == "May 2"


def test_model_lines_used_when_present() -> None:
    draft = compose_fallback(
        {"lines": [{"description": "Copywriting", "quantity": 3, "rate": 120}]},
        "2 x strategy sessions @ $850",
        today=TODAY,
    )

    assert [(line.description, line.quantity, line.rate) for line in draft.lines] == [
        ("Copywriting", 3, 120.0)
    ]


def test_empty_model_lines_ignored() -> None:
    draft = compose_fallback({"lines": []}, "2 x strategy sessions @ $850", today=TODAY)

    assert draft.lines[0].description == "strategy sessions"
