"""Invoice draft models.

Wire format is camelCase JSON (``invoiceNumber``, ``addressLine1``); Python
attributes are snake_case. ``from`` is a keyword, so the issuer party lives
on ``from_``.
"""

from datetime import date
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from magic_invoice.parsing.extractors import round2

PARTY_FIELDS: tuple[str, ...] = (
    "name",
    "company",
    "email",
    "address_line1",
    "address_line2",
    "city",
    "state",
    "postal_code",
    "country",
)


class WireModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        """Dump as JSON-compatible camelCase dict."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Party(WireModel):
    """One side of an invoice (issuer or counterparty)."""

    name: str = ""
    company: str = ""
    email: str = ""
    address_line1: str = Field("", alias="addressLine1")
    address_line2: str = Field("", alias="addressLine2")
    city: str = ""
    state: str = ""
    postal_code: str = ""
    country: str = ""


class InvoiceLine(WireModel):
    """Single billable line; ``rate`` is already rounded to cents."""

    id: str
    description: str
    quantity: int | float
    rate: float


class CustomCharge(WireModel):
    """Flat extra charge (shipping, rush fee, ...) added after tax."""

    id: str
    label: str
    amount: float


class InvoiceTotals(WireModel):
    """Computed invoice totals, all rounded to cents; returned alongside each draft."""

    subtotal: float
    charges_total: float
    tax_amount: float
    total: float


class InvoiceDraft(WireModel):
    """Fully-normalized invoice ready for display or persistence.

    Every field is populated; ``lines`` always holds at least one entry.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    invoice_number: str
    issued_on: date
    due_date: str
    from_: Party = Field(alias="from")
    to: Party
    currency: str = "USD"
    tax_rate: float = 0
    custom_charges: list[CustomCharge] = Field(default_factory=list)
    notes: str
    lines: list[InvoiceLine] = Field(min_length=1)

    def totals(self) -> InvoiceTotals:
        """Compute subtotal, flat-rate tax, charges and grand total."""
        subtotal = round2(sum(line.quantity * line.rate for line in self.lines))
        charges_total = round2(sum(charge.amount for charge in self.custom_charges))
        tax_amount = round2(subtotal * self.tax_rate / 100)
        return InvoiceTotals(
            subtotal=subtotal,
            charges_total=charges_total,
            tax_amount=tax_amount,
            total=round2(subtotal + tax_amount + charges_total),
        )


class PartyDefaults(WireModel):
    """Issuer details saved in the user's profile; every field optional."""

    name: str | None = None
    company: str | None = None
    email: str | None = None
    address_line1: str | None = Field(None, alias="addressLine1")
    address_line2: str | None = Field(None, alias="addressLine2")
    city: str | None = None
    state: str | None = None
    postal_code: str | None = None
    country: str | None = None


class InvoiceDefaults(WireModel):
    """User-supplied defaults used when the sentence is silent on a field."""

    invoice_number: str | None = None
    due_date: str | None = None
    currency: str | None = None
    notes: str | None = None
    tax_rate: float | None = None
    custom_charges: list[dict[str, Any]] | None = None
    from_: PartyDefaults | None = Field(None, alias="from")
