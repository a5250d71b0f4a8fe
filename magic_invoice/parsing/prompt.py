"""Prompt construction for model-backed invoice extraction."""

import json

from magic_invoice.parsing.schema import InvoiceDefaults

SYSTEM_ROLE = "You are an expert invoicing assistant."

PARTY_SHAPE = """{
    "name": "string",
    "company": "string",
    "email": "string",
    "addressLine1": "string",
    "addressLine2": "string",
    "city": "string",
    "state": "string",
    "postalCode": "string",
    "country": "string"
  }"""

INVOICE_SHAPE = f"""{{
  "invoiceNumber": "string",
  "issuedOn": "YYYY-MM-DD",
  "dueDate": "string",
  "from": {PARTY_SHAPE},
  "to": {PARTY_SHAPE},
  "currency": "USD",
  "taxRate": number,
  "customCharges": [
    {{ "label": "string", "amount": number }}
  ],
  "notes": "string",
  "lines": [
    {{ "description": "string", "quantity": number, "rate": number }}
  ]
}}"""


def build_model_prompt(raw_text: str, defaults: InvoiceDefaults | None = None) -> str:
    """Build the instruction sent to the generative model.

    Args:
        raw_text: The user's sentence, appended verbatim
        defaults: Optional user defaults, embedded as JSON hints

    Returns:
        Prompt asking for a single JSON invoice object
    """
    defaults_json = json.dumps(defaults.to_wire() if defaults else {}, ensure_ascii=False)

    return f"""{SYSTEM_ROLE} Convert the user sentence into a JSON invoice.
Return ONLY valid JSON (no markdown, no explanation) with exactly this shape:
{INVOICE_SHAPE}
If data is missing, use sensible defaults. Use USD if the currency is unknown.
taxRate is a percentage (8.5 means 8.5%). Use 0 when no tax is mentioned.

User defaults (prefer these when the sentence does not mention a field):
{defaults_json}

User input: {raw_text}
"""
