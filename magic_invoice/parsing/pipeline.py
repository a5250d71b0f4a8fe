"""Invoice parsing pipeline.

Sequences one parse request::

    validate length -> empty prompt? -> fallback draft
                    -> model configured? -> call model -> parse JSON -> normalize

Empty or unreadable model output is recovered with a fallback draft and a
warning; every other failure is terminal and raised as an InvoiceParseError.
"""

import logging
from datetime import date
from typing import Literal

from pydantic import BaseModel

from magic_invoice.models.base import ModelProvider
from magic_invoice.parsing.errors import (
    EMPTY_RESPONSE_WARNING,
    UNREADABLE_RESPONSE_WARNING,
    ModelNotConfiguredError,
    ModelTransportError,
    PromptTooLongError,
)
from magic_invoice.parsing.normalizer import normalize_invoice, parse_model_json
from magic_invoice.parsing.prompt import build_model_prompt
from magic_invoice.parsing.schema import InvoiceDefaults, InvoiceDraft
from magic_invoice.shared.config import Settings

logger = logging.getLogger(__name__)


class ParseOutcome(BaseModel):
    """Result of a successful parse.

    Attributes:
        invoice: Fully-normalized draft
        warning: Advisory message when model output had to be discarded
        source: "model" if the model's JSON was used, "fallback" otherwise
    """

    invoice: InvoiceDraft
    warning: str | None = None
    source: Literal["model", "fallback"]


class InvoiceParsePipeline:
    """Turns a free-text invoice description into an InvoiceDraft.

    Stateless apart from its collaborators; one instance serves all requests.
    """

    def __init__(self, settings: Settings, provider: ModelProvider | None) -> None:
        """Initialize pipeline.

        Args:
            settings: Application settings
            provider: Model provider, or None when no model is wired in
        """
        self.settings = settings
        self.provider = provider

    def parse(
        self,
        prompt: str,
        defaults: InvoiceDefaults | None = None,
        today: date | None = None,
    ) -> ParseOutcome:
        """Parse one invoice description.

        Args:
            prompt: The user's sentence
            defaults: Optional user defaults
            today: Issue date override (defaults to the current date)

        Returns:
            ParseOutcome with a complete draft and an optional warning

        Raises:
            PromptTooLongError: Prompt exceeds settings.max_prompt_length
            ModelNotConfiguredError: Non-empty prompt but no usable provider
            ModelTransportError: The model call failed or timed out
        """
        if len(prompt) > self.settings.max_prompt_length:
            raise PromptTooLongError()

        text = prompt.strip()
        if not text:
            return ParseOutcome(invoice=self._normalize({}, text, defaults, today), source="fallback")

        if self.provider is None or not self.provider.is_available():
            raise ModelNotConfiguredError()

        result = self.provider.generate_json(build_model_prompt(text, defaults))
        if not result.success:
            logger.error(f"Model call failed ({result.provider}): {result.error}")
            raise ModelTransportError()

        if not result.text or not result.text.strip():
            logger.warning(f"Model returned an empty response ({result.provider})")
            return ParseOutcome(
                invoice=self._normalize({}, text, defaults, today),
                warning=EMPTY_RESPONSE_WARNING,
                source="fallback",
            )

        try:
            parsed = parse_model_json(result.text)
        except (ValueError, RecursionError) as e:
            logger.warning(f"Model returned unreadable JSON ({result.provider}): {e}")
            return ParseOutcome(
                invoice=self._normalize({}, text, defaults, today),
                warning=UNREADABLE_RESPONSE_WARNING,
                source="fallback",
            )

        return ParseOutcome(invoice=self._normalize(parsed, text, defaults, today), source="model")

    def _normalize(
        self,
        model_output: dict,
        text: str,
        defaults: InvoiceDefaults | None,
        today: date | None,
    ) -> InvoiceDraft:
        return normalize_invoice(
            model_output,
            text,
            defaults,
            prefix=self.settings.invoice_number_prefix,
            today=today,
        )
