"""Errors surfaced to callers of the invoice parser.

Every error carries a short, non-technical message and the HTTP status the
API responds with. Empty or unreadable model output is not an error: it is
recovered with a fallback draft and one of the warnings below.
"""

EMPTY_RESPONSE_WARNING = "The model returned an empty response. We generated a draft using defaults."
UNREADABLE_RESPONSE_WARNING = (
    "The model returned an unreadable response. We generated a draft using defaults."
)


class InvoiceParseError(Exception):
    """Base class for terminal parse failures (no draft is produced)."""

    status_code = 400
    default_message = "The invoice could not be generated."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class PromptTooLongError(InvoiceParseError):
    default_message = "Prompt is too long."


class InvalidPayloadError(InvoiceParseError):
    default_message = "Invalid JSON payload."


class UnauthenticatedError(InvoiceParseError):
    status_code = 401
    default_message = "Sign in to generate invoices."


class InvalidTokenError(InvoiceParseError):
    status_code = 401
    default_message = "Your session is invalid. Please sign in again."


class RateLimitedError(InvoiceParseError):
    """Too many requests; ``retry_after`` is in whole seconds."""

    status_code = 429
    default_message = "Too many requests. Please try again shortly."

    def __init__(self, retry_after: int, message: str | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class ModelNotConfiguredError(InvoiceParseError):
    status_code = 503
    default_message = "A model API key is required to generate invoices."


class ModelTransportError(InvoiceParseError):
    """The model call failed or timed out; never masked with a fallback draft."""

    status_code = 502
    default_message = "The model could not generate the invoice."
