"""Bearer-token authentication for the parse endpoint.

Identity is owned by an external auth system; the API only needs a
``TokenVerifier`` that maps a token to a user id.
"""

import hmac
from abc import ABC, abstractmethod

from magic_invoice.parsing.errors import InvalidTokenError, UnauthenticatedError
from magic_invoice.shared.config import Settings


class TokenVerifier(ABC):
    """Maps bearer tokens to user identities."""

    @property
    @abstractmethod
    def enabled(self) -> bool:
        """Whether requests must carry a token at all."""
        pass

    @abstractmethod
    def verify(self, token: str) -> str | None:
        """Return the user id for ``token``, or None if it is not valid."""
        pass


class StaticTokenVerifier(TokenVerifier):
    """Verifier backed by a fixed list of API tokens (settings.api_tokens)."""

    def __init__(self, tokens: list[str]) -> None:
        self._tokens = [token for token in tokens if token]

    @property
    def enabled(self) -> bool:
        return bool(self._tokens)

    def verify(self, token: str) -> str | None:
        for index, known in enumerate(self._tokens):
            if hmac.compare_digest(known.encode(), token.encode()):
                return f"token-{index + 1}"
        return None


def create_token_verifier(settings: Settings) -> TokenVerifier:
    return StaticTokenVerifier(settings.api_tokens)


def authenticate(verifier: TokenVerifier, authorization: str | None) -> str | None:
    """Resolve the caller from an ``Authorization`` header value.

    Returns:
        User id, or None when authentication is disabled

    Raises:
        UnauthenticatedError: No bearer token supplied
        InvalidTokenError: Token rejected by the verifier
    """
    if not verifier.enabled:
        return None

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise UnauthenticatedError()

    user_id = verifier.verify(token.strip())
    if user_id is None:
        raise InvalidTokenError()
    return user_id
