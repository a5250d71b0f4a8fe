"""Unit tests for bearer-token authentication."""

import pytest

from magic_invoice.api.auth import StaticTokenVerifier, authenticate, create_token_verifier
from magic_invoice.parsing.errors import InvalidTokenError, UnauthenticatedError
from magic_invoice.shared.config import Settings


@pytest.fixture
def verifier() -> StaticTokenVerifier:
    return StaticTokenVerifier(["alpha", "beta"])


def test_disabled_without_tokens() -> None:
    verifier = StaticTokenVerifier([])

    assert verifier.enabled is False
    assert authenticate(verifier, None) is None


def test_blank_tokens_are_ignored() -> None:
    assert StaticTokenVerifier(["", ""]).enabled is False


def test_valid_token(verifier: StaticTokenVerifier) -> None:
    assert authenticate(verifier, "Bearer beta") == "token-2"
    assert authenticate(verifier, "bearer alpha") == "token-1"


@pytest.mark.parametrize("header", [None, "", "Bearer", "Bearer   ", "Basic alpha", "alpha"])
def test_missing_token(verifier: StaticTokenVerifier, header: str | None) -> None:
    with pytest.raises(UnauthenticatedError) as exc_info:
        authenticate(verifier, header)

    assert exc_info.value.status_code == 401


def test_unknown_token(verifier: StaticTokenVerifier) -> None:
    with pytest.raises(InvalidTokenError):
        authenticate(verifier, "Bearer gamma")


def test_create_token_verifier_from_settings() -> None:
    verifier = create_token_verifier(Settings(_env_file=None, api_tokens=["secret"]))

    assert verifier.enabled is True
    assert verifier.verify("secret") == "token-1"
