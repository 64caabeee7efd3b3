"""Tests for bearer token checking."""

from __future__ import annotations

import pytest

from userdir.security import TokenAuth


@pytest.mark.parametrize("tokens", [[], ["", "   "]])
def test_token_auth_needs_a_usable_token(tokens) -> None:
    with pytest.raises(ValueError):
        TokenAuth(tokens)


def test_token_auth_accepts_only_configured_tokens() -> None:
    auth = TokenAuth([" first-token ", "second-token"])

    assert auth.accepts("first-token")
    assert auth.accepts("second-token")
    assert not auth.accepts("first-token-longer")
    assert not auth.accepts("first")
    assert not auth.accepts("")
