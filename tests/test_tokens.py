"""Unit tests for auth/tokens.py -- purpose-scoped JWT signing and verification.

Covers:
- verify(sign(claims)) returns the claims unchanged
- expiry: rejected with TokenExpiredError once exp has passed
- forged / tampered / foreign-secret tokens raise TokenInvalidError
- purpose mismatch raises TokenInvalidError (reset token is not a session)
- TokenConfig.from_settings maps the settings fields
"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from jose import jwt

from auth.errors import TokenError, TokenExpiredError, TokenInvalidError
from auth.tokens import TokenConfig, TokenPurpose, TokenService


def _issued_at(offset: timedelta):
    return lambda: datetime.now(timezone.utc) + offset


class TestRoundTrip:
    def test_claims_come_back_unchanged(self, tokens: TokenService) -> None:
        claims = {"email": "alice@x.com", "id": 7, "nested": {"a": [1, 2]}}
        assert tokens.verify(tokens.sign(claims, expires_in=60)) == claims

    def test_sign_without_expiry_has_no_exp(self, tokens: TokenService) -> None:
        token = tokens.sign({"email": "alice@x.com"})
        raw = jwt.get_unverified_claims(token)
        assert "exp" not in raw
        assert "iat" in raw
        assert tokens.verify(token) == {"email": "alice@x.com"}

    def test_sign_does_not_mutate_input(self, tokens: TokenService) -> None:
        claims = {"email": "alice@x.com"}
        tokens.sign(claims, expires_in=60, purpose=TokenPurpose.SESSION)
        assert claims == {"email": "alice@x.com"}

    def test_purpose_is_embedded(self, tokens: TokenService) -> None:
        token = tokens.sign({"email": "a@x.com"}, purpose=TokenPurpose.PASSWORD_RESET)
        assert jwt.get_unverified_claims(token)["purpose"] == "password_reset"


class TestExpiry:
    def test_valid_before_expiry(self, token_config: TokenConfig) -> None:
        issued_an_hour_ago = TokenService(token_config, clock=_issued_at(-timedelta(hours=1)))
        token = issued_an_hour_ago.sign({"email": "a@x.com"}, expires_in=7200)
        assert TokenService(token_config).verify(token) == {"email": "a@x.com"}

    def test_expired_after_window(self, token_config: TokenConfig) -> None:
        issued_two_hours_ago = TokenService(token_config, clock=_issued_at(-timedelta(hours=2)))
        token = issued_two_hours_ago.sign({"email": "a@x.com"}, expires_in=3600)
        with pytest.raises(TokenExpiredError):
            TokenService(token_config).verify(token)

    def test_expired_is_still_a_token_error(self, token_config: TokenConfig) -> None:
        old = TokenService(token_config, clock=_issued_at(-timedelta(days=2)))
        token = old.sign({"email": "a@x.com"}, expires_in=60)
        with pytest.raises(TokenError):
            TokenService(token_config).verify(token)


class TestForgery:
    def test_garbage_is_invalid(self, tokens: TokenService) -> None:
        with pytest.raises(TokenInvalidError):
            tokens.verify("not.a.jwt")

    def test_tampered_payload_is_invalid(self, tokens: TokenService) -> None:
        header, _payload, signature = tokens.sign({"email": "a@x.com"}, expires_in=60).split(".")
        forged_payload = jwt.encode({"email": "mallory@x.com"}, "whatever").split(".")[1]
        with pytest.raises(TokenInvalidError):
            tokens.verify(f"{header}.{forged_payload}.{signature}")

    def test_foreign_secret_is_invalid(self, tokens: TokenService) -> None:
        other = TokenService(TokenConfig(secret_key="another-secret-key-that-is-long-enough!!"))
        with pytest.raises(TokenInvalidError):
            tokens.verify(other.sign({"email": "a@x.com"}, expires_in=60))

    def test_expired_and_forged_share_a_base_class(self) -> None:
        assert issubclass(TokenExpiredError, TokenError)
        assert issubclass(TokenInvalidError, TokenError)


class TestPurpose:
    def test_matching_purpose_passes(self, tokens: TokenService) -> None:
        token = tokens.sign({"email": "a@x.com"}, expires_in=60, purpose=TokenPurpose.EMAIL_VERIFICATION)
        assert tokens.verify(token, purpose=TokenPurpose.EMAIL_VERIFICATION) == {"email": "a@x.com"}

    def test_reset_token_is_not_a_session(self, tokens: TokenService) -> None:
        token = tokens.sign({"email": "a@x.com"}, expires_in=60, purpose=TokenPurpose.PASSWORD_RESET)
        with pytest.raises(TokenInvalidError):
            tokens.verify(token, purpose=TokenPurpose.SESSION)

    def test_verification_token_cannot_reset_password(self, tokens: TokenService) -> None:
        token = tokens.sign({"email": "a@x.com"}, expires_in=60, purpose=TokenPurpose.EMAIL_VERIFICATION)
        with pytest.raises(TokenInvalidError):
            tokens.verify(token, purpose=TokenPurpose.PASSWORD_RESET)

    def test_untagged_token_fails_purpose_check(self, tokens: TokenService) -> None:
        token = tokens.sign({"email": "a@x.com"}, expires_in=60)
        with pytest.raises(TokenInvalidError):
            tokens.verify(token, purpose=TokenPurpose.PASSWORD_RESET)


def test_config_from_settings() -> None:
    settings = SimpleNamespace(
        secret_key="k" * 32,
        token_expire_seconds=10,
        reset_token_expire_seconds=20,
        verification_token_expire_seconds=30,
    )
    config = TokenConfig.from_settings(settings)
    assert config.secret_key == "k" * 32
    assert (config.session_expire_seconds, config.reset_expire_seconds, config.verification_expire_seconds) == (
        10,
        20,
        30,
    )


def test_empty_secret_is_refused() -> None:
    with pytest.raises(ValueError):
        TokenService(TokenConfig(secret_key=""))
