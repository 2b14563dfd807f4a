"""
auth/tokens.py -- Purpose-scoped JWT signing and verification.

Security design decisions:
  JWT: python-jose with HS256. Every token carries iat, an optional exp, and a
       purpose claim. verify() checks the signature first, then expiry, then
       (when the caller names one) the purpose. A password-reset token can
       therefore never pass as a session, and a verification token can never
       reset a password, even though both carry the same {email} claim.

  Config: TokenConfig is built by the caller and injected. This module never
       reads settings or environment variables itself.

  Clock: the optional clock only stamps issuance (iat/exp). Expiry is judged
       by python-jose against the real current time at verification.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import TokenExpiredError, TokenInvalidError

logger = logging.getLogger("authgate.auth.tokens")

# Claims this module adds on top of the caller's claim map. verify() strips
# them again so callers get back exactly what they signed.
_REGISTERED_CLAIMS = ("iat", "exp", "purpose")


class TokenPurpose(str, Enum):
    SESSION = "session"
    PASSWORD_RESET = "password_reset"
    EMAIL_VERIFICATION = "email_verification"


@dataclass(frozen=True)
class TokenConfig:
    """Signing secret and expiry windows, in seconds."""

    secret_key: str
    algorithm: str = "HS256"
    session_expire_seconds: int = 3600
    reset_expire_seconds: int = 900
    verification_expire_seconds: int = 86400

    @classmethod
    def from_settings(cls, settings) -> "TokenConfig":
        """Build a TokenConfig from a core.config.Settings-shaped object."""
        return cls(
            secret_key=settings.secret_key,
            session_expire_seconds=settings.token_expire_seconds,
            reset_expire_seconds=settings.reset_token_expire_seconds,
            verification_expire_seconds=settings.verification_token_expire_seconds,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Signs and verifies short-lived bearer tokens.

    Usage:
        tokens = TokenService(TokenConfig(secret_key="..." * 8))
        t = tokens.sign({"email": "a@x.com"}, expires_in=900, purpose=TokenPurpose.PASSWORD_RESET)
        tokens.verify(t, purpose=TokenPurpose.PASSWORD_RESET)  # {"email": "a@x.com"}
    """

    def __init__(self, config: TokenConfig, clock: Callable[[], datetime] | None = None) -> None:
        if not config.secret_key:
            raise ValueError("Token secret key cannot be empty")
        self.config = config
        self._clock = clock or _utcnow

    def sign(
        self,
        claims: dict[str, Any],
        expires_in: int | None = None,
        purpose: TokenPurpose | None = None,
    ) -> str:
        """Encode claims plus iat (and exp when expires_in is given) as a signed JWT."""
        now = self._clock()
        payload = dict(claims)
        payload["iat"] = now
        if expires_in is not None:
            payload["exp"] = now + timedelta(seconds=expires_in)
        if purpose is not None:
            payload["purpose"] = purpose.value
        return jwt.encode(payload, self.config.secret_key, algorithm=self.config.algorithm)

    def verify(self, token: str, purpose: TokenPurpose | None = None) -> dict[str, Any]:
        """Verify a JWT and return the caller's original claims.

        Raises:
            TokenExpiredError: signature is good but exp has passed.
            TokenInvalidError: bad signature, malformed token, or wrong purpose.
        """
        try:
            payload = jwt.decode(token, self.config.secret_key, algorithms=[self.config.algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpiredError() from exc
        except JWTError as exc:
            raise TokenInvalidError() from exc

        if purpose is not None and payload.get("purpose") != purpose.value:
            logger.warning("Token presented for %s but issued for %r", purpose.value, payload.get("purpose"))
            raise TokenInvalidError("Token purpose mismatch")

        return {k: v for k, v in payload.items() if k not in _REGISTERED_CLAIMS}
