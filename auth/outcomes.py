"""
auth/outcomes.py -- Closed result type returned by every AuthService operation.

An operation returns either Success(payload) or Failure(reason). Callers
branch on .ok (or isinstance) and never parse messages. Translation of a
FailureReason into an HTTP status lives in api/routes/v1/auth.py, not here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class FailureReason(str, Enum):
    MISSING_FIELD = "missing_field"
    AMBIGUOUS_IDENTIFIER = "ambiguous_identifier"
    USERNAME_TAKEN = "username_taken"
    EMAIL_TAKEN = "email_taken"
    ACCOUNT_NOT_FOUND = "account_not_found"
    ALREADY_VERIFIED = "already_verified"
    # Unknown account and wrong password are deliberately the same reason.
    INVALID_CREDENTIALS = "invalid_credentials"
    # Forged, expired and wrong-purpose tokens are deliberately the same reason.
    TOKEN_REJECTED = "token_rejected"
    DELIVERY_FAILED = "delivery_failed"


@dataclass(frozen=True)
class Success:
    payload: Any = None

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class Failure:
    reason: FailureReason

    @property
    def ok(self) -> bool:
        return False


Outcome = Union[Success, Failure]
