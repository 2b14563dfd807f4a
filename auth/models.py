"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; the store and the service do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass

# Allow-list of Account fields that may appear in a session token. Anything
# not named here (password hash, verified flag, timestamps, and any field
# added later) stays out of the claims.
PUBLIC_CLAIM_FIELDS: tuple[str, ...] = ("id", "username", "email", "display_name")


@dataclass
class Account:
    """Represents one authenticatable identity.

    username and email are both optional but each is unique when present.
    Locally registered accounts always have a username; OAuth-created accounts
    have only an email.

    hashed_password is None for OAuth-only accounts (they have no local
    password and can never pass a password login).

    verified flips False -> True once, when an email-verification token is
    confirmed. OAuth-created accounts start verified because the provider has
    already confirmed the mailbox.
    """

    username: str | None = None
    email: str | None = None
    id: int | None = None
    hashed_password: str | None = None  # None = no local password
    display_name: str | None = None
    verified: bool = False
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class OAuthIdentity:
    """The final, provider-verified result of a third-party login."""

    email: str
    display_name: str | None = None
    provider: str | None = None  # "google", "github"
    subject: str | None = None  # provider's stable user ID


def public_claims(account: Account) -> dict:
    """Project an Account onto the claims carried by a session token."""
    return {name: getattr(account, name) for name in PUBLIC_CLAIM_FIELDS}
