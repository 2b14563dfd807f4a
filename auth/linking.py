"""
auth/linking.py -- Map a provider-verified identity onto a local account.

IdentityLinker consumes the final OAuthIdentity of a third-party login (the
redirect/consent dance itself lives in api/ and authlib) and returns a session
token from AuthService.issue_session(), so an OAuth login yields exactly the
same claim shape as a password login.

Decisions:
  - No account for the email: create one with no local password and
    verified=True. The provider has already confirmed the mailbox.
  - Existing account: reuse it as-is. Its verified flag is left alone; only
    the accept-verification flow flips it.
  - Existing account without a display name: take the provider's.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging

from auth.errors import DuplicateAccountError
from auth.models import Account, OAuthIdentity
from auth.outcomes import Failure, FailureReason, Outcome, Success
from auth.service import AuthService
from auth.store import CredentialStore

logger = logging.getLogger("authgate.auth.linking")


class IdentityLinker:
    def __init__(self, service: AuthService, store: CredentialStore) -> None:
        self.service = service
        self.store = store

    def link(self, identity: OAuthIdentity) -> Outcome:
        """Resolve or create the account for identity and issue a session token."""
        if not identity.email:
            return Failure(FailureReason.MISSING_FIELD)

        account = self.store.find_by_email(identity.email)
        if account is None:
            account = self._create(identity)
        elif not account.display_name and identity.display_name:
            account.display_name = identity.display_name
            self.store.save(account)

        logger.info("OAuth login via %s for account %s", identity.provider or "unknown", account.id)
        return Success(self.service.issue_session(account))

    def _create(self, identity: OAuthIdentity) -> Account:
        try:
            account = self.store.create(
                None,
                None,  # no local password
                email=identity.email,
                verified=True,
                display_name=identity.display_name,
            )
        except DuplicateAccountError:
            # A concurrent callback for the same email created it first.
            account = self.store.find_by_email(identity.email)
            if account is None:
                raise
            return account
        logger.info("Account created from %s identity: %s", identity.provider or "OAuth", identity.email)
        return account
