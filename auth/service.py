"""
auth/service.py -- The authentication core.

AuthService orchestrates the credential store, password hasher, token service
and notification dispatcher into four flows:

  register               -> creates an unverified account, issues nothing
  login                  -> session token over public_claims(account)
  forgot_password /
  reset_password         -> emailed password_reset token, then new hash
  request_verification /
  confirm_verification   -> emailed email_verification token, then verified=1

Every public method returns an Outcome. Domain failures are Failure(reason);
nothing is raised for them. Infrastructure failures from the store
(CredentialStoreError) are not caught and propagate to the caller.

Security:
  [C1] login() runs bcrypt even when no account matches, so an unknown
       identifier and a wrong password take the same time and return the same
       INVALID_CREDENTIALS reason.
  Tokens are verified with an explicit purpose. Forged, expired and
       wrong-purpose tokens all map to TOKEN_REJECTED so callers learn nothing
       about which check failed.
  Email login only considers verified accounts; username login does not
       check the flag.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from urllib.parse import urlencode

from auth.errors import DeliveryError, DuplicateAccountError, TokenError
from auth.models import Account, public_claims
from auth.notifications import (
    Message,
    NotificationDispatcher,
    reset_password_message,
    verify_email_message,
)
from auth.outcomes import Failure, FailureReason, Outcome, Success
from auth.passwords import PasswordHasher
from auth.store import CredentialStore
from auth.tokens import TokenPurpose, TokenService

logger = logging.getLogger("authgate.auth")


class AuthService:
    """Registration, login, password reset and email verification.

    Usage:
        service = AuthService(store, PasswordHasher(12), TokenService(config), SmtpDispatcher(settings),
                              base_url="https://app.example.com")
        outcome = service.login("Secret1!", username="alice")
        if outcome.ok:
            token = outcome.payload
    """

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        dispatcher: NotificationDispatcher,
        base_url: str,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.dispatcher = dispatcher
        self.base_url = base_url.rstrip("/")

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, username: str | None, password: str | None, email: str | None = None) -> Outcome:
        if not username or not password:
            return Failure(FailureReason.MISSING_FIELD)

        if self.store.find_by_username(username) is not None:
            return Failure(FailureReason.USERNAME_TAKEN)
        if email and self.store.find_by_email(email) is not None:
            return Failure(FailureReason.EMAIL_TAKEN)

        try:
            self.store.create(username, self.hasher.hash(password), email=email or None)
        except DuplicateAccountError as exc:
            # A concurrent registration won between the lookup and the insert.
            if exc.field == "email":
                return Failure(FailureReason.EMAIL_TAKEN)
            return Failure(FailureReason.USERNAME_TAKEN)

        logger.info("Account registered: %s", username)
        return Success()

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, password: str | None, username: str | None = None, email: str | None = None) -> Outcome:
        if username and email:
            return Failure(FailureReason.AMBIGUOUS_IDENTIFIER)
        if not (username or email) or not password:
            return Failure(FailureReason.MISSING_FIELD)

        account: Account | None
        if username:
            account = self.store.find_by_username(username)
        else:
            account = self.store.find_by_email(email)
            if account is not None and not account.verified:
                # Email login requires a confirmed mailbox.
                account = None

        if account is None or account.hashed_password is None:
            self.hasher.verify_dummy(password)  # [C1]
            logger.info("Login rejected for %s: no such account", username or email)
            return Failure(FailureReason.INVALID_CREDENTIALS)

        if not self.hasher.verify(password, account.hashed_password):
            logger.info("Login rejected for %s: bad password", username or email)
            return Failure(FailureReason.INVALID_CREDENTIALS)

        logger.info("Login succeeded for account %s", account.id)
        return Success(self.issue_session(account))

    def issue_session(self, account: Account) -> str:
        """Sign a session token over the account's public claims.

        The one signing path for sessions: password login and OAuth linking
        both go through here, so the claim shape never depends on login origin.
        """
        return self.tokens.sign(
            public_claims(account),
            expires_in=self.tokens.config.session_expire_seconds,
            purpose=TokenPurpose.SESSION,
        )

    # ------------------------------------------------------------------
    # Password reset
    # ------------------------------------------------------------------

    def forgot_password(self, email: str | None) -> Outcome:
        if not email:
            return Failure(FailureReason.MISSING_FIELD)

        # Unverified accounts may reset too.
        if self.store.find_by_email(email) is None:
            return Failure(FailureReason.ACCOUNT_NOT_FOUND)

        expires_in = self.tokens.config.reset_expire_seconds
        token = self.tokens.sign({"email": email}, expires_in=expires_in, purpose=TokenPurpose.PASSWORD_RESET)
        link = self._link("/reset-password", token)
        return self._dispatch(reset_password_message(email, link, expires_in))

    def reset_password(self, token: str | None, new_password: str | None) -> Outcome:
        if not new_password:
            return Failure(FailureReason.MISSING_FIELD)

        email = self._email_from_token(token, TokenPurpose.PASSWORD_RESET)
        if email is None:
            return Failure(FailureReason.TOKEN_REJECTED)

        account = self.store.find_by_email(email)
        if account is None:
            return Failure(FailureReason.ACCOUNT_NOT_FOUND)

        self.store.update_password(account, self.hasher.hash(new_password))
        logger.info("Password reset for account %s", account.id)
        return Success()

    # ------------------------------------------------------------------
    # Email verification
    # ------------------------------------------------------------------

    def request_verification(self, email: str | None) -> Outcome:
        if not email:
            return Failure(FailureReason.MISSING_FIELD)

        account = self.store.find_by_email(email)
        if account is None:
            return Failure(FailureReason.ACCOUNT_NOT_FOUND)
        if account.verified:
            return Failure(FailureReason.ALREADY_VERIFIED)

        expires_in = self.tokens.config.verification_expire_seconds
        token = self.tokens.sign({"email": email}, expires_in=expires_in, purpose=TokenPurpose.EMAIL_VERIFICATION)
        link = self._link("/verify", token)
        return self._dispatch(verify_email_message(email, link, expires_in))

    def confirm_verification(self, token: str | None) -> Outcome:
        email = self._email_from_token(token, TokenPurpose.EMAIL_VERIFICATION)
        if email is None:
            return Failure(FailureReason.TOKEN_REJECTED)

        account = self.store.find_by_email(email)
        if account is None:
            return Failure(FailureReason.ACCOUNT_NOT_FOUND)

        # No ALREADY_VERIFIED check: confirming twice is harmless.
        self.store.mark_verified(account)
        logger.info("Email verified for account %s", account.id)
        return Success()

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _email_from_token(self, token: str | None, purpose: TokenPurpose) -> str | None:
        # An absent token fails verification like any other.
        if not token:
            return None
        try:
            claims = self.tokens.verify(token, purpose=purpose)
        except TokenError as exc:
            logger.info("%s token rejected: %s", purpose.value, exc.message)
            return None
        email = claims.get("email")
        return email if isinstance(email, str) and email else None

    def _link(self, path: str, token: str) -> str:
        return f"{self.base_url}{path}?{urlencode({'token': token})}"

    def _dispatch(self, message: Message) -> Outcome:
        try:
            self.dispatcher.send(message)
        except DeliveryError as exc:
            logger.warning("Could not deliver %r to %s: %s", message.subject, message.to, exc.message)
            return Failure(FailureReason.DELIVERY_FAILED)
        return Success()
