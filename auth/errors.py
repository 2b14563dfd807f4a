"""Authentication exceptions.

Domain failures (wrong password, unknown account, ...) never travel as
exceptions -- AuthService returns them as Failure outcomes. The classes here
cover the collaborator boundaries:

  TokenError      -- raised by TokenService.verify(); AuthService turns any of
                     them into FailureReason.TOKEN_REJECTED.
  DeliveryError   -- raised by a NotificationDispatcher; AuthService turns it
                     into FailureReason.DELIVERY_FAILED.
  InfrastructureError -- raised by the credential store. Propagates out of the
                     core untouched and becomes a generic 500 at the HTTP layer.
"""


class AuthError(Exception):
    """Base exception for all authentication errors."""

    def __init__(self, message: str = "Authentication error"):
        self.message = message
        super().__init__(self.message)


class TokenError(AuthError):
    """Base class for token verification failures."""

    def __init__(self, message: str = "Token rejected"):
        super().__init__(message)


class TokenInvalidError(TokenError):
    """Raised when a token's signature, format, or purpose does not check out."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class TokenExpiredError(TokenError):
    """Raised when a token is past its exp claim."""

    def __init__(self, message: str = "Token has expired"):
        super().__init__(message)


class DeliveryError(AuthError):
    """Raised when a notification could not be handed to the mail transport."""

    def __init__(self, message: str = "Message could not be delivered"):
        super().__init__(message)


class InfrastructureError(AuthError):
    """Base class for collaborator failures that are not domain errors."""

    def __init__(self, message: str = "Infrastructure failure"):
        super().__init__(message)


class CredentialStoreError(InfrastructureError):
    """Raised when the account store cannot complete an operation."""

    def __init__(self, message: str = "Credential store unavailable"):
        super().__init__(message)


class DuplicateAccountError(CredentialStoreError):
    """Raised when a write would break the username or email uniqueness rule.

    field names the clashing column ("username" or "email") when the store can
    tell, None otherwise.
    """

    def __init__(self, message: str = "Account already exists", field: str | None = None):
        self.field = field
        super().__init__(message)
