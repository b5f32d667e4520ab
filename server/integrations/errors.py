"""
Typed failures raised by integrations.

Every error carries a short message that is safe to show to the end user and
the HTTP status the API surface maps it to. Raw remote fault strings never
end up in ``message``; they belong in logs and captured context.
"""


class IntegrationError(Exception):
    status_code = 500
    default_message = "Integration request failed"

    def __init__(self, message: str | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class DuplicateIntegration(Exception):
    """Raised by the registry when an integration id is registered twice."""

    def __init__(self, integration_id: str):
        self.integration_id = integration_id
        super().__init__(f"Integration already registered: {integration_id}")


class UnknownIntegration(IntegrationError):
    status_code = 404
    default_message = "Unknown integration"


# --- Validation ---


class InvalidRequest(IntegrationError):
    status_code = 400
    default_message = "Invalid request"


class InvalidIdentifier(IntegrationError):
    status_code = 400
    default_message = "Invalid identifier"


class IdentifierDerivationFailed(IntegrationError):
    status_code = 400
    default_message = (
        "Could not generate username from email. Please provide a custom username."
    )


class IdentifierChangeRejected(IntegrationError):
    status_code = 400
    default_message = (
        "Your handle cannot be changed. Delete your account and create a new one "
        "to change your handle."
    )


class NoOp(IntegrationError):
    status_code = 400
    default_message = "No valid updates provided"


# --- Lookup / configuration ---


class IntegrationDisabled(IntegrationError):
    status_code = 403
    default_message = "Integration is disabled"


class AccountNotFound(IntegrationError):
    status_code = 404
    default_message = "Integration account not found"


class UserNotFound(IntegrationError):
    status_code = 404
    default_message = "User not found"


# --- Conflict ---


class AlreadyHasAccount(IntegrationError):
    status_code = 409
    default_message = "You already have an account for this integration"


class IdentifierTaken(IntegrationError):
    status_code = 409
    default_message = "Username already taken"


# --- Remote service ---


class RemoteRegistrationFailed(IntegrationError):
    """
    The remote service refused or failed the registration.

    ``reason`` is one of ``invalid_params``, ``rate_limited`` or ``other``.
    """

    default_message = "Account registration failed on the chat server"

    REASON_STATUS = {"invalid_params": 400, "rate_limited": 429, "other": 500}

    def __init__(self, message: str | None = None, reason: str = "other"):
        self.reason = reason
        super().__init__(message, status_code=self.REASON_STATUS.get(reason, 500))


class RemoteCleanupFailed(IntegrationError):
    default_message = (
        "Could not remove the account from the chat server. Please try again later."
    )


# --- Local storage / consistency ---


class StorageError(IntegrationError):
    """A local write failed before any remote side effect happened."""

    default_message = "Failed to save the account record. Please try again."


class LocalPersistFailed(IntegrationError):
    """
    The remote side effect succeeded but the local record could not be written.

    The two systems now disagree and an operator has to reconcile them.
    """

    default_message = (
        "Your account was created on the chat server but could not be saved. "
        "Please contact an administrator."
    )
