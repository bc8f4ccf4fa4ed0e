"""Error taxonomy for the login pipeline"""


class AuthError(Exception):
    """Base class for authentication pipeline errors"""


class InvalidCredentials(AuthError):
    """Wrong email, password or verification code"""


class CodeExpired(InvalidCredentials):
    """Verification code matched but its TTL has passed.

    Callers that only catch InvalidCredentials cannot tell the two apart,
    which is what end users see. Logging code may check for the subclass.
    """


class NotificationDeliveryFailed(AuthError):
    """The verification code could not be delivered after all retries.

    When raised from a login step that otherwise passed, ``claims`` holds
    the session claims for that step.
    """

    def __init__(self, message, attempts=0, claims=None):
        super().__init__(message)
        self.attempts = attempts
        self.claims = claims


class MFANotConfigured(AuthError):
    """TOTP verification requested before the user provisioned a secret"""


class IntegrityFailure(AuthError):
    """Envelope failed authentication (tampered data or wrong key)"""
