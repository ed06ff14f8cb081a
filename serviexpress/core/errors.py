# serviexpress/core/errors.py


class DomainError(Exception):
    """A business rule was violated. The message is shown to the user."""


class NotFoundError(DomainError):
    pass


class ConflictError(DomainError):
    """Raised when the database refuses a write (unique or foreign key)."""


class PermissionDeniedError(DomainError):
    pass


class SignatureError(DomainError):
    """Webhook checksum missing or not matching."""
