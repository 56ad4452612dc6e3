"""
Simple exception classes for the application.
"""

from fastapi import HTTPException, status


class ValidationError(HTTPException):
    """Raised when input validation fails."""

    def __init__(self, message: str):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=message
        )


class NotFoundError(HTTPException):
    """Raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{resource_type} {resource_id} not found"
        )


class ExternalServiceError(HTTPException):
    """Raised when external service calls fail."""

    def __init__(self, service_name: str, message: str):
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"{service_name} service error: {message}"
        )


class ConfigurationError(Exception):
    """Raised at startup when declarative configuration is missing or malformed."""


# Specific domain exceptions
class SyncJobNotFoundError(NotFoundError):
    """Raised when a sync job is not found."""

    def __init__(self, job_id: str):
        super().__init__("Sync job", job_id)


class TransactionNotFoundError(NotFoundError):
    """Raised when a transaction is not found."""

    def __init__(self, transaction_id: str):
        super().__init__("Transaction", transaction_id)


class RawEmailNotFoundError(NotFoundError):
    """Raised when a stored email is not found."""

    def __init__(self, email_id: str):
        super().__init__("Email", email_id)


class MailboxProviderError(ExternalServiceError):
    """Raised when mailbox provider calls fail."""

    def __init__(self, message: str):
        super().__init__("Mailbox provider", message)


class MailboxAuthError(MailboxProviderError):
    """Raised when no usable mailbox credentials exist for a user."""

    def __init__(self, user_id: str):
        super().__init__(f"no valid credentials for user {user_id}")
