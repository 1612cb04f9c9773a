"""
Exception types raised by the Key Vault adapter.

Every error carries the operation and secret key it relates to (when known),
and wraps the underlying Azure SDK error through normal exception chaining.
"""
from typing import Iterable, Optional


class SecureVaultError(Exception):
    """Base class for all secure vault errors."""

    def __init__(self, message: str, operation: Optional[str] = None, key: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.key = key

    def __str__(self):
        details = []
        if self.operation:
            details.append(f"operation={self.operation}")
        if self.key:
            details.append(f"key={self.key}")
        if not details:
            return self.message
        return f"{self.message} ({', '.join(details)})"


class ConfigurationError(SecureVaultError):
    """Invalid credential configuration, or secrets could not be loaded into configuration."""

    def __init__(self, message: str, errors: Optional[Iterable[str]] = None, **context):
        super().__init__(message, **context)
        self.errors = list(errors or [])


class AuthenticationError(SecureVaultError):
    """Token acquisition against the identity authority failed."""


class VaultError(SecureVaultError):
    """Key Vault returned a non-success response."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        original_error: Optional[BaseException] = None,
        **context,
    ):
        super().__init__(message, **context)
        self.status_code = status_code
        self.original_error = original_error


class SecretNotFoundError(VaultError):
    """The requested secret does not exist in the vault."""


class StateError(SecureVaultError):
    """An operation was attempted before the vault was initialised."""
