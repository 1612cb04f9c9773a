"""
Azure Key Vault secure vault adapter.

Provides get/set access to Key Vault secrets, loading of secrets into layered
application configuration, and registration of vault instances for
dependency injection.
"""
import logging

from .config import MsiConfig, ServicePrincipleConfig, ValidationResult, VaultCredential
from .container import NamedInstanceFactory, ServiceCollection
from .errors import (
    AuthenticationError,
    ConfigurationError,
    SecretNotFoundError,
    SecureVaultError,
    StateError,
    VaultError,
)
from .hydration import HydrationResult, add_key_vault_secrets, get_configured_key_vault
from .registration import (
    add_key_vault_from_configuration,
    add_key_vault_singleton,
    add_key_vault_singleton_named,
)
from .settings import Configuration, ConfigurationBuilder
from .vault import ISecureVault, KeyVault

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    "AuthenticationError",
    "Configuration",
    "ConfigurationBuilder",
    "ConfigurationError",
    "HydrationResult",
    "ISecureVault",
    "KeyVault",
    "MsiConfig",
    "NamedInstanceFactory",
    "SecretNotFoundError",
    "SecureVaultError",
    "ServiceCollection",
    "ServicePrincipleConfig",
    "StateError",
    "ValidationResult",
    "VaultCredential",
    "VaultError",
    "add_key_vault_from_configuration",
    "add_key_vault_secrets",
    "add_key_vault_singleton",
    "add_key_vault_singleton_named",
    "get_configured_key_vault",
]
