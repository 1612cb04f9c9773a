"""
Credential configuration for connecting to an Azure Key Vault instance.

Two variants are supported: managed identity (MsiConfig) and service principal
(ServicePrincipleConfig). A vault is always built from exactly one of them.
"""
from dataclasses import dataclass
from typing import Tuple, Union

from .errors import ConfigurationError

VAULT_URI_TEMPLATE = "https://{}.vault.azure.net"


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validating a credential configuration."""

    errors: Tuple[str, ...] = ()

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def throw_if_invalid(self):
        if not self.is_valid:
            raise ConfigurationError(
                f"Invalid Key Vault configuration: {'; '.join(self.errors)}",
                errors=self.errors,
            )


@dataclass(frozen=True)
class MsiConfig:
    """Managed identity (MSI) configuration for a Key Vault connection."""

    key_vault_instance_name: str = ""

    @property
    def uri(self) -> str:
        return VAULT_URI_TEMPLATE.format(self.key_vault_instance_name)

    def validate(self) -> ValidationResult:
        if not self.key_vault_instance_name:
            return ValidationResult(("instance name must be set",))
        return ValidationResult()

    def throw_if_invalid(self):
        self.validate().throw_if_invalid()

    def __str__(self):
        return f"KeyVaultInstanceName: {self.key_vault_instance_name}, Uri: {self.uri}"


@dataclass(frozen=True)
class ServicePrincipleConfig:
    """
    Service principal configuration for a Key Vault connection.

    The string rendering includes the app secret, so never log it.
    """

    key_vault_instance_name: str = ""
    app_id: str = ""
    app_secret: str = ""
    tenant_id: str = ""

    @property
    def uri(self) -> str:
        return VAULT_URI_TEMPLATE.format(self.key_vault_instance_name)

    def validate(self) -> ValidationResult:
        """Check every required field and report all missing ones at once."""
        errors = []
        if not self.key_vault_instance_name:
            errors.append("instance name must be set")
        if not self.app_id:
            errors.append("app id must be set")
        if not self.app_secret:
            errors.append("app secret must be set")
        if not self.tenant_id:
            errors.append("tenant id must be set")
        return ValidationResult(tuple(errors))

    def throw_if_invalid(self):
        self.validate().throw_if_invalid()

    def __str__(self):
        return (
            f"AppId: {self.app_id}, AppSecret: {self.app_secret}, TenantId: {self.tenant_id}, "
            f"KeyVaultInstanceName: {self.key_vault_instance_name}, Uri: {self.uri}"
        )


VaultCredential = Union[MsiConfig, ServicePrincipleConfig]
