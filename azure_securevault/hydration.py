"""
Load Key Vault secrets into application configuration at startup.

Each requested key is read from the vault and the values found are added to
the configuration builder as a new in-memory source, taking precedence over
everything added before it. Keys missing from the vault are skipped unless
strict loading is requested.

Usage:
    builder = ConfigurationBuilder().add_environment_variables()
    result = add_key_vault_secrets(builder, ["DbPassword", "ApiKey"])
    config = builder.build()
"""
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .config import MsiConfig, VaultCredential
from .errors import ConfigurationError, SecretNotFoundError
from .settings import ConfigurationBuilder
from .vault import KeyVault

logger = logging.getLogger(__name__)

KEY_VAULT_INSTANCE_NAME_SETTING = "KeyVaultInstanceName"
KEY_VAULT_PROPERTY = "KeyVault"


@dataclass
class HydrationResult:
    """The vault used to load secrets and which keys were loaded or skipped."""

    vault: KeyVault
    loaded_keys: List[str] = field(default_factory=list)
    skipped_keys: List[str] = field(default_factory=list)


def add_key_vault_secrets(
    builder: ConfigurationBuilder,
    keys: Iterable[str],
    config: Optional[VaultCredential] = None,
    instance_name: Optional[str] = None,
    throw_not_found_errors: bool = False,
) -> HydrationResult:
    """
    Read secrets from Key Vault and add them to the configuration builder.

    Without an explicit config, managed identity is used and the vault
    instance name is read from the "KeyVaultInstanceName" setting of the
    builder. Passing instance_name adds that setting first.

    Args:
        builder: Configuration builder to add the secrets to.
        keys: Names of the secrets to load.
        config: Explicit MsiConfig or ServicePrincipleConfig.
        instance_name: Vault instance name to record before loading.
        throw_not_found_errors: Fail instead of skipping keys missing from the vault.

    Returns:
        HydrationResult with the vault instance and the loaded and skipped keys.

    Raises:
        ConfigurationError: If the vault cannot be determined, a key is missing
            in strict mode, or anything else goes wrong while loading.
    """
    keys = list(keys)

    if config is None:
        if instance_name:
            builder.add_in_memory_collection({KEY_VAULT_INSTANCE_NAME_SETTING: instance_name})

        inferred = builder.build().get(KEY_VAULT_INSTANCE_NAME_SETTING)
        if not inferred:
            raise ConfigurationError(
                f'Expecting setting "{KEY_VAULT_INSTANCE_NAME_SETTING}" to infer instance name',
                operation="add_key_vault_secrets",
            )
        config = MsiConfig(key_vault_instance_name=inferred)

    auth_method = "Managed Identity" if isinstance(config, MsiConfig) else "Service Principle"

    try:
        vault = KeyVault(config)
        result = HydrationResult(vault=vault)
        secrets = []

        # Gather secrets from Key Vault
        for key in keys:
            try:
                secrets.append((key, vault.get_secret(key)))
                result.loaded_keys.append(key)
            except SecretNotFoundError as e:
                if throw_not_found_errors:
                    raise ConfigurationError(
                        f"Secret '{key}' was not found in Key Vault '{vault.name}'",
                        operation="add_key_vault_secrets",
                        key=key,
                    ) from e

                logger.warning(f"Failed to find Key Vault setting: {key}, exception: {e}")
                result.skipped_keys.append(key)

        builder.add_in_memory_collection(secrets)

        # Keep track of the instance so it can be registered later
        builder.properties[KEY_VAULT_PROPERTY] = vault
    except ConfigurationError:
        raise
    except Exception as e:
        raise ConfigurationError(
            f"Problem occurred retrieving secrets from Key Vault using {auth_method}",
            operation="add_key_vault_secrets",
        ) from e

    logger.info(
        f"Loaded {len(result.loaded_keys)} of {len(keys)} secret(s) from Key Vault '{vault.name}'"
    )
    return result


def get_configured_key_vault(source) -> Optional[KeyVault]:
    """Return the vault recorded on a ConfigurationBuilder or Configuration, if any."""
    properties = getattr(source, "properties", None) or {}
    return properties.get(KEY_VAULT_PROPERTY)
