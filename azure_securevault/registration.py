"""
Register Key Vault instances with a ServiceCollection.

    services = ServiceCollection()
    add_key_vault_singleton_named(services, "tenant-a", MsiConfig("kv-tenant-a"))
    add_key_vault_singleton_named(services, "tenant-b", MsiConfig("kv-tenant-b"))

    factory = services.resolve(NamedInstanceFactory[ISecureVault])
    vault = factory.get("tenant-b")
"""
import logging
from typing import Union

from .config import MsiConfig, VaultCredential
from .container import NamedInstanceFactory, ServiceCollection
from .errors import StateError
from .hydration import get_configured_key_vault
from .vault import ISecureVault, KeyVault

logger = logging.getLogger(__name__)

VaultSource = Union[VaultCredential, str]


def add_key_vault_from_configuration(services: ServiceCollection, config) -> ServiceCollection:
    """
    Register the vault that loaded secrets into config.

    Args:
        services: Service collection to register with.
        config: The ConfigurationBuilder passed to add_key_vault_secrets, or a
            Configuration built from it.

    Raises:
        StateError: If no secrets were loaded from Key Vault for this configuration.
    """
    vault = get_configured_key_vault(config)
    if vault is None:
        raise StateError(
            "Key Vault instance has not been initialised, ensure add_key_vault_secrets "
            "was called on the configuration builder",
            operation="add_key_vault_from_configuration",
        )

    services.register_instance(ISecureVault, vault)
    return services


def add_key_vault_singleton(services: ServiceCollection, config: VaultSource) -> ServiceCollection:
    """Create a vault from an MsiConfig, a ServicePrincipleConfig or an instance name and register it."""
    services.register_instance(ISecureVault, _create_vault(config))
    _add_factory_if_not_added(services)
    return services


def add_key_vault_singleton_named(services: ServiceCollection, key: str, config: VaultSource) -> ServiceCollection:
    """Like add_key_vault_singleton, registering the vault under name key."""
    vault = _create_vault(config)
    if key:
        vault.name = key

    services.register_instance(ISecureVault, vault)
    _add_factory_if_not_added(services)
    return services


def _create_vault(config: VaultSource) -> KeyVault:
    if isinstance(config, str):
        config = MsiConfig(key_vault_instance_name=config)
    vault = KeyVault(config)
    logger.info(f"Registering Key Vault '{vault.name}' ({vault.uri})")
    return vault


def _add_factory_if_not_added(services: ServiceCollection):
    factory_type = NamedInstanceFactory[ISecureVault]
    if not services.is_registered(factory_type):
        services.register_factory(factory_type, lambda s: NamedInstanceFactory(s, ISecureVault))
