"""
Azure Key Vault implementation of the secure vault interface.

The SecretClient is created lazily on first use and rebuilt once the token
backing it has expired. Managed identity clients are rebuilt daily, service
principal clients when the token issued by the authority expires.
"""
import logging
import threading
import time
import weakref
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional

from azure.core.exceptions import (
    AzureError,
    ClientAuthenticationError,
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
)
from azure.identity import ClientSecretCredential, ManagedIdentityCredential
from azure.keyvault.secrets import SecretClient

from .config import MsiConfig, ServicePrincipleConfig, VaultCredential
from .errors import AuthenticationError, ConfigurationError, SecretNotFoundError, VaultError

logger = logging.getLogger(__name__)

WINDOWS_LOGIN_AUTHORITY = "https://login.windows.net"
KEY_VAULT_SCOPE = "https://vault.azure.net/.default"
MSI_TOKEN_LIFETIME = timedelta(days=1)
RECOVERY_DELAY_SECONDS = 15


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ISecureVault(ABC):
    """A named store of secret string values."""

    name: str

    @abstractmethod
    def get_secret(self, key: str) -> str:
        """Return the current value of the secret stored under key."""

    @abstractmethod
    def set_secret(self, key: str, value: str) -> None:
        """Create or update the secret stored under key."""


class KeyVault(ISecureVault):
    """Secure vault backed by an Azure Key Vault instance."""

    def __init__(self, config: VaultCredential):
        """
        Create a vault for the given credential configuration.

        Args:
            config: Either an MsiConfig or a ServicePrincipleConfig.

        Raises:
            ConfigurationError: If the configuration is of an unknown type or invalid.
        """
        if not isinstance(config, (MsiConfig, ServicePrincipleConfig)):
            raise ConfigurationError(
                f"Unsupported Key Vault configuration type: {type(config).__name__}"
            )

        # Fail fast so no partially configured vault escapes
        config.throw_if_invalid()

        self.config = config
        self.uri = config.uri
        self.name = config.key_vault_instance_name
        self.token_expiry_time: Optional[datetime] = None

        self._client: Optional[SecretClient] = None
        self._client_lock = threading.Lock()
        self._recovery_locks: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
        self._recovery_locks_guard = threading.Lock()

    def __repr__(self):
        return f"KeyVault(name={self.name!r}, uri={self.uri!r})"

    @property
    def uses_managed_identity(self) -> bool:
        return isinstance(self.config, MsiConfig)

    # BEGIN CLIENT AUTHENTICATION
    def _get_client(self) -> SecretClient:
        """Return the authenticated client, re-authenticating if the token has expired."""
        with self._client_lock:
            if self._client is None or self.token_expiry_time <= _utcnow():
                self._client, self.token_expiry_time = self._authenticate()
            return self._client

    def _authenticate(self):
        if self.uses_managed_identity:
            credential = ManagedIdentityCredential()
            # The identity endpoint hands out fresh tokens, so only rebuild daily
            expiry = _utcnow() + MSI_TOKEN_LIFETIME
        else:
            credential, expiry = self._acquire_service_principle_token()

        logger.info(f"Authenticated Key Vault client for '{self.name}', valid until {expiry.isoformat()}")
        return SecretClient(vault_url=self.uri, credential=credential), expiry

    def _acquire_service_principle_token(self):
        """Run the client credentials exchange and return the credential with its token expiry."""
        authority = f"{WINDOWS_LOGIN_AUTHORITY}/{self.config.tenant_id}"
        failure = f"Could not authenticate to {authority} using supplied AppId: {self.config.app_id}"

        credential = ClientSecretCredential(
            tenant_id=self.config.tenant_id,
            client_id=self.config.app_id,
            client_secret=self.config.app_secret,
            authority=WINDOWS_LOGIN_AUTHORITY,
        )
        try:
            token = credential.get_token(KEY_VAULT_SCOPE)
        except ClientAuthenticationError as e:
            raise AuthenticationError(failure, operation="authenticate") from e

        if token is None:
            raise AuthenticationError(failure, operation="authenticate")

        return credential, datetime.fromtimestamp(token.expires_on, tz=timezone.utc)
    # END CLIENT AUTHENTICATION

    def get_secret(self, key: str) -> str:
        client = self._get_client()
        try:
            secret = client.get_secret(key)
        except AzureError as e:
            raise self._translate_error(e, "get_secret", key) from e
        return secret.value

    def set_secret(self, key: str, value: str) -> None:
        """
        Set a secret value.

        A conflict means the key exists in a soft-deleted state: the deleted
        secret is recovered, and the set is retried exactly once after
        RECOVERY_DELAY_SECONDS.
        """
        client = self._get_client()
        try:
            client.set_secret(key, value)
            return
        except AzureError as e:
            if not _is_conflict(e):
                raise self._translate_error(e, "set_secret", key) from e
            conflict = e

        self._recover_and_retry(key, value, conflict)

    # BEGIN SOFT DELETE RECOVERY
    def _recover_and_retry(self, key: str, value: str, conflict: AzureError):
        with self._recovery_lock(key):
            logger.warning(f"Secret '{key}' conflicts in Key Vault '{self.name}', recovering deleted secret")
            try:
                self._get_client().begin_recover_deleted_secret(key)
            except ResourceNotFoundError:
                # Another caller recovered it while this one waited for the lock
                logger.info(f"Deleted secret '{key}' in Key Vault '{self.name}' was already recovered")
            except AzureError as e:
                raise VaultError(
                    f"Failed to recover deleted secret in Key Vault '{self.name}'",
                    status_code=_status_code(e),
                    original_error=conflict,
                    operation="recover_deleted_secret",
                    key=key,
                ) from e
            else:
                # Give the recovery time to propagate before the single retry
                time.sleep(RECOVERY_DELAY_SECONDS)

            logger.warning(f"Retrying set of secret '{key}' in Key Vault '{self.name}'")
            try:
                self._get_client().set_secret(key, value)
            except AzureError as e:
                raise VaultError(
                    f"Failed to set secret in Key Vault '{self.name}' after recovering deleted secret",
                    status_code=_status_code(e),
                    original_error=conflict,
                    operation="set_secret",
                    key=key,
                ) from e

    def _recovery_lock(self, key: str) -> threading.Lock:
        # Entries disappear once no caller holds or waits on the lock
        with self._recovery_locks_guard:
            lock = self._recovery_locks.get(key)
            if lock is None:
                lock = self._recovery_locks[key] = threading.Lock()
            return lock
    # END SOFT DELETE RECOVERY

    def _translate_error(self, error: AzureError, operation: str, key: str):
        if isinstance(error, ResourceNotFoundError):
            return SecretNotFoundError(
                f"Secret not found in Key Vault '{self.name}'",
                status_code=error.status_code,
                operation=operation,
                key=key,
            )
        if isinstance(error, ClientAuthenticationError):
            return AuthenticationError(
                f"Not authorised to access Key Vault '{self.name}': {error.message}",
                operation=operation,
                key=key,
            )
        if not isinstance(error, HttpResponseError):
            return VaultError(
                f"Request to Key Vault '{self.name}' failed: {error.message}",
                operation=operation,
                key=key,
            )
        return VaultError(
            f"Key Vault '{self.name}' returned an error: {error.message}",
            status_code=error.status_code,
            operation=operation,
            key=key,
        )


def _status_code(error: AzureError) -> Optional[int]:
    return getattr(error, "status_code", None)


def _is_conflict(error: AzureError) -> bool:
    return isinstance(error, ResourceExistsError) or _status_code(error) == 409
