"""
Shared test fixtures.

The Azure SDK classes used by azure_securevault.vault are replaced with
in-memory fakes, so no test ever talks to Azure.
"""

from __future__ import annotations

import time
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from azure.core.credentials import AccessToken
from azure.core.exceptions import ResourceExistsError, ResourceNotFoundError

from azure_securevault import vault as vault_module

# The fixtures patch time.sleep, tests that need a real pause use this
REAL_SLEEP = time.sleep

START_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now=START_TIME):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeKeyVaultService:
    """In-memory stand-in for the Key Vault service and the identity endpoints."""

    def __init__(self, clock: FakeClock):
        self.clock = clock
        self.secrets: dict[str, str] = {}
        self.deleted: dict[str, str] = {}
        self.calls: list[tuple[str, str]] = []
        self.clients: list = []
        self.credentials: list = []
        self.token_requests: list = []
        self.sleeps: list[float] = []
        self.get_errors: dict[str, Exception] = {}
        self.set_errors: list[Exception] = []
        self.recover_errors: list[Exception] = []
        self.auth_delay = 0.0
        self.on_sleep = None
        self.token_error: Exception | None = None
        self.token_lifetime = timedelta(hours=1)
        self.return_no_token = False

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.calls.append(("sleep", str(seconds)))
        if self.on_sleep is not None:
            self.on_sleep()

    def secret_client_class(self):
        service = self

        class FakeSecretClient:
            def __init__(self, vault_url, credential):
                self.vault_url = vault_url
                self.credential = credential
                service.clients.append(self)

            def get_secret(self, name):
                service.calls.append(("get_secret", name))
                if name in service.get_errors:
                    raise service.get_errors[name]
                if name not in service.secrets:
                    raise ResourceNotFoundError(f"A secret with (name/id) {name} was not found in this key vault.")
                return SimpleNamespace(name=name, value=service.secrets[name])

            def set_secret(self, name, value):
                service.calls.append(("set_secret", name))
                if service.set_errors:
                    raise service.set_errors.pop(0)
                if name in service.deleted:
                    raise ResourceExistsError(f"Secret {name} is currently in a deleted but recoverable state.")
                service.secrets[name] = value
                return SimpleNamespace(name=name, value=value)

            def begin_recover_deleted_secret(self, name):
                service.calls.append(("begin_recover_deleted_secret", name))
                if service.recover_errors:
                    raise service.recover_errors.pop(0)
                if name not in service.deleted:
                    raise ResourceNotFoundError(f"Deleted secret {name} not found.")
                service.secrets[name] = service.deleted.pop(name)
                return SimpleNamespace(result=lambda: None)

        return FakeSecretClient

    def managed_identity_class(self):
        service = self

        class FakeManagedIdentityCredential:
            def __init__(self, **kwargs):
                service.credentials.append(("msi", kwargs))
                if service.auth_delay:
                    REAL_SLEEP(service.auth_delay)

        return FakeManagedIdentityCredential

    def client_secret_class(self):
        service = self

        class FakeClientSecretCredential:
            def __init__(self, tenant_id, client_id, client_secret, **kwargs):
                self.tenant_id = tenant_id
                self.client_id = client_id
                self.client_secret = client_secret
                self.authority = kwargs.get("authority")
                service.credentials.append(("service_principle", self))

            def get_token(self, *scopes, **kwargs):
                service.token_requests.append(scopes)
                if service.token_error is not None:
                    raise service.token_error
                if service.return_no_token:
                    return None
                expires_on = service.clock() + service.token_lifetime
                return AccessToken("fake-token", int(expires_on.timestamp()))

        return FakeClientSecretCredential


@pytest.fixture
def clock(monkeypatch):
    fake_clock = FakeClock()
    monkeypatch.setattr(vault_module, "_utcnow", fake_clock)
    return fake_clock


@pytest.fixture
def key_vault_service(monkeypatch, clock):
    """Route every Azure SDK call made by the vault into an in-memory service."""
    service = FakeKeyVaultService(clock)
    monkeypatch.setattr(vault_module, "SecretClient", service.secret_client_class())
    monkeypatch.setattr(vault_module, "ManagedIdentityCredential", service.managed_identity_class())
    monkeypatch.setattr(vault_module, "ClientSecretCredential", service.client_secret_class())
    monkeypatch.setattr(vault_module.time, "sleep", service.sleep)
    return service


@pytest.fixture
def no_network(monkeypatch):
    """Fail the test if any Azure client or credential is created."""

    def forbidden(*args, **kwargs):
        raise AssertionError("network access attempted")

    monkeypatch.setattr(vault_module, "SecretClient", forbidden)
    monkeypatch.setattr(vault_module, "ManagedIdentityCredential", forbidden)
    monkeypatch.setattr(vault_module, "ClientSecretCredential", forbidden)
