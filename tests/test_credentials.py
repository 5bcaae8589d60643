from __future__ import annotations

from pathlib import Path

import pytest

from monica_client.security.credentials import (
    DEFAULT_NAMESPACE,
    Credentials,
    InMemoryCredentialStore,
    VaultCredentialStore,
)
from monica_client.security.vault import SecretsVault


@pytest.fixture
def vault(tmp_path: Path) -> SecretsVault:
    return SecretsVault(tmp_path / "vault.json")


@pytest.fixture(params=["vault", "memory"])
def store(request, vault):
    if request.param == "vault":
        return VaultCredentialStore(vault)
    return InMemoryCredentialStore()


def test_load_empty(store):
    assert store.load() is None


def test_save_and_load_normalizes_url(store):
    store.save(" https://monica.example.com/ ", "tok")
    assert store.load() == Credentials(api_url="https://monica.example.com", api_token="tok")


def test_save_replaces_both_values(store):
    store.save("https://a.example.com", "tok-a")
    store.save("https://b.example.com", "tok-b")
    assert store.load() == Credentials(api_url="https://b.example.com", api_token="tok-b")


def test_clear_is_idempotent(store):
    store.save("https://a.example.com", "tok")
    store.clear()
    store.clear()
    assert store.load() is None


def test_empty_url_rejected(store):
    with pytest.raises(ValueError):
        store.save("  /", "tok")


def test_vault_keys_use_namespace(vault):
    VaultCredentialStore(vault).save("https://a.example.com", "tok")
    assert sorted(vault.list_names()) == [f"{DEFAULT_NAMESPACE}.apiToken", f"{DEFAULT_NAMESPACE}.apiURL"]


def test_partial_entry_loads_as_absent(vault):
    store = VaultCredentialStore(vault)
    store.save("https://a.example.com", "tok")
    vault.delete(f"{DEFAULT_NAMESPACE}.apiToken")
    assert store.load() is None


def test_undecryptable_entry_loads_as_absent(tmp_path: Path):
    path = tmp_path / "vault.json"
    VaultCredentialStore(SecretsVault(path, encryption_key=b"a" * 32)).save("https://a.example.com", "tok")

    other = VaultCredentialStore(SecretsVault(path, encryption_key=b"b" * 32))
    assert other.load() is None


def test_persists_across_vault_instances(tmp_path: Path):
    path = tmp_path / "vault.json"
    VaultCredentialStore(SecretsVault(path)).save("https://a.example.com", "tok")
    assert VaultCredentialStore(SecretsVault(path)).load() == Credentials("https://a.example.com", "tok")


def test_repr_hides_token():
    creds = Credentials(api_url="https://a.example.com", api_token="very-secret")
    assert "very-secret" not in repr(creds)
