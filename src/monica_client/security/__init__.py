"""
Security helpers for the Monica client.

- Encrypted secrets vault (Fernet)
- Credential store for the API endpoint + token
- Token redaction for logs
"""

from monica_client.security.credentials import (
    DEFAULT_NAMESPACE,
    Credentials,
    CredentialStore,
    InMemoryCredentialStore,
    VaultCredentialStore,
)
from monica_client.security.redaction import (
    SecretsRedactionFilter,
    install_secrets_redaction_filter,
    mask_path,
    mask_secrets,
    sanitize,
)
from monica_client.security.vault import (
    DecryptionError,
    EncryptionError,
    SecretsVault,
    VaultError,
)

__all__ = [
    "DEFAULT_NAMESPACE",
    "Credentials",
    "CredentialStore",
    "InMemoryCredentialStore",
    "VaultCredentialStore",
    "SecretsRedactionFilter",
    "install_secrets_redaction_filter",
    "mask_path",
    "mask_secrets",
    "sanitize",
    "DecryptionError",
    "EncryptionError",
    "SecretsVault",
    "VaultError",
]
