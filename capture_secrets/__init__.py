"""Capture Secrets — decryption secrets and private keys for traffic analysis.

Two registries live in one process-wide context:
- the secret-type registry, which hands secrets blocks read from capture
  files to the handler registered for their type;
- the private key store, which decrypts RSA-encrypted session material with
  the private key matching a public key ID.
"""

from .version import __version__
from .context import (
    SecretsContext,
    get_secrets_context,
    secrets_cleanup,
    secrets_dispatch,
    secrets_init,
    secrets_register_type,
    secrets_rsa_decrypt,
)
from .exceptions import (
    DecryptError,
    FingerprintError,
    InvalidKeyIdError,
    KeyImportError,
    KeyIOError,
    KeyNotFoundError,
    KeyParseError,
    KeyStoreClosedError,
    SecretsContextError,
    SecretsError,
)
from .keystore import (
    KeyId,
    KeySource,
    KeyStoreConfig,
    PrivateKeyStore,
    ReloadReport,
    import_key,
    load_key_sources,
)
from .registry import SecretHandler, SecretsType, SecretTypeRegistry

__all__ = [
    "__version__",
    "SecretsContext",
    "get_secrets_context",
    "secrets_cleanup",
    "secrets_dispatch",
    "secrets_init",
    "secrets_register_type",
    "secrets_rsa_decrypt",
    "DecryptError",
    "FingerprintError",
    "InvalidKeyIdError",
    "KeyImportError",
    "KeyIOError",
    "KeyNotFoundError",
    "KeyParseError",
    "KeyStoreClosedError",
    "SecretsContextError",
    "SecretsError",
    "KeyId",
    "KeySource",
    "KeyStoreConfig",
    "PrivateKeyStore",
    "ReloadReport",
    "import_key",
    "load_key_sources",
    "SecretHandler",
    "SecretsType",
    "SecretTypeRegistry",
]
