"""
Capture Secrets exceptions.

Import errors (``KeyIOError``, ``KeyParseError``, ``FingerprintError``) carry the
location of the failing key source so a reload can turn them into report lines.
"""
from typing import Optional


class SecretsError(Exception):
    """Base class for every error raised by capture_secrets."""


class SecretsContextError(SecretsError):
    """The process-wide secrets context is missing or already initialized."""


class KeyImportError(SecretsError):
    """A key source could not be turned into a private key handle."""

    def __init__(self, location: str, message: str):
        self.location = location
        self.message = message
        super().__init__(f"{location}: {message}")


class KeyIOError(KeyImportError):
    """The key file cannot be opened or read."""


class KeyParseError(KeyImportError):
    """The key container cannot be decoded with the given credential."""


class FingerprintError(KeyImportError):
    """Key ID computation produced a digest of unexpected size."""


class KeyNotFoundError(SecretsError, LookupError):
    """No private key is loaded for the requested key ID."""

    def __init__(self, key_id: Optional[object] = None):
        self.key_id = key_id
        super().__init__(f"No private key loaded for key ID {key_id}")


class DecryptError(SecretsError):
    """The private key rejected the ciphertext."""


class KeyStoreClosedError(SecretsError):
    """The private key store was torn down."""


class InvalidKeyIdError(SecretsError, ValueError):
    """A key ID is not a 20-byte digest or valid hex."""
