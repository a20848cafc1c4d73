"""Private Key Store — RSA private keys looked up by public key ID.

Security Note (Threat Model):
    Imported private keys live in process memory for as long as they are
    loaded. Credentials are only held while a reload runs. PKCS #11 token
    references are accepted in configuration but cannot be used for
    decryption; token access is out of scope.
"""

from .config import KeySource, KeyStoreConfig, load_key_sources
from .crypto import KeyId, PrivateKeyHandle, compute_key_id, import_key
from .reload import ReloadError, ReloadReport
from .store import PrivateKeyStore

__all__ = [
    "KeySource",
    "KeyStoreConfig",
    "load_key_sources",
    "KeyId",
    "PrivateKeyHandle",
    "compute_key_id",
    "import_key",
    "ReloadError",
    "ReloadReport",
    "PrivateKeyStore",
]
