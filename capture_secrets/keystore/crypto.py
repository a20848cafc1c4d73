"""
Key Store Crypto Core — Key IDs, key file parsing and RSA decryption.

Key IDs follow the X.509 convention: SHA-1 over the DER-encoded
SubjectPublicKeyInfo of the public key. A TLS dissector can therefore find the
private key for a session from the server certificate alone.

Key files are read in one of two ways, picked by the credential:
- no credential: unencrypted PEM private key
- credential: password-protected PKCS #12 container

Security Note:
    Never log key material, credentials or plaintext. Only log key IDs.
"""
import struct
import logging
from typing import Optional, Union

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.serialization import pkcs12

from ..exceptions import (
    DecryptError,
    FingerprintError,
    InvalidKeyIdError,
    KeyIOError,
    KeyParseError,
)
from .config import DEFAULT_MAX_KEY_FILE_SIZE

logger = logging.getLogger("capture_secrets.keystore")

KEY_ID_SIZE = 20  # SHA-1


# ---------------------------------------------------------------------------
# Key identifiers
# ---------------------------------------------------------------------------

class KeyId:
    """Fixed-width public key identifier.

    The digest is uniformly distributed, so the hash is a plain XOR of its
    five 32-bit words.
    """

    __slots__ = ("_digest", "_hash")

    def __init__(self, digest: bytes):
        if not isinstance(digest, (bytes, bytearray, memoryview)):
            raise InvalidKeyIdError(
                f"Key ID must be bytes, got {type(digest).__name__}"
            )
        digest = bytes(digest)
        if len(digest) != KEY_ID_SIZE:
            raise InvalidKeyIdError(
                f"Key ID must be exactly {KEY_ID_SIZE} bytes, got {len(digest)}"
            )
        self._digest = digest
        w0, w1, w2, w3, w4 = struct.unpack("<5I", digest)
        self._hash = w0 ^ w1 ^ w2 ^ w3 ^ w4

    @classmethod
    def from_hex(cls, value: str) -> "KeyId":
        try:
            digest = bytes.fromhex(value.replace(":", ""))
        except ValueError as err:
            raise InvalidKeyIdError(f"Invalid key ID hex: {err}") from err
        return cls(digest)

    @property
    def digest(self) -> bytes:
        return self._digest

    def hex(self) -> str:
        return self._digest.hex()

    def __bytes__(self) -> bytes:
        return self._digest

    def __eq__(self, other: object) -> bool:
        if isinstance(other, KeyId):
            return self._digest == other._digest
        return NotImplemented

    def __hash__(self) -> int:
        return self._hash

    def __str__(self) -> str:
        return self._digest.hex()

    def __repr__(self) -> str:
        return f"KeyId('{self._digest.hex()}')"


def compute_key_id(public_key: rsa.RSAPublicKey) -> KeyId:
    """Derive the KeyId of a public key.

    Raises:
        FingerprintError: If the digest is not KEY_ID_SIZE bytes.
    """
    spki = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    digest = hashes.Hash(hashes.SHA1())
    digest.update(spki)
    value = digest.finalize()
    if len(value) != KEY_ID_SIZE:
        raise FingerprintError(
            "<public key>",
            f"key ID digest has {len(value)} bytes, expected {KEY_ID_SIZE}",
        )
    return KeyId(value)


# ---------------------------------------------------------------------------
# Private key handles
# ---------------------------------------------------------------------------

class PrivateKeyHandle:
    """An imported RSA private key, ready for decryption.

    The handle computes its own KeyId from the key it wraps; a store entry is
    always keyed by the ID of the handle it holds.
    """

    def __init__(self, private_key: rsa.RSAPrivateKey):
        self._key: Optional[rsa.RSAPrivateKey] = private_key
        self.key_id = compute_key_id(private_key.public_key())

    @property
    def released(self) -> bool:
        return self._key is None

    @property
    def key_size(self) -> int:
        if self._key is None:
            return 0
        return self._key.key_size

    def decrypt(self, ciphertext: bytes, expected_size: Optional[int] = None) -> bytes:
        """Decrypt a PKCS #1 v1.5 encrypted block.

        OpenSSL applies implicit rejection: a full-length ciphertext with bad
        padding decrypts to pseudo-random bytes instead of failing. Callers
        must check the structure of the plaintext; ``expected_size`` rejects
        plaintext of the wrong length.

        Args:
            ciphertext: Encrypted block, as long as the key modulus.
            expected_size: Required plaintext length, if known.

        Returns:
            A new bytes object owned by the caller.

        Raises:
            DecryptError: If the key was released, rejects the ciphertext or
                the plaintext has the wrong length.
        """
        key = self._key
        if key is None:
            raise DecryptError(f"Private key {self.key_id} was released")
        try:
            plaintext = key.decrypt(bytes(ciphertext), padding.PKCS1v15())
        except ValueError as err:
            raise DecryptError(
                f"Decryption with key {self.key_id} failed: {err}"
            ) from err
        if expected_size is not None and len(plaintext) != expected_size:
            raise DecryptError(
                f"Decryption with key {self.key_id} produced {len(plaintext)} bytes, "
                f"expected {expected_size}"
            )
        return bytes(plaintext)

    def release(self) -> None:
        self._key = None

    def __repr__(self) -> str:
        state = "released" if self._key is None else f"{self._key.key_size} bits"
        return f"<PrivateKeyHandle {self.key_id} ({state})>"


# ---------------------------------------------------------------------------
# Key file loading
# ---------------------------------------------------------------------------

def read_key_file(location: str, max_size: int = DEFAULT_MAX_KEY_FILE_SIZE) -> bytes:
    """Read a key file, refusing anything larger than ``max_size`` bytes.

    Raises:
        KeyIOError: If the file cannot be read or is too large.
    """
    try:
        with open(location, "rb") as fp:
            data = fp.read(max_size + 1)
    except OSError as err:
        reason = err.strerror or str(err)
        raise KeyIOError(location, f"Error loading RSA key file: {reason}") from err
    if len(data) > max_size:
        raise KeyIOError(
            location,
            f"Error loading RSA key file: larger than {max_size} bytes",
        )
    return data


def _require_rsa(location: str, key: object) -> rsa.RSAPrivateKey:
    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeyParseError(
            location,
            f"Private key algorithm isn't RSA ({type(key).__name__})",
        )
    return key


def load_pem_key(location: str, data: bytes) -> rsa.RSAPrivateKey:
    """Parse an unencrypted PEM private key.

    Raises:
        KeyParseError: If the data is not an unencrypted PEM RSA key.
    """
    try:
        key = serialization.load_pem_private_key(data, password=None)
    except (ValueError, TypeError, UnsupportedAlgorithm) as err:
        raise KeyParseError(location, f"Can't import PEM: {err}") from err
    return _require_rsa(location, key)


def load_pkcs12_key(location: str, data: bytes, password: str) -> rsa.RSAPrivateKey:
    """Extract the private key from a password-protected PKCS #12 container.

    Raises:
        KeyParseError: If the container cannot be decrypted or holds no RSA key.
    """
    try:
        key, _cert, _extra = pkcs12.load_key_and_certificates(
            data, password.encode("utf-8"),
        )
    except (ValueError, TypeError, UnsupportedAlgorithm) as err:
        raise KeyParseError(location, f"Can't import PKCS #12: {err}") from err
    if key is None:
        raise KeyParseError(location, "PKCS #12 container holds no private key")
    return _require_rsa(location, key)


def import_key(
    location: str,
    credential: str = "",
    max_size: int = DEFAULT_MAX_KEY_FILE_SIZE,
) -> tuple[KeyId, PrivateKeyHandle]:
    """Load a key file and import it as a private key handle.

    Exactly one parse strategy is tried: PEM when ``credential`` is empty,
    PKCS #12 otherwise.

    Args:
        location: Path of the key file.
        credential: PKCS #12 password, or empty for a PEM file.
        max_size: Largest accepted file size in bytes.

    Returns:
        Tuple of (key_id, handle).

    Raises:
        KeyIOError: If the file cannot be read.
        KeyParseError: If the file cannot be decoded.
        FingerprintError: If the key ID cannot be computed.
    """
    data = read_key_file(location, max_size)
    if not credential:
        key = load_pem_key(location, data)
    else:
        key = load_pkcs12_key(location, data, credential)
    try:
        handle = PrivateKeyHandle(key)
    except FingerprintError as err:
        raise FingerprintError(
            location, f"Error calculating Key ID: {err.message}"
        ) from err
    return handle.key_id, handle


def as_key_id(value: Union[KeyId, bytes, str]) -> KeyId:
    """Accept a KeyId, its raw digest or its hex form.

    Raises:
        InvalidKeyIdError: If the value is not a valid key ID.
    """
    if isinstance(value, KeyId):
        return value
    if isinstance(value, str):
        return KeyId.from_hex(value)
    return KeyId(value)
