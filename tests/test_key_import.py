"""
Tests for key IDs and single key file import.

Tests cover:
- KeyId equality, hashing and hex forms
- PEM import without a credential
- PKCS #12 import with a credential
- Exactly one parse strategy per call
- IO, parse and size errors
- Key ID digests of unexpected size
"""
import hashlib
import struct
from types import SimpleNamespace

import pytest

from capture_secrets.exceptions import (
    DecryptError,
    FingerprintError,
    KeyImportError,
    KeyIOError,
    KeyParseError,
)
from capture_secrets.keystore import KeySource, KeyStoreConfig, crypto
from capture_secrets.keystore.reload import import_key_sources
from capture_secrets.keystore.crypto import (
    KEY_ID_SIZE,
    KeyId,
    PrivateKeyHandle,
    compute_key_id,
    import_key,
)

from conftest import P12_PASSWORD, encrypt_for, expected_key_id


# --- Test KeyId ---

class TestKeyId:
    """Tests for the KeyId value type."""

    def test_requires_fixed_width(self):
        """Digests of any other size are rejected."""
        with pytest.raises(ValueError):
            KeyId(b"\x00" * 19)
        with pytest.raises(ValueError):
            KeyId(b"\x00" * 21)

    def test_equality_is_byte_match(self):
        """Two IDs are equal exactly when their bytes are."""
        a = KeyId(bytes(range(20)))
        b = KeyId(bytes(range(20)))
        c = KeyId(bytes(range(1, 21)))
        assert a == b
        assert a != c
        assert a != bytes(range(20))

    def test_hash_is_xor_of_words(self):
        """Hash folds the five 32-bit words with XOR."""
        digest = bytes(range(20))
        words = struct.unpack("<5I", digest)
        assert hash(KeyId(digest)) == hash(words[0] ^ words[1] ^ words[2] ^ words[3] ^ words[4])

    def test_usable_as_dict_key(self):
        """Equal IDs find the same dict entry."""
        table = {KeyId(b"\x01" * 20): "value"}
        assert table[KeyId(b"\x01" * 20)] == "value"

    def test_hex_round_trip(self):
        """from_hex() accepts hex with or without colons."""
        key_id = KeyId(bytes(range(20)))
        assert KeyId.from_hex(key_id.hex()) == key_id
        colon_form = ":".join(f"{b:02x}" for b in range(20))
        assert KeyId.from_hex(colon_form) == key_id
        assert str(key_id) == key_id.hex()
        assert bytes(key_id) == bytes(range(20))


# --- Test Fingerprinting ---

class TestFingerprint:
    """Tests for compute_key_id()."""

    def test_matches_sha1_of_spki(self, rsa_key):
        """Key ID is SHA-1 over the DER SubjectPublicKeyInfo."""
        key_id = compute_key_id(rsa_key.public_key())
        assert key_id.digest == expected_key_id(rsa_key)
        assert len(key_id.digest) == KEY_ID_SIZE

    def test_handle_derives_its_own_id(self, rsa_key):
        """A handle is always keyed by the ID of the key it wraps."""
        handle = PrivateKeyHandle(rsa_key)
        assert handle.key_id.digest == expected_key_id(rsa_key)
        assert handle.key_size == 2048


# --- Test PEM Import ---

class TestPemImport:
    """Tests for import_key() without a credential."""

    def test_import_unencrypted_pem(self, pem_file, rsa_key):
        """Importing a PEM file yields the independently computed ID."""
        key_id, handle = import_key(str(pem_file), "")
        assert key_id.digest == expected_key_id(rsa_key)
        assert handle.key_id == key_id

    def test_import_is_idempotent(self, pem_file):
        """The same file always yields the same ID."""
        first, _ = import_key(str(pem_file), "")
        second, _ = import_key(str(pem_file), "")
        assert first == second

    def test_imported_handle_decrypts(self, pem_file, rsa_key):
        """The handle decrypts data encrypted to the public key."""
        _, handle = import_key(str(pem_file))
        assert handle.decrypt(encrypt_for(rsa_key, b"premaster")) == b"premaster"

    def test_encrypted_pem_without_credential(self, encrypted_pem_file):
        """An encrypted PEM cannot be read as an unencrypted key."""
        with pytest.raises(KeyParseError) as exc:
            import_key(str(encrypted_pem_file), "")
        assert exc.value.location == str(encrypted_pem_file)

    def test_garbage_file(self, tmp_path):
        """Files that are not keys raise KeyParseError."""
        path = tmp_path / "notakey.pem"
        path.write_bytes(b"this is not a key")
        with pytest.raises(KeyParseError):
            import_key(str(path))

    def test_non_rsa_key_rejected(self, ec_pem_file):
        """Only RSA keys can be imported."""
        with pytest.raises(KeyParseError) as exc:
            import_key(str(ec_pem_file))
        assert "RSA" in exc.value.message


# --- Test PKCS #12 Import ---

class TestPkcs12Import:
    """Tests for import_key() with a credential."""

    def test_import_pkcs12(self, p12_file, other_rsa_key):
        """A PKCS #12 container is opened with its password."""
        key_id, handle = import_key(str(p12_file), P12_PASSWORD)
        assert key_id.digest == expected_key_id(other_rsa_key)
        assert handle.decrypt(encrypt_for(other_rsa_key, b"hello")) == b"hello"

    def test_wrong_password(self, p12_file):
        """A wrong password raises KeyParseError."""
        with pytest.raises(KeyParseError):
            import_key(str(p12_file), "wrong")

    def test_pkcs12_without_credential(self, p12_file):
        """Without a credential the container is parsed as PEM and fails."""
        with pytest.raises(KeyParseError):
            import_key(str(p12_file), "")

    def test_credential_on_plain_pem_does_not_fall_back(self, pem_file):
        """A credential forces PKCS #12 parsing, even for a plain PEM file."""
        key_id, _ = import_key(str(pem_file), "")
        assert key_id is not None
        with pytest.raises(KeyParseError):
            import_key(str(pem_file), "some-password")


# --- Test IO Errors ---

class TestImportErrors:
    """Tests for file access errors."""

    def test_missing_file(self, tmp_path):
        """A missing file raises KeyIOError naming the location."""
        missing = tmp_path / "missing.key"
        with pytest.raises(KeyIOError) as exc:
            import_key(str(missing))
        assert exc.value.location == str(missing)
        assert str(missing) in str(exc.value)

    def test_directory_is_not_a_key_file(self, tmp_path):
        """Directories cannot be opened as key files."""
        with pytest.raises(KeyIOError):
            import_key(str(tmp_path))

    def test_oversized_file(self, pem_file):
        """Files larger than the limit are refused."""
        with pytest.raises(KeyIOError):
            import_key(str(pem_file), "", max_size=16)

    def test_errors_share_base_class(self, tmp_path):
        """All import failures are KeyImportError."""
        with pytest.raises(KeyImportError):
            import_key(str(tmp_path / "nope"))


# --- Test Fingerprint Errors ---

class ShortDigest:
    """Hash stand-in whose digest is one byte short."""
    def __init__(self, algorithm):
        self._digest = hashlib.sha1()

    def update(self, data):
        self._digest.update(data)

    def finalize(self):
        return self._digest.digest()[:KEY_ID_SIZE - 1]


@pytest.fixture
def short_digest(monkeypatch):
    """Make key ID computation produce a 19-byte digest."""
    monkeypatch.setattr(
        crypto, "hashes", SimpleNamespace(Hash=ShortDigest, SHA1=crypto.hashes.SHA1),
    )


class TestFingerprintErrors:
    """Tests for digests of unexpected size."""

    def test_import_raises_fingerprint_error(self, short_digest, pem_file):
        """The error names the key file it was computed for."""
        with pytest.raises(FingerprintError) as exc:
            import_key(str(pem_file))
        assert exc.value.location == str(pem_file)
        assert "Key ID" in exc.value.message

    def test_reload_reports_fingerprint_error(self, short_digest, pem_file):
        """Fingerprint failures become report lines like other import errors."""
        keys, report = import_key_sources(
            [KeySource(location=str(pem_file))], KeyStoreConfig(),
        )
        assert keys == {}
        assert report.errors[0].location == str(pem_file)
        assert "Key ID" in report.errors[0].message


# --- Test Handle Release ---

class TestHandleRelease:
    """Tests for PrivateKeyHandle.release()."""

    def test_released_handle_cannot_decrypt(self, rsa_key):
        """Released handles refuse to decrypt."""
        handle = PrivateKeyHandle(rsa_key)
        ciphertext = encrypt_for(rsa_key, b"data")
        handle.release()
        assert handle.released is True
        with pytest.raises(DecryptError):
            handle.decrypt(ciphertext)
