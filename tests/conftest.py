"""Shared key fixtures: RSA keys written as PEM files and PKCS #12 containers."""
import hashlib

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.hazmat.primitives.serialization import pkcs12

P12_PASSWORD = "s3cret"


def expected_key_id(private_key) -> bytes:
    """SHA-1 over the DER SubjectPublicKeyInfo, computed with hashlib."""
    spki = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return hashlib.sha1(spki).digest()


def encrypt_for(private_key, plaintext: bytes) -> bytes:
    return private_key.public_key().encrypt(plaintext, padding.PKCS1v15())


def write_pem(path, private_key, password: bytes = None):
    if password:
        encryption = serialization.BestAvailableEncryption(password)
    else:
        encryption = serialization.NoEncryption()
    path.write_bytes(
        private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=encryption,
        )
    )
    return path


@pytest.fixture(scope="session")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def other_rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def pem_file(tmp_path, rsa_key):
    """Unencrypted PEM key file."""
    return write_pem(tmp_path / "server.key", rsa_key)


@pytest.fixture
def other_pem_file(tmp_path, other_rsa_key):
    return write_pem(tmp_path / "other.key", other_rsa_key)


@pytest.fixture
def encrypted_pem_file(tmp_path, rsa_key):
    """Password-protected PEM key file (not a PKCS #12 container)."""
    return write_pem(tmp_path / "locked.key", rsa_key, b"pem-password")


@pytest.fixture
def p12_file(tmp_path, other_rsa_key):
    """PKCS #12 container holding ``other_rsa_key``."""
    path = tmp_path / "server.p12"
    path.write_bytes(
        pkcs12.serialize_key_and_certificates(
            b"server",
            other_rsa_key,
            None,
            None,
            serialization.BestAvailableEncryption(P12_PASSWORD.encode("utf-8")),
        )
    )
    return path


@pytest.fixture
def ec_pem_file(tmp_path):
    """Unencrypted PEM file holding a non-RSA key."""
    key = ec.generate_private_key(ec.SECP256R1())
    return write_pem(tmp_path / "ec.key", key)
