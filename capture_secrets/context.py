"""
Secrets Context — the process-wide secret-type registry and private key store.

``secrets_init()`` builds the context once at startup and ``secrets_cleanup()``
releases it at shutdown. Capture readers, dissectors and the configuration
layer receive the context (or use the module-level helpers) instead of
creating their own registries.
"""
import logging
from collections.abc import Callable
from typing import Optional, Union

from .exceptions import SecretsContextError
from .keystore.config import KeyStoreConfig
from .keystore.crypto import KeyId
from .keystore.store import PrivateKeyStore
from .registry import SecretHandler, SecretsType, SecretTypeRegistry

logger = logging.getLogger("capture_secrets")


class SecretsContext:
    """Owner of the secret-type registry and the private key store."""

    def __init__(
        self,
        config: Optional[KeyStoreConfig] = None,
        report_failure: Optional[Callable[[str], None]] = None,
    ):
        self.registry = SecretTypeRegistry()
        self.keys = PrivateKeyStore(config, report_failure=report_failure)

    def teardown(self) -> None:
        self.registry.clear()
        self.keys.teardown()


_context: Optional[SecretsContext] = None


def secrets_init(
    config: Optional[KeyStoreConfig] = None,
    report_failure: Optional[Callable[[str], None]] = None,
) -> SecretsContext:
    """Create the process-wide secrets context.

    When ``config`` lists key sources they are loaded right away.

    Raises:
        SecretsContextError: If the context already exists.
    """
    global _context
    if _context is not None:
        raise SecretsContextError("Secrets context is already initialized")
    context = SecretsContext(config, report_failure=report_failure)
    if config is not None and config.key_sources:
        context.keys.reload()
    _context = context
    logger.debug("Secrets context initialized")
    return context


def get_secrets_context() -> SecretsContext:
    if _context is None:
        raise SecretsContextError("Secrets context is not initialized")
    return _context


def secrets_cleanup() -> None:
    """Tear down the process-wide context. Safe to call more than once."""
    global _context
    context, _context = _context, None
    if context is not None:
        context.teardown()
        logger.debug("Secrets context cleaned up")


def secrets_register_type(secret_type: Union[int, SecretsType], handler: SecretHandler) -> None:
    get_secrets_context().registry.register(secret_type, handler)


def secrets_dispatch(
    secret_type: Union[int, SecretsType],
    data: bytes,
    length: Optional[int] = None,
) -> None:
    get_secrets_context().registry.dispatch(secret_type, data, length)


def secrets_rsa_decrypt(
    key_id: Union[KeyId, bytes, str],
    ciphertext: bytes,
    expected_size: Optional[int] = None,
) -> bytes:
    return get_secrets_context().keys.decrypt(key_id, ciphertext, expected_size)
