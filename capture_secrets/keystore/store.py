"""
PrivateKeyStore — Private keys indexed by public key ID.

Provides the public API of the key store:
- ``reload(sources)`` — replace every key with the ones loaded from ``sources``
- ``decrypt(key_id, ciphertext)`` — RSA-decrypt with the key matching ``key_id``
- ``get(key_id)`` / ``key_ids()`` / ``key_id in store`` — inspect loaded keys
- ``teardown()`` — release every key; the store cannot be used afterwards

Security Note:
    Never log plaintext, ciphertext or credentials. Only log key IDs and
    key source locations.
"""
import logging
import threading
from collections.abc import Callable, Iterable
from typing import Optional, Union

from ..exceptions import InvalidKeyIdError, KeyNotFoundError, KeyStoreClosedError
from .config import KeySource, KeyStoreConfig
from .crypto import KeyId, PrivateKeyHandle, as_key_id
from .reload import ReloadReport, import_key_sources

logger = logging.getLogger("capture_secrets.keystore")


def log_failure(message: str) -> None:
    """Default failure reporter."""
    logger.error("%s", message)


class PrivateKeyStore:
    """Mapping of KeyId to imported RSA private key.

    A reload builds its new mapping off to the side and swaps it in under the
    store lock. ``decrypt`` holds the same lock, so it sees either the old or
    the new set of keys and never a released handle.
    """

    def __init__(
        self,
        config: Optional[KeyStoreConfig] = None,
        report_failure: Optional[Callable[[str], None]] = None,
    ):
        self._config = config if config is not None else KeyStoreConfig()
        self._report_failure = report_failure or log_failure
        self._lock = threading.Lock()
        self._keys: Optional[dict[KeyId, PrivateKeyHandle]] = {}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _current(self) -> dict[KeyId, PrivateKeyHandle]:
        keys = self._keys
        if keys is None:
            raise KeyStoreClosedError("Private key store was torn down")
        return keys

    @staticmethod
    def _release_all(keys: dict[KeyId, PrivateKeyHandle]) -> None:
        for handle in keys.values():
            handle.release()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._keys is None

    @property
    def config(self) -> KeyStoreConfig:
        return self._config

    def reload(
        self,
        sources: Optional[Iterable[Union[KeySource, dict]]] = None,
    ) -> ReloadReport:
        """Replace all keys with the ones loaded from ``sources``.

        Sources that fail to load are reported through ``report_failure``
        as one aggregated message; the keys that did load are kept.

        Args:
            sources: Key sources to load; defaults to the configured ones.

        Returns:
            Report of loaded, skipped and failed sources.

        Raises:
            KeyStoreClosedError: If the store was torn down.
        """
        self._current()
        if sources is None:
            sources = self._config.key_sources
        keys, report = import_key_sources(list(sources), self._config)

        with self._lock:
            previous = self._keys
            if previous is None:
                self._release_all(keys)
                raise KeyStoreClosedError("Private key store was torn down")
            self._keys = keys
            self._release_all(previous)

        logger.info(
            "Private keys reloaded: %d loaded, %d skipped, %d failed",
            report.loaded, report.skipped, len(report.errors),
        )
        if report.failed:
            self._report_failure(report.format())
        return report

    def decrypt(
        self,
        key_id: Union[KeyId, bytes, str],
        ciphertext: bytes,
        expected_size: Optional[int] = None,
    ) -> bytes:
        """Decrypt ``ciphertext`` with the private key identified by ``key_id``.

        Args:
            key_id: Public key ID (KeyId, 20 raw bytes or hex).
            ciphertext: RSA PKCS #1 v1.5 encrypted data.
            expected_size: Required plaintext length, if known. Without it a
                corrupted full-length ciphertext yields pseudo-random bytes.

        Returns:
            Plaintext bytes owned by the caller.

        Raises:
            KeyStoreClosedError: If the store was torn down.
            InvalidKeyIdError: If ``key_id`` is not a valid key ID.
            KeyNotFoundError: If no key is loaded for ``key_id``.
            DecryptError: If the key rejects the ciphertext.
        """
        key_id = as_key_id(key_id)
        with self._lock:
            handle = self._current().get(key_id)
            if handle is None:
                raise KeyNotFoundError(key_id)
            return handle.decrypt(ciphertext, expected_size)

    def get(self, key_id: Union[KeyId, bytes, str]) -> Optional[PrivateKeyHandle]:
        return self._current().get(as_key_id(key_id))

    def key_ids(self) -> list[KeyId]:
        return list(self._current().keys())

    def teardown(self) -> None:
        """Release every key. Further use raises KeyStoreClosedError."""
        with self._lock:
            keys, self._keys = self._keys, None
            if keys is not None:
                self._release_all(keys)
        if keys is not None:
            logger.debug("Private key store torn down (%d key(s) released)", len(keys))

    def __contains__(self, key_id: object) -> bool:
        keys = self._current()
        try:
            return as_key_id(key_id) in keys
        except InvalidKeyIdError:
            return False

    def __len__(self) -> int:
        return len(self._current())
