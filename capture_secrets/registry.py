"""
Secret-Type Registry — dispatch of decryption-secrets blocks to their handlers.

Capture files carry secrets blocks tagged with a 32-bit type. The capture reader
hands every block to ``dispatch``; the protocol module that registered the type
receives the raw bytes. Unknown types are ignored so captures written by newer
producers can still be read.
"""
import logging
from enum import IntEnum
from typing import Optional, Protocol, Union

logger = logging.getLogger("capture_secrets.registry")


class SecretsType(IntEnum):
    """Well-known pcapng Decryption Secrets Block types."""

    TLS = 0x544c534b  # "TLSK"
    SSH = 0x5353484b  # "SSHK"
    WIREGUARD = 0x57474b4c  # "WGKL"
    ZIGBEE_NWK_KEY = 0x5a4e574b  # "ZNWK"
    ZIGBEE_APS_KEY = 0x5a415053  # "ZAPS"
    OPCUA = 0x55414b4c  # "UAKL"


class SecretHandler(Protocol):
    """Callback receiving one secrets block."""

    def __call__(self, secret_type: int, data: bytes) -> None:
        ...


class SecretTypeRegistry:
    """Map of secrets-block type to handler callback.

    At most one handler is kept per type; registering a type again replaces
    the previous handler.
    """

    def __init__(self):
        self._handlers: dict[int, SecretHandler] = {}

    def register(self, secret_type: Union[int, SecretsType], handler: SecretHandler) -> None:
        """Install ``handler`` for ``secret_type``, replacing any previous one."""
        secret_type = int(secret_type)
        if secret_type in self._handlers:
            logger.debug("Replacing handler for secrets type 0x%08x", secret_type)
        self._handlers[secret_type] = handler

    def dispatch(
        self,
        secret_type: Union[int, SecretsType],
        data: bytes,
        length: Optional[int] = None,
    ) -> None:
        """Hand a secrets block to the handler registered for its type.

        Args:
            secret_type: Block type as read from the capture file.
            data: Raw block contents.
            length: Number of valid bytes in ``data``; defaults to all of it.
        """
        handler = self._handlers.get(int(secret_type))
        if handler is None:
            logger.debug("No handler for secrets type 0x%08x, ignoring", int(secret_type))
            return
        if length is not None:
            data = data[:length]
        handler(int(secret_type), bytes(data))

    def __contains__(self, secret_type: object) -> bool:
        return secret_type in self._handlers

    def __len__(self) -> int:
        return len(self._handlers)

    def clear(self) -> None:
        self._handlers.clear()
