"""
Key Store Reload — Batch import of every configured key source.

Each source is imported on its own: a broken key file or a wrong password is
recorded in the report and the remaining sources are still loaded. The result
is a complete new mapping that the store swaps in as a single step.

Security Note:
    Report lines name the location and the cause, never the credential.
"""
import logging
from collections.abc import Iterable
from typing import Any, Union

from pydantic import BaseModel, Field, ValidationError

from ..exceptions import KeyImportError
from .config import KeySource, KeyStoreConfig
from .crypto import KeyId, PrivateKeyHandle, import_key

logger = logging.getLogger("capture_secrets.keystore")

REPORT_HEADER = "Error processing private keys:"


class ReloadError(BaseModel):
    """A key source that could not be loaded."""

    location: str
    message: str


class ReloadReport(BaseModel):
    """Outcome of a reload pass."""

    loaded: int = 0
    skipped: int = 0
    errors: list[ReloadError] = Field(default_factory=list)

    @property
    def failed(self) -> bool:
        return bool(self.errors)

    def add_error(self, location: str, message: str) -> None:
        self.errors.append(ReloadError(location=location, message=message))

    def format(self) -> str:
        """Render the aggregated multi-line failure report."""
        lines = [REPORT_HEADER]
        lines.extend(f"{err.location}: {err.message}" for err in self.errors)
        return "\n".join(lines)


def _source_location(raw: Any) -> str:
    location = raw.get("location") if isinstance(raw, dict) else raw
    return str(location or "").strip() or "<missing location>"


def import_key_sources(
    sources: Iterable[Union[KeySource, dict]],
    config: KeyStoreConfig,
) -> tuple[dict[KeyId, PrivateKeyHandle], ReloadReport]:
    """Import every key source into a fresh mapping.

    Token references are skipped; they are accepted in configuration but
    cannot be resolved to a key handle. Invalid source records are reported
    like any other failing source.

    Args:
        sources: Key sources in configuration order.
        config: Store settings (token prefix, size limit, reporting).

    Returns:
        Tuple of (new mapping, report).
    """
    keys: dict[KeyId, PrivateKeyHandle] = {}
    report = ReloadReport()

    for raw in sources:
        if isinstance(raw, KeySource):
            source = raw
        else:
            try:
                source = KeySource.model_validate(raw)
            except ValidationError as err:
                reason = "; ".join(e["msg"] for e in err.errors())
                report.add_error(
                    _source_location(raw), f"Invalid key source: {reason}",
                )
                continue

        if source.is_token_reference(config.token_prefix):
            report.skipped += 1
            logger.warning(
                "Skipping token key source %s: token keys are not supported",
                source.location,
            )
            if config.report_unsupported_tokens:
                report.add_error(
                    source.location, "PKCS #11 token keys are not supported",
                )
            continue

        try:
            key_id, handle = import_key(
                source.location, source.credential, config.max_key_file_size,
            )
        except KeyImportError as err:
            logger.debug("Failed to load key source %s: %s", source.location, err.message)
            report.add_error(source.location, err.message)
            continue

        previous = keys.get(key_id)
        if previous is not None:
            logger.debug("Key %s loaded again from %s", key_id, source.location)
            previous.release()
        keys[key_id] = handle
        logger.debug("Adding key %s", key_id)

    report.loaded = len(keys)
    return keys, report
