"""
Key Store Configuration — Key-source records and validated settings.

Key sources can be given inline or through a file, using environment variables:
    SECRETS_KEY_SOURCES = <JSON array of {"location": ..., "credential": ...}>
    SECRETS_KEY_SOURCES_FILE = <path to a .json list or an rsa_keys table>
    SECRETS_MAX_KEY_FILE_SIZE = <integer, bytes>
    SECRETS_REPORT_UNSUPPORTED_TOKENS = <true|false>

Security Note:
    Never log credentials. Only log key source locations and counts.
"""
import os
import re
import logging
from pathlib import Path
from typing import Union

import orjson
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger("capture_secrets.keystore")

TOKEN_PREFIX = "pkcs11:"
DEFAULT_MAX_KEY_FILE_SIZE = 1024 * 1024

_TRUE_VALUES = ("1", "true", "yes", "on")

# "location","credential" with \xHH escapes inside the quotes
_RECORD_PATTERN = re.compile(r'^"((?:[^"\\]|\\.)*)","((?:[^"\\]|\\.)*)"$')
_ESCAPE_PATTERN = re.compile(r"\\x([0-9a-fA-F]{2})|\\(.)")


class KeySource(BaseModel):
    """One configured key source: a key file or a token reference."""

    location: str
    credential: str = Field(default="", repr=False)

    @field_validator("location")
    @classmethod
    def validate_location(cls, v: str) -> str:
        """Location must not be blank."""
        v = v.strip()
        if not v:
            raise ValueError("Key source location cannot be empty")
        return v

    def is_token_reference(self, prefix: str = TOKEN_PREFIX) -> bool:
        return self.location.startswith(prefix)


class KeyStoreConfig(BaseModel):
    """Validated private key store configuration."""

    key_sources: list[KeySource] = Field(default_factory=list)
    token_prefix: str = Field(default=TOKEN_PREFIX, min_length=1)
    max_key_file_size: int = Field(default=DEFAULT_MAX_KEY_FILE_SIZE, ge=1)
    report_unsupported_tokens: bool = False

    @classmethod
    def from_env(cls) -> "KeyStoreConfig":
        """Create KeyStoreConfig by loading values from environment.

        Inline sources from ``SECRETS_KEY_SOURCES`` come first, followed by
        the ones read from ``SECRETS_KEY_SOURCES_FILE``.

        Returns:
            Populated KeyStoreConfig instance.
        """
        sources: list[KeySource] = []
        inline = os.environ.get("SECRETS_KEY_SOURCES")
        if inline:
            sources.extend(parse_key_sources_json(inline.encode("utf-8")))
        source_file = os.environ.get("SECRETS_KEY_SOURCES_FILE")
        if source_file:
            sources.extend(load_key_sources(source_file))
        max_size = int(
            os.environ.get("SECRETS_MAX_KEY_FILE_SIZE", DEFAULT_MAX_KEY_FILE_SIZE)
        )
        report_tokens = os.environ.get(
            "SECRETS_REPORT_UNSUPPORTED_TOKENS", "false"
        ).strip().lower() in _TRUE_VALUES
        logger.debug("Configured %d key source(s) from environment", len(sources))
        return cls(
            key_sources=sources,
            max_key_file_size=max_size,
            report_unsupported_tokens=report_tokens,
        )


def parse_key_sources_json(data: Union[bytes, str]) -> list[KeySource]:
    """Parse a JSON array of key source objects.

    Raises:
        ValueError: If the document is not a JSON array of objects.
    """
    try:
        parsed = orjson.loads(data)
    except orjson.JSONDecodeError as err:
        raise ValueError(f"Invalid key source JSON: {err}") from err
    if not isinstance(parsed, list):
        raise ValueError("Key source JSON must be an array")
    return [KeySource.model_validate(item) for item in parsed]


def _unescape(field: str) -> str:
    def repl(match: re.Match) -> str:
        if match.group(1) is not None:
            return chr(int(match.group(1), 16))
        return match.group(2)
    return _ESCAPE_PATTERN.sub(repl, field)


def parse_key_sources_table(text: str) -> list[KeySource]:
    """Parse the rsa_keys table format.

    One record per line: ``"location","credential"``. Blank lines and lines
    starting with ``#`` are ignored.

    Raises:
        ValueError: If a line is not a valid record.
    """
    sources: list[KeySource] = []
    for lineno, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        match = _RECORD_PATTERN.match(line)
        if not match:
            raise ValueError(f"Malformed key source record at line {lineno}")
        sources.append(
            KeySource(
                location=_unescape(match.group(1)),
                credential=_unescape(match.group(2)),
            )
        )
    return sources


def load_key_sources(path: Union[str, Path]) -> list[KeySource]:
    """Load key sources from a ``.json`` list or an rsa_keys table file.

    Args:
        path: File to read.

    Returns:
        Key sources in file order.
    """
    path = Path(path)
    if path.suffix.lower() == ".json":
        sources = parse_key_sources_json(path.read_bytes())
    else:
        sources = parse_key_sources_table(path.read_text(encoding="utf-8"))
    logger.debug("Loaded %d key source(s) from %s", len(sources), path)
    return sources
