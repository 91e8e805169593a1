"""API credential providers.

A provider returns the API key, None when no key is configured, or raises
CredentialUnavailableError when the backing store exists but cannot be read
right now (for example a locked keychain or an unreadable key file).
"""

from pathlib import Path
from typing import Protocol

import structlog

from metricfeed.observability.redact import anonymize_key


logger = structlog.get_logger()


class CredentialError(Exception):
    """Base exception for credential provider errors."""


class CredentialUnavailableError(CredentialError):
    """Raised when the credential store is temporarily inaccessible.

    Callers should retry soon rather than treat the key as missing.
    """

    def __init__(
        self, message: str = "Credential store temporarily unavailable"
    ) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
        """
        super().__init__(message)


class CredentialProvider(Protocol):
    """Protocol for reading the API credential."""

    def read(self) -> str | None:
        """Read the API key.

        Returns:
            The key, or None if no key is configured.

        Raises:
            CredentialUnavailableError: If the store is temporarily inaccessible.
        """
        ...


class StaticCredentialProvider:
    """Provider returning a fixed key (settings, tests)."""

    def __init__(self, key: str | None) -> None:
        self._key = key or None

    def read(self) -> str | None:
        return self._key


class FileCredentialProvider:
    """Reads the key from a text file.

    A missing file means no key is configured; a file that exists but
    cannot be opened is treated as temporarily unavailable.
    """

    def __init__(self, path: Path) -> None:
        """Initialize the provider.

        Args:
            path: File containing the API key on its first line.
        """
        self._path = path
        self._log = logger.bind(component="credentials", path=str(path))

    def read(self) -> str | None:
        """Read the key from the file.

        Returns:
            The stripped key, or None if the file is missing or empty.

        Raises:
            CredentialUnavailableError: If the file cannot be read.
        """
        try:
            content = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            self._log.warning("credential_file_unreadable", error=str(e))
            raise CredentialUnavailableError(f"Cannot read {self._path}: {e}") from e

        lines = content.strip().splitlines()
        key = lines[0].strip() if lines else ""
        return key or None


class CachingCredentialProvider:
    """Wraps a provider and keeps the first key it returns in memory.

    Absent keys and unavailability are not cached, so a key added later
    or a store that unlocks later is picked up on the next read.
    """

    def __init__(self, inner: CredentialProvider) -> None:
        self._inner = inner
        self._cached: str | None = None
        self._log = logger.bind(component="credentials")

    def read(self) -> str | None:
        """Return the cached key, reading through to the inner provider once."""
        if self._cached is not None:
            return self._cached

        key = self._inner.read()
        if key:
            self._cached = key
            self._log.debug("credential_cached", key=anonymize_key(key))
        return key or None
