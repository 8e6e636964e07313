"""
License key storage.

The key is written once per installation and never overwritten. It is stored
wrapped at a fixed column width so the file stays readable in an editor.
"""

import logging
import os
import re
from pathlib import Path
from typing import Optional, Protocol, Union

from beacon.errors import AlreadyExistsError, ConfigError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

KEY_LINE_WIDTH = 50


class KeyStore(Protocol):
    """Storage collaborator for the license key file."""

    def exists(self, path: PathLike) -> bool: ...

    def read(self, path: PathLike) -> bytes: ...

    def write(self, path: PathLike, data: bytes) -> bool: ...

    def is_writable(self, directory: PathLike) -> bool: ...


class FileKeyStore:
    """KeyStore backed by the local filesystem."""

    def exists(self, path: PathLike) -> bool:
        return Path(path).is_file()

    def read(self, path: PathLike) -> bytes:
        return Path(path).read_bytes()

    def write(self, path: PathLike, data: bytes) -> bool:
        """Create ``path`` with ``data``.

        Uses exclusive creation, so a file that appeared since the caller's
        existence check is never truncated.

        Raises:
            AlreadyExistsError: If the file already exists
        """
        try:
            with open(path, "xb") as f:
                f.write(data)
        except FileExistsError:
            raise AlreadyExistsError(path) from None
        os.chmod(path, 0o600)
        return True

    def is_writable(self, directory: PathLike) -> bool:
        directory = Path(directory)
        return directory.is_dir() and os.access(directory, os.W_OK | os.X_OK)


def format_license_key(key: str, width: int = KEY_LINE_WIDTH) -> str:
    """Wrap ``key`` at ``width`` characters per line, each line newline-terminated."""
    key = re.sub(r"\s+", "", key)
    return "".join(key[i:i + width] + "\n" for i in range(0, len(key), width))


def read_license_key(store: KeyStore, path: PathLike) -> Optional[str]:
    """Read the persisted license key, joined back into a single line.

    Returns:
        The key, or None if no key file exists or it is empty
    """
    if not store.exists(path):
        return None
    raw = store.read(path).decode("utf-8", errors="replace")
    key = re.sub(r"[\r\n]+", "", raw).strip()
    return key or None


def key_directory_writable(store: KeyStore, path: PathLike) -> bool:
    return store.is_writable(Path(path).parent)


def persist_license_key(store: KeyStore, path: PathLike, key: str) -> bool:
    """Write a newly issued license key.

    Raises:
        AlreadyExistsError: If a key file already exists
        ConfigError: If the key directory is not writable
    """
    if store.exists(path):
        raise AlreadyExistsError(path)

    if not key_directory_writable(store, path):
        raise ConfigError(f"Key storage unwritable: {Path(path).parent}")

    written = store.write(path, format_license_key(key).encode("utf-8"))
    logger.info(f"Stored license key at {path}")
    return written
