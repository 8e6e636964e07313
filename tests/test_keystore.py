"""
Tests for license key storage.
"""

import os
from unittest.mock import Mock

import pytest

from beacon.errors import AlreadyExistsError, ConfigError
from beacon.keystore import (
    FileKeyStore,
    format_license_key,
    persist_license_key,
    read_license_key,
)


class TestFormatLicenseKey:
    """Test key wrapping."""

    def test_120_characters_wrap_into_three_lines(self):
        key = "A" * 50 + "B" * 50 + "C" * 20
        formatted = format_license_key(key)
        assert formatted == "A" * 50 + "\n" + "B" * 50 + "\n" + "C" * 20 + "\n"
        lines = formatted.splitlines(keepends=True)
        assert [len(line.rstrip("\n")) for line in lines] == [50, 50, 20]
        assert all(line.endswith("\n") for line in lines)

    def test_exact_multiple(self):
        assert format_license_key("X" * 100).count("\n") == 2

    def test_no_platform_line_endings(self):
        assert "\r" not in format_license_key("K" * 75)

    def test_whitespace_removed_before_wrapping(self):
        assert format_license_key("AB CD\nEF") == "ABCDEF\n"


class TestReadLicenseKey:
    """Test reading the persisted key."""

    def test_missing_file(self, tmp_path):
        assert read_license_key(FileKeyStore(), tmp_path / "license.key") is None

    def test_joins_wrapped_lines(self, tmp_path):
        path = tmp_path / "license.key"
        path.write_bytes(b"A" * 50 + b"\r\n" + b"B" * 10 + b"\n")
        assert read_license_key(FileKeyStore(), path) == "A" * 50 + "B" * 10

    def test_empty_file(self, tmp_path):
        path = tmp_path / "license.key"
        path.write_bytes(b"\n\n")
        assert read_license_key(FileKeyStore(), path) is None


class TestPersistLicenseKey:
    """Test writing a newly issued key."""

    def test_writes_wrapped_key(self, tmp_path):
        path = tmp_path / "license.key"
        key = "k" * 120
        assert persist_license_key(FileKeyStore(), path, key) is True
        assert path.read_text() == format_license_key(key)

    def test_file_permissions(self, tmp_path):
        path = tmp_path / "license.key"
        persist_license_key(FileKeyStore(), path, "k" * 60)
        assert (os.stat(path).st_mode & 0o777) == 0o600

    def test_refuses_to_overwrite(self, tmp_path):
        path = tmp_path / "license.key"
        path.write_bytes(b"existing-key\n")
        with pytest.raises(AlreadyExistsError):
            persist_license_key(FileKeyStore(), path, "n" * 120)
        assert path.read_bytes() == b"existing-key\n"

    def test_unwritable_directory(self):
        store = Mock()
        store.exists.return_value = False
        store.is_writable.return_value = False
        with pytest.raises(ConfigError, match="unwritable"):
            persist_license_key(store, "/etc/beacon/license.key", "k" * 50)
        store.write.assert_not_called()

    def test_race_with_another_writer(self, tmp_path):
        """A file created after the existence check is still never truncated."""
        path = tmp_path / "license.key"
        store = FileKeyStore()
        path.write_bytes(b"winner\n")
        with pytest.raises(AlreadyExistsError):
            store.write(path, b"loser\n")
        assert path.read_bytes() == b"winner\n"


class TestFileKeyStore:
    """Test the filesystem key store."""

    def test_is_writable(self, tmp_path):
        store = FileKeyStore()
        assert store.is_writable(tmp_path) is True
        assert store.is_writable(tmp_path / "missing") is False

    def test_exists_and_read(self, tmp_path):
        store = FileKeyStore()
        path = tmp_path / "license.key"
        assert store.exists(path) is False
        path.write_bytes(b"abc")
        assert store.exists(path) is True
        assert store.read(path) == b"abc"
