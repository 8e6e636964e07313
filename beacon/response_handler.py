"""Applies a decoded phone-home result to local state."""

import logging
from pathlib import Path
from typing import Union

from beacon.cache import (
    LICENSE_KEY_STATUS_KEY,
    LICENSED_DOMAIN_KEY,
    LICENSED_EDITION_KEY,
    Cache,
    edition_testable_key,
)
from beacon.keystore import KeyStore, persist_license_key
from beacon.models import LicenseKeyStatus, ReportResult

logger = logging.getLogger(__name__)


class ReportResponseHandler:
    """Persists newly issued license keys and caches license status values."""

    def __init__(self, cache: Cache, key_store: KeyStore, license_key_path: Union[str, Path]):
        self.cache = cache
        self.key_store = key_store
        self.license_key_path = license_key_path

    def handle(self, result: ReportResult, missing_license_key: bool, host_name: str) -> ReportResult:
        """
        Apply ``result``.

        Args:
            result: Decoded remote result
            missing_license_key: Whether the sent payload carried no license key
            host_name: Host name of the request the report was made for

        Returns:
            ``result``, unchanged

        Raises:
            AlreadyExistsError: If a key was issued but a key file already exists
            ConfigError: If a key was issued but the key directory is not writable
        """
        if missing_license_key and result.license_key:
            persist_license_key(self.key_store, self.license_key_path, result.license_key)

        self.cache.set(LICENSE_KEY_STATUS_KEY, result.license_key_status.value)
        self.cache.set(LICENSED_EDITION_KEY, result.licensed_edition)
        self.cache.set(edition_testable_key(host_name), 1 if result.edition_testable_domain else 0)

        if result.license_key_status == LicenseKeyStatus.MISMATCHED_DOMAIN:
            self.cache.set(LICENSED_DOMAIN_KEY, result.licensed_domain)
            logger.warning(f"License key is registered to {result.licensed_domain}, not {host_name}")

        return result
