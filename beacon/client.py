"""
Phone-home report client.

Sends host and application metadata to the licensing/update endpoint and
interprets the answer. Failures are kept apart by where they happen:

- ConfigError: the local environment could not store what the call returns.
  Raised before any network traffic.
- Transport failure: no response at all. Recorded in the negative-result cache
  for five minutes, during which no further calls are made.
- Logical failure: a response arrived but was an HTTP error or undecodable.
  Logged; the negative-result cache is cleared since the endpoint is reachable.
"""

import json
import logging
import time
from contextlib import closing
from pathlib import Path
from typing import Any, Optional, Union

import requests

from beacon import __version__
from beacon.cache import CONNECT_FAILURE_KEY, CONNECT_FAILURE_TTL, Cache
from beacon.errors import BeaconError, ConfigError, LogicalFailure, TransportFailure
from beacon.keystore import KeyStore, key_directory_writable, read_license_key
from beacon.models import (
    DownloadedFile,
    ReportPayload,
    ReportResult,
    RequestContext,
    SendOptions,
)
from beacon.response_handler import ReportResponseHandler

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8192
MAX_LOGGED_BODY = 500

SendResult = Union[ReportResult, DownloadedFile, None]


class RemoteReportClient:
    """
    Client for the phone-home endpoint.

    Makes exactly one POST per send; there is no retry loop, the negative-result
    cache is the backoff.
    """

    def __init__(self,
                 endpoint: str,
                 cache: Cache,
                 key_store: KeyStore,
                 license_key_path: Union[str, Path],
                 version: str = __version__,
                 build: str = "0",
                 edition: str = "",
                 track: str = "stable",
                 session: Optional[requests.Session] = None,
                 clock=time.time):
        """
        Initialize the client.

        Args:
            endpoint: Full endpoint URL
            cache: Cache for status values and the negative-result flag
            key_store: Storage for the license key file
            license_key_path: Location of the license key file
            version: Local application version
            build: Local build identifier
            edition: Local edition
            track: Update track
            session: requests session (created if None)
            clock: Time source for request timestamps
        """
        self.endpoint = endpoint
        self.cache = cache
        self.key_store = key_store
        self.license_key_path = Path(license_key_path)
        self.version = version
        self.build = build
        self.edition = edition
        self.track = track
        self.session = session or requests.Session()
        self._clock = clock
        self.handler = ReportResponseHandler(cache, key_store, self.license_key_path)

    @classmethod
    def from_config(cls, config, cache: Cache, key_store: KeyStore,
                    session: Optional[requests.Session] = None) -> "RemoteReportClient":
        return cls(
            endpoint=config.endpoint + config.endpoint_suffix,
            cache=cache,
            key_store=key_store,
            license_key_path=config.license_key_path,
            version=config.version,
            build=config.build,
            edition=config.edition,
            track=config.track,
            session=session,
        )

    @property
    def user_agent(self) -> str:
        return f"Beacon/{self.version}.{self.build}"

    def create_payload(self, context: RequestContext, user_email: Optional[str] = None,
                       data: Any = None) -> ReportPayload:
        """Build a payload for ``context``, reading the persisted license key."""
        return ReportPayload(
            license_key=read_license_key(self.key_store, self.license_key_path),
            request_url=context.url,
            request_ip=context.ip,
            request_time=int(self._clock()),
            request_port=context.port,
            local_build=self.build,
            local_version=self.version,
            local_edition=self.edition,
            user_email=user_email,
            track=self.track,
            data=data,
            host_name=context.host_name,
        )

    def send(self, payload: ReportPayload, options: Optional[SendOptions] = None) -> SendResult:
        """
        Send ``payload`` to the endpoint.

        Args:
            payload: Report payload
            options: Transfer options (defaults if None)

        Returns:
            ReportResult, DownloadedFile when a destination file was given,
            or None when no usable response was obtained

        Raises:
            ConfigError: If the payload has no license key and the key directory
                is not writable, or the destination file cannot be written
            AlreadyExistsError: If a new key was issued but a key file exists
        """
        options = options or SendOptions()
        missing_key = payload.missing_license_key

        if missing_key and not key_directory_writable(self.key_store, self.license_key_path):
            message = f"Key storage unwritable: {self.license_key_path.parent}"
            logger.error(f"Not calling {self.endpoint}. {message}")
            raise ConfigError(message)

        if self._connect_failure_cached():
            logger.debug(f"Skipping call to {self.endpoint}, a recent attempt could not connect")
            return None

        deadline = time.monotonic() + options.timeout if options.timeout > 0 else None

        try:
            response = self._post(payload, options)
            with closing(response):
                if not 200 <= response.status_code < 300:
                    raise LogicalFailure(f"HTTP {response.status_code}", self._error_body(response, deadline))

                if options.destination_file is not None:
                    downloaded = self._download(response, Path(options.destination_file), deadline)
                    self._clear_connect_failure()
                    return downloaded

                result = self._decode(self._read_body(response, deadline))
        except TransportFailure as e:
            logger.error(f"Error calling {self.endpoint}: {e}")
            self.cache.set(CONNECT_FAILURE_KEY, True, CONNECT_FAILURE_TTL)
            return None
        except LogicalFailure as e:
            logger.warning(f"Error in calling {self.endpoint}: {e}. Response: {e.body[:MAX_LOGGED_BODY]}")
            self._clear_connect_failure()
            return None

        self._clear_connect_failure()

        try:
            return self.handler.handle(result, missing_key, payload.host_name)
        except BeaconError as e:
            logger.error(f"Could not apply response from {self.endpoint}: {e}")
            raise

    def _connect_failure_cached(self) -> bool:
        return self.cache.get(CONNECT_FAILURE_KEY) is not None

    def _clear_connect_failure(self) -> None:
        if self.cache.get(CONNECT_FAILURE_KEY) is not None:
            self.cache.delete(CONNECT_FAILURE_KEY)

    def _post(self, payload: ReportPayload, options: SendOptions) -> requests.Response:
        body = json.dumps(payload.to_dict(), default=str)
        headers = {
            "Content-Type": "application/json",
            "User-Agent": self.user_agent,
        }
        read_timeout = options.timeout if options.timeout > 0 else None
        connect_timeout = options.connect_timeout if options.connect_timeout > 0 else None

        try:
            return self.session.post(
                self.endpoint,
                data=body.encode("utf-8"),
                headers=headers,
                timeout=(connect_timeout, read_timeout),
                allow_redirects=options.allow_redirects,
                stream=True,
            )
        except (requests.RequestException, OSError) as e:
            raise TransportFailure(str(e)) from e

    def _iter_body(self, response: requests.Response, deadline: Optional[float]):
        """Yield body chunks, enforcing the overall transfer deadline."""
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                if deadline is not None and time.monotonic() > deadline:
                    raise TransportFailure("Transfer exceeded the overall timeout")
                if chunk:
                    yield chunk
        except (requests.RequestException, OSError) as e:
            raise TransportFailure(str(e)) from e

    def _read_body(self, response: requests.Response, deadline: Optional[float]) -> bytes:
        return b"".join(self._iter_body(response, deadline))

    def _error_body(self, response: requests.Response, deadline: Optional[float]) -> str:
        try:
            return self._read_body(response, deadline).decode("utf-8", errors="replace")
        except TransportFailure:
            return ""

    def _download(self, response: requests.Response, destination: Path,
                  deadline: Optional[float]) -> DownloadedFile:
        try:
            handle = open(destination, "wb")
        except OSError as e:
            raise ConfigError(f"Cannot write to {destination}: {e}") from e

        try:
            with handle:
                for chunk in self._iter_body(response, deadline):
                    handle.write(chunk)
        except TransportFailure:
            destination.unlink(missing_ok=True)
            raise
        except OSError as e:
            destination.unlink(missing_ok=True)
            raise ConfigError(f"Cannot write to {destination}: {e}") from e

        logger.info(f"Saved response from {self.endpoint} to {destination}")
        return DownloadedFile(path=destination)

    def _decode(self, body: bytes) -> ReportResult:
        text = body.decode("utf-8", errors="replace")
        if not text.strip():
            raise LogicalFailure("Empty response body")

        try:
            return ReportResult.from_dict(json.loads(text))
        except ValueError as e:
            raise LogicalFailure(f"Undecodable response ({e})", text) from e
