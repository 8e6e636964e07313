"""
Data models for the phone-home report.

Covers the request context a report is built from, the outbound payload,
the decoded remote result and the options a single send accepts.
"""

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlsplit


class LicenseKeyStatus(Enum):
    """License key status reported by the remote service."""

    VALID = "Valid"
    INVALID = "Invalid"
    MISMATCHED_DOMAIN = "MismatchedDomain"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: Any) -> "LicenseKeyStatus":
        """Map a wire value onto a status, matching names and values case-insensitively."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            needle = value.strip().lower()
            for status in cls:
                if needle in (status.value.lower(), status.name.lower()):
                    return status
            if needle == "mismatched":
                return cls.MISMATCHED_DOMAIN
        return cls.UNKNOWN


@dataclass(frozen=True)
class RequestContext:
    """The incoming web request a report is made on behalf of."""

    url: str
    host_name: str
    ip: Optional[str] = None
    port: Optional[int] = None

    @classmethod
    def from_environ(cls, environ: Dict[str, Any]) -> "RequestContext":
        """Build a context from a WSGI environ mapping."""
        scheme = environ.get("wsgi.url_scheme", "http")
        host = environ.get("HTTP_HOST") or environ.get("SERVER_NAME", "localhost")
        path = environ.get("SCRIPT_NAME", "") + environ.get("PATH_INFO", "")
        query = environ.get("QUERY_STRING")
        url = f"{scheme}://{host}{path or '/'}"
        if query:
            url = f"{url}?{query}"

        try:
            port = int(environ.get("SERVER_PORT", ""))
        except ValueError:
            port = None

        return cls(
            url=url,
            host_name=host.split(":")[0],
            ip=environ.get("REMOTE_ADDR"),
            port=port,
        )

    @classmethod
    def from_url(cls, url: str, ip: Optional[str] = None) -> "RequestContext":
        """Build a context from a site URL, for reports made outside a request."""
        parts = urlsplit(url)
        port = parts.port or (443 if parts.scheme == "https" else 80)
        return cls(url=url, host_name=parts.hostname or "", ip=ip, port=port)


@dataclass(frozen=True)
class ReportPayload:
    """Host and application metadata sent to the remote endpoint."""

    license_key: Optional[str]
    request_url: str
    request_ip: Optional[str]
    request_time: int
    request_port: Optional[int]
    local_build: str
    local_version: str
    local_edition: str
    user_email: Optional[str]
    track: str
    data: Optional[Any] = None
    host_name: str = field(default="", compare=False)

    @property
    def missing_license_key(self) -> bool:
        return not self.license_key

    def with_data(self, data: Any) -> "ReportPayload":
        """Return a copy carrying a caller-supplied data blob."""
        return replace(self, data=data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire representation."""
        wire = {
            "licenseKey": self.license_key,
            "requestUrl": self.request_url,
            "requestIp": self.request_ip,
            "requestTime": self.request_time,
            "requestPort": self.request_port,
            "localBuild": self.local_build,
            "localVersion": self.local_version,
            "localEdition": self.local_edition,
            "userEmail": self.user_email,
            "track": self.track,
        }
        if self.data is not None:
            wire["data"] = self.data
        return wire


_FALSE_STRINGS = {"", "0", "false", "no", "off"}


def _parse_flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    if isinstance(value, (bool, int, float)):
        return bool(value)
    return False


@dataclass(frozen=True)
class ReportResult:
    """Structured model decoded from a successful remote response."""

    license_key_status: LicenseKeyStatus
    licensed_edition: Optional[Any] = None
    license_key: Optional[str] = None
    licensed_domain: Optional[str] = None
    edition_testable_domain: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReportResult":
        """Create from a decoded JSON object.

        Raises:
            ValueError: If ``data`` is not a JSON object
        """
        if not isinstance(data, dict):
            raise ValueError(f"Expected a JSON object, got {type(data).__name__}")

        for key in ("licenseKey", "licensedDomain"):
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{key} must be a string, got {type(value).__name__}")

        return cls(
            license_key_status=LicenseKeyStatus.parse(data.get("licenseKeyStatus")),
            licensed_edition=data.get("licensedEdition"),
            license_key=data.get("licenseKey") or None,
            licensed_domain=data.get("licensedDomain") or None,
            edition_testable_domain=_parse_flag(data.get("editionTestableDomain")),
        )

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["license_key_status"] = self.license_key_status.value
        return result


@dataclass(frozen=True)
class DownloadedFile:
    """Result of a send whose response body was streamed to a file."""

    path: Path

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class SendOptions:
    """Per-call transfer options.

    Attributes:
        timeout: Seconds allowed for the whole transfer, headers and body
        connect_timeout: Seconds allowed to establish the connection
        allow_redirects: Whether to follow redirects
        destination_file: Stream the body to this path instead of decoding it
    """

    timeout: float = 30.0
    connect_timeout: float = 2.0
    allow_redirects: bool = True
    destination_file: Optional[Path] = None
