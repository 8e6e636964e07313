"""Error types for Beacon.

ConfigError and AlreadyExistsError are raised to callers. TransportFailure and
LogicalFailure stay inside the report client, which resolves them to a ``None``
result plus a log entry.
"""


class BeaconError(Exception):
    """Base class for Beacon errors."""


class ConfigError(BeaconError):
    """The local environment prevents a required write or holds bad settings."""


class AlreadyExistsError(BeaconError):
    """Refusal to overwrite an existing license key file."""

    def __init__(self, path):
        super().__init__(f"Cannot overwrite an existing license key file: {path}")
        self.path = path


class TransportFailure(BeaconError):
    """No response was received from the remote endpoint."""


class LogicalFailure(BeaconError):
    """A response was received but it was unusable."""

    def __init__(self, message: str, body: str = ""):
        super().__init__(message)
        self.body = body
