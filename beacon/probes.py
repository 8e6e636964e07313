"""
Environment probes.

Everything the requirement catalog looks at is captured here once, into an
EnvironmentSnapshot, so building the catalog is a pure function of the
snapshot. Probes never raise; a probe that errors reports the capability as
missing and logs a warning.
"""

import codecs
import hashlib
import importlib
import importlib.util
import logging
import re
import sys
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Tuple

logger = logging.getLogger(__name__)

# Modules probed by presence alone
PROBED_MODULES = (
    "ssl",
    "zlib",
    "sqlite3",
    "pymysql",
    "MySQLdb",
    "mysql.connector",
    "PIL",
    "requests",
)

REQUIRED_SERVER_VARS = (
    "REQUEST_METHOD",
    "SCRIPT_NAME",
    "SERVER_NAME",
    "SERVER_PORT",
    "SERVER_PROTOCOL",
    "HTTP_HOST",
    "HTTP_ACCEPT",
    "HTTP_USER_AGENT",
)

CODEC_UNDER_TEST = "shift_jis"
CODEC_SAMPLE = "日本語のテキスト、半角ｶﾅ"


class Database(Protocol):
    """Database collaborator: runs a statement and returns rows."""

    def query(self, sql: str) -> Sequence[Any]: ...


@dataclass(frozen=True)
class EngineSupport:
    """One row of the storage engine listing."""
    name: str
    support: str


@dataclass(frozen=True)
class EnvironmentSnapshot:
    """Host state captured for one catalog build."""
    python_version: Tuple[int, ...]
    modules: Dict[str, bool] = field(default_factory=dict)
    server_environ: Optional[Mapping[str, Any]] = None
    db_version: Optional[Tuple[int, ...]] = None
    db_engines: Tuple[EngineSupport, ...] = ()
    imagemagick_available: bool = False
    cryptography_usable: bool = False
    scrypt_available: bool = False
    regex_utf8: bool = False
    filesystem_encoding: str = ""
    codec_present: bool = False
    codec_truncates: bool = False

    def has_module(self, name: str) -> bool:
        return self.modules.get(name, False)

    @classmethod
    def capture(cls, environ: Optional[Mapping[str, Any]] = None,
                database: Optional[Database] = None) -> "EnvironmentSnapshot":
        """
        Probe the running interpreter and, when given, the database.

        Args:
            environ: WSGI environ of the current request, if any
            database: Database collaborator used for the MySQL checks

        Returns:
            EnvironmentSnapshot
        """
        codec_present, codec_truncates = probe_codec(CODEC_UNDER_TEST)
        return cls(
            python_version=tuple(sys.version_info[:3]),
            modules={name: module_available(name) for name in PROBED_MODULES},
            server_environ=dict(environ) if environ is not None else None,
            db_version=query_server_version(database) if database is not None else None,
            db_engines=query_engines(database) if database is not None else (),
            imagemagick_available=probe_imagemagick(),
            cryptography_usable=probe_cryptography(),
            scrypt_available=hasattr(hashlib, "scrypt"),
            regex_utf8=probe_regex_utf8(),
            filesystem_encoding=sys.getfilesystemencoding(),
            codec_present=codec_present,
            codec_truncates=codec_truncates,
        )


def module_available(name: str) -> bool:
    """Check if a module can be found without importing it."""
    try:
        return importlib.util.find_spec(name) is not None
    except (ImportError, ValueError):
        # Parent package of a dotted name is missing
        return False


def probe_imagemagick() -> bool:
    """Wand imports only when the MagickWand shared library can be loaded."""
    try:
        importlib.import_module("wand.image")
        return True
    except ImportError:
        return False
    except Exception as e:
        logger.warning(f"Could not load ImageMagick bindings: {e}")
        return False


def probe_cryptography() -> bool:
    """Check that cryptography imports and can complete a Fernet round trip."""
    try:
        from cryptography.fernet import Fernet
    except ImportError:
        return False

    try:
        fernet = Fernet(Fernet.generate_key())
        return fernet.decrypt(fernet.encrypt(b"beacon")) == b"beacon"
    except Exception as e:
        logger.warning(f"cryptography is installed but not usable: {e}")
        return False


def probe_regex_utf8() -> bool:
    try:
        return re.fullmatch(".", "Ü") is not None
    except re.error:
        return False


def probe_codec(codec: str, sample: str = CODEC_SAMPLE) -> Tuple[bool, bool]:
    """
    Check a multibyte codec for presence and for the truncation bug.

    The sample is decoded through an incremental decoder fed one byte at a
    time; a decoder that drops partial sequences returns a shorter string.

    Returns:
        Tuple of (present, truncates)
    """
    try:
        codecs.lookup(codec)
    except LookupError:
        return False, False

    try:
        encoded = sample.encode(codec)
        decoder = codecs.getincrementaldecoder(codec)()
        decoded = "".join(decoder.decode(encoded[i:i + 1]) for i in range(len(encoded)))
        decoded += decoder.decode(b"", final=True)
    except Exception as e:
        logger.warning(f"{codec} codec probe failed: {e}")
        return True, True

    return True, decoded != sample


def check_server_vars(environ: Optional[Mapping[str, Any]]) -> str:
    """
    Validate the WSGI environ.

    Returns:
        An empty string when the environ is usable, else a description of the problem
    """
    if environ is None:
        return "No request environment is available."

    missing = [var for var in REQUIRED_SERVER_VARS if var not in environ]
    if missing:
        return f"The request environment does not have {', '.join(missing)}."

    if not any(key in environ for key in ("PATH_INFO", "RAW_URI", "REQUEST_URI")):
        return (
            "Unable to determine URL path info. Make sure PATH_INFO "
            "(or RAW_URI / REQUEST_URI) is set by the server."
        )

    return ""


def parse_version(value: Any) -> Optional[Tuple[int, ...]]:
    """Extract a numeric version tuple from strings like '8.0.34-0ubuntu0.22.04.1'."""
    match = re.match(r"\s*(\d+(?:\.\d+)*)", str(value))
    if not match:
        return None
    return tuple(int(part) for part in match.group(1).split("."))


def _row_value(row: Any, *names: str, index: int = 0) -> Any:
    if isinstance(row, Mapping):
        lowered = {str(k).lower(): v for k, v in row.items()}
        for name in names:
            if name.lower() in lowered:
                return lowered[name.lower()]
        return next(iter(row.values()), None) if not names else None
    return row[index]


def query_server_version(database: Database) -> Optional[Tuple[int, ...]]:
    try:
        rows = list(database.query("SELECT VERSION()"))
    except Exception as e:
        logger.warning(f"Could not query database server version: {e}")
        return None

    if not rows:
        return None
    return parse_version(_row_value(rows[0]))


def query_engines(database: Database) -> Tuple[EngineSupport, ...]:
    try:
        rows = list(database.query("SHOW ENGINES"))
    except Exception as e:
        logger.warning(f"Could not list database storage engines: {e}")
        return ()

    engines: List[EngineSupport] = []
    for row in rows:
        try:
            name = _row_value(row, "Engine", "engineName", index=0)
            support = _row_value(row, "Support", "supportFlag", index=1)
        except (IndexError, KeyError, TypeError):
            continue
        if name is not None:
            engines.append(EngineSupport(name=str(name), support=str(support or "")))
    return tuple(engines)


def engine_supported(engines: Sequence[EngineSupport], engine: str) -> bool:
    """True if ``engine`` is listed and not reported as unsupported."""
    return any(
        row.name.lower() == engine.lower() and row.support.lower() != "no"
        for row in engines
    )
