"""
Requirement catalog for Beacon hosts.

Builds the fixed, ordered list of requirement checks from an environment
snapshot. The order is the order the checks are presented in; no check's
verdict depends on another's.
"""

import logging
from typing import Any, List, Mapping, Optional, Tuple

from beacon.probes import (
    CODEC_UNDER_TEST,
    Database,
    EnvironmentSnapshot,
    check_server_vars,
    engine_supported,
)
from beacon.requirements import RequirementCheck, format_version, summarize, Verdict

logger = logging.getLogger(__name__)

APP_NAME = "Beacon"

REQUIRED_PYTHON_VERSION = (3, 10, 0)
# First patch release of each affected minor line without the urllib.parse
# blocklist bypass (CVE-2023-24329)
SAFE_PYTHON_VERSIONS = {
    (3, 10): (3, 10, 12),
    (3, 11): (3, 11, 4),
}
PYTHON_VULNERABILITY = "urllib.parse blocklist bypass, CVE-2023-24329"

REQUIRED_MYSQL_VERSION = (5, 1, 0)
REQUIRED_ENGINE = "InnoDB"

MYSQL_DRIVERS = ("pymysql", "MySQLdb", "mysql.connector")

IMAGE_LIBRARY_NOTES = (
    "Pillow or Wand (ImageMagick) is required. Wand is recommended as it adds "
    "animated GIF support and preserves 8-bit and 24-bit PNGs during image transforms."
)


def safe_python_version(installed: Tuple[int, ...]) -> Tuple[int, ...]:
    """Patch threshold for the installed minor line; unaffected lines need only the minimum."""
    return SAFE_PYTHON_VERSIONS.get(tuple(installed[:2]), REQUIRED_PYTHON_VERSION)


class RequirementCatalog:
    """
    The fixed battery of environment requirements.

    Usage:
        catalog = RequirementCatalog.from_environment(environ=request.environ, database=db)
        for check in catalog.build_all():
            print(check)
    """

    def __init__(self, snapshot: EnvironmentSnapshot):
        self.snapshot = snapshot

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, Any]] = None,
                         database: Optional[Database] = None) -> "RequirementCatalog":
        return cls(EnvironmentSnapshot.capture(environ=environ, database=database))

    def build_all(self) -> List[RequirementCheck]:
        """
        Build every check against the snapshot.

        Returns:
            List of RequirementCheck in presentation order
        """
        snap = self.snapshot
        has_pillow = snap.has_module("PIL")
        has_wand = snap.imagemagick_available
        server_var_message = check_server_vars(snap.server_environ)

        checks = [
            RequirementCheck.version_vulnerability(
                "Python version",
                installed=snap.python_version,
                minimum=REQUIRED_PYTHON_VERSION,
                safe=safe_python_version(snap.python_version),
                required_by=APP_NAME,
                vulnerability=PYTHON_VULNERABILITY,
            ),
            RequirementCheck.basic(
                "WSGI server variables",
                server_var_message == "",
                required=True,
                required_by=APP_NAME,
                notes=server_var_message,
            ),
            RequirementCheck.basic(
                "SSL support",
                snap.has_module("ssl"),
                required=True,
                required_by=APP_NAME,
                notes=f"{APP_NAME} requires the ssl module in order to run.",
            ),
            RequirementCheck.basic(
                "zlib support",
                snap.has_module("zlib"),
                required=True,
                required_by=APP_NAME,
                notes="zlib is required for compressed transfers.",
            ),
            RequirementCheck.basic(
                "SQLite support",
                snap.has_module("sqlite3"),
                required=True,
                required_by="Report cache",
                notes="The sqlite3 module is required for the shared report cache.",
            ),
            RequirementCheck.basic(
                "MySQL driver",
                any(snap.has_module(name) for name in MYSQL_DRIVERS),
                required=True,
                required_by="Database layer",
                notes="PyMySQL, mysqlclient or MySQL Connector/Python is required "
                      "if you are using a MySQL database.",
            ),
            RequirementCheck.basic(
                "cryptography library",
                snap.cryptography_usable,
                required=True,
                required_by="Security helpers",
                notes="cryptography is required for encrypted storage.",
            ),
            RequirementCheck.basic(
                "Pillow",
                has_pillow,
                required=not has_wand,
                required_by=APP_NAME,
                notes=IMAGE_LIBRARY_NOTES,
            ),
            RequirementCheck.basic(
                "Wand (ImageMagick)",
                has_wand,
                required=not has_pillow,
                required_by=APP_NAME,
                notes=IMAGE_LIBRARY_NOTES,
            ),
            RequirementCheck.basic(
                "MySQL version",
                snap.db_version is not None and snap.db_version >= REQUIRED_MYSQL_VERSION,
                required=True,
                required_by=APP_NAME,
                notes=f"MySQL {format_version(REQUIRED_MYSQL_VERSION)} or higher is "
                      f"required to run {APP_NAME}.",
            ),
            RequirementCheck.basic(
                f"MySQL {REQUIRED_ENGINE} support",
                engine_supported(snap.db_engines, REQUIRED_ENGINE),
                required=True,
                required_by=APP_NAME,
                notes=f"{APP_NAME} requires the MySQL {REQUIRED_ENGINE} storage engine to run.",
            ),
            RequirementCheck.basic(
                "HTTP client",
                snap.has_module("requests"),
                required=True,
                required_by="Phone-home client",
                notes=f"{APP_NAME} requires requests in order to run.",
            ),
            RequirementCheck.basic(
                "scrypt password hashing",
                snap.scrypt_available,
                required=True,
                required_by="Password hashing",
                notes="hashlib.scrypt (OpenSSL 1.1+) is required for secure password storage.",
            ),
            RequirementCheck.basic(
                "Regex UTF-8 support",
                snap.regex_utf8,
                required=True,
                required_by=APP_NAME,
                notes="The re module must match non-ASCII characters as single characters.",
            ),
            RequirementCheck.basic(
                "UTF-8 filesystem encoding",
                snap.filesystem_encoding.lower().replace("-", "") == "utf8",
                required=True,
                required_by=APP_NAME,
                notes=f"{APP_NAME} requires a UTF-8 filesystem encoding "
                      f"(currently {snap.filesystem_encoding or 'unknown'}).",
            ),
            RequirementCheck.buggy_library(
                "CJK codecs",
                present=snap.codec_present,
                buggy=snap.codec_truncates,
                required_by=APP_NAME,
                bug=f"The {CODEC_UNDER_TEST} decoder truncates incrementally decoded input.",
                recommendation=f"The {CODEC_UNDER_TEST} codec is recommended.",
            ),
        ]

        failed = [check.name for check in checks if check.verdict == Verdict.FAILED]
        if failed:
            logger.debug(f"Failed requirements: {', '.join(failed)}")
        return checks

    def overall(self) -> Verdict:
        return summarize(self.build_all())
