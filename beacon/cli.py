"""
Command line interface for Beacon.

    beacon server-info [--json]
    beacon phone-home [--email ADDRESS] [--download PATH] [--no-redirects] [--timeout N]
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from beacon import __version__
from beacon.cache import SqliteCache
from beacon.catalog import RequirementCatalog
from beacon.client import RemoteReportClient
from beacon.config import load_config
from beacon.errors import AlreadyExistsError, ConfigError
from beacon.keystore import FileKeyStore
from beacon.models import DownloadedFile, RequestContext
from beacon.requirements import RequirementCheck, Verdict, summarize

console = Console()

VERDICT_STYLES = {
    Verdict.SUCCESS: ("[green]✅[/green]", "green"),
    Verdict.WARNING: ("[yellow]⚠️[/yellow]", "yellow"),
    Verdict.FAILED: ("[red]❌[/red]", "red"),
}


def display_requirements(checks: List[RequirementCheck]) -> None:
    table = Table(title="Server requirements", show_header=True)
    table.add_column("", width=3)
    table.add_column("Requirement")
    table.add_column("Required by")
    table.add_column("Notes", ratio=2)

    for check in checks:
        icon, style = VERDICT_STYLES[check.verdict]
        table.add_row(
            icon,
            f"[bold]{check.name}[/bold]",
            check.required_by,
            f"[{style}]{check.notes}[/{style}]" if check.notes else "",
        )

    console.print(table)


def server_info(args: argparse.Namespace) -> int:
    """Evaluate the requirement catalog for this interpreter."""
    checks = RequirementCatalog.from_environment().build_all()
    overall = summarize(checks)

    if args.json:
        print(json.dumps({
            "checks": [check.to_dict() for check in checks],
            "overall": overall.value,
        }, indent=2))
    else:
        display_requirements(checks)

    return 1 if overall == Verdict.FAILED else 0


def phone_home(args: argparse.Namespace) -> int:
    """Send a report to the configured endpoint."""
    try:
        config = load_config(args.config)
        if args.timeout is not None:
            config.timeout = args.timeout
        if args.no_redirects:
            config.allow_redirects = False
        try:
            config.license_key_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"Cannot create key directory {config.license_key_path.parent}: {e}") from e

        client = RemoteReportClient.from_config(
            config,
            cache=SqliteCache(str(config.cache_path)),
            key_store=FileKeyStore(),
        )
        payload = client.create_payload(
            RequestContext.from_url(config.site_url),
            user_email=args.email or config.user_email,
        )
        result = client.send(payload, config.send_options(args.download))
    except (ConfigError, AlreadyExistsError) as e:
        console.print(f"[red]❌ {e}[/red]")
        return 2

    if result is None:
        console.print("[yellow]⚠️  No update info available[/yellow]")
        return 1

    if isinstance(result, DownloadedFile):
        console.print(f"[green]✅ Saved {result.name}[/green]")
        return 0

    console.print_json(json.dumps(result.to_dict(), default=str))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="beacon",
        description="Server environment diagnostics and phone-home reporting",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("--config", type=Path, help="Path to config.yaml")
    subparsers = parser.add_subparsers(dest="command", required=True)

    info_parser = subparsers.add_parser("server-info", help="Check server requirements")
    info_parser.add_argument("--json", action="store_true", help="Output as JSON")
    info_parser.set_defaults(func=server_info)

    report_parser = subparsers.add_parser("phone-home", help="Send a report to the endpoint")
    report_parser.add_argument("--email", help="Contact email sent with the report")
    report_parser.add_argument("--download", type=Path, help="Save the response body to this file")
    report_parser.add_argument("--no-redirects", action="store_true", help="Do not follow redirects")
    report_parser.add_argument("--timeout", type=float, help="Overall transfer timeout in seconds")
    report_parser.set_defaults(func=phone_home)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
