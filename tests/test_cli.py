"""
Tests for the beacon command line interface.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from beacon.cli import build_parser, main
from beacon.errors import ConfigError
from beacon.models import DownloadedFile, LicenseKeyStatus, ReportResult
from beacon.requirements import RequirementCheck


def fake_catalog(checks):
    catalog = MagicMock()
    catalog.build_all.return_value = checks
    return catalog


class TestParser:
    """Test argument parsing."""

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_phone_home_args(self):
        args = build_parser().parse_args(["phone-home", "--no-redirects", "--timeout", "5"])
        assert args.no_redirects is True
        assert args.timeout == 5.0


class TestServerInfo:
    """Test the server-info command."""

    @patch("beacon.cli.RequirementCatalog")
    def test_json_output(self, mock_catalog, capsys):
        mock_catalog.from_environment.return_value = fake_catalog([
            RequirementCheck.basic("SSL support", True),
            RequirementCheck.basic("Wand (ImageMagick)", False, required=False),
        ])

        assert main(["server-info", "--json"]) == 0

        output = json.loads(capsys.readouterr().out)
        assert output["overall"] == "warning"
        assert [c["verdict"] for c in output["checks"]] == ["success", "warning"]

    @patch("beacon.cli.RequirementCatalog")
    def test_failure_exit_code(self, mock_catalog):
        mock_catalog.from_environment.return_value = fake_catalog([
            RequirementCheck.basic("SSL support", False),
        ])
        assert main(["server-info"]) == 1


class TestPhoneHome:
    """Test the phone-home command."""

    @pytest.fixture
    def config_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            f"license_key_path: {tmp_path / 'license.key'}\n"
            f"cache_path: {tmp_path / 'cache.db'}\n"
            "site_url: https://example.com/\n"
        )
        return path

    @patch("beacon.cli.RemoteReportClient")
    def test_result_printed(self, mock_client_cls, config_file):
        client = mock_client_cls.from_config.return_value
        client.send.return_value = ReportResult(LicenseKeyStatus.VALID, "pro")

        assert main(["--config", str(config_file), "phone-home", "--email", "a@example.com"]) == 0

        _, kwargs = client.create_payload.call_args
        assert kwargs["user_email"] == "a@example.com"

    @patch("beacon.cli.RemoteReportClient")
    def test_no_result(self, mock_client_cls, config_file):
        mock_client_cls.from_config.return_value.send.return_value = None
        assert main(["--config", str(config_file), "phone-home"]) == 1

    @patch("beacon.cli.RemoteReportClient")
    def test_download(self, mock_client_cls, config_file, tmp_path):
        client = mock_client_cls.from_config.return_value
        client.send.return_value = DownloadedFile(tmp_path / "update.zip")

        assert main(["--config", str(config_file), "phone-home", "--download", str(tmp_path / "update.zip")]) == 0

        options = client.send.call_args[0][1]
        assert options.destination_file == tmp_path / "update.zip"

    @patch("beacon.cli.RemoteReportClient")
    def test_key_directory_cannot_be_created(self, mock_client_cls, tmp_path):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        path = tmp_path / "config.yaml"
        path.write_text(
            f"license_key_path: {blocker / 'keys' / 'license.key'}\n"
            f"cache_path: {tmp_path / 'cache.db'}\n"
        )

        assert main(["--config", str(path), "phone-home"]) == 2
        mock_client_cls.from_config.assert_not_called()

    @patch("beacon.cli.RemoteReportClient")
    def test_config_error(self, mock_client_cls, config_file):
        mock_client_cls.from_config.return_value.send.side_effect = ConfigError("Key storage unwritable")
        assert main(["--config", str(config_file), "phone-home"]) == 2
