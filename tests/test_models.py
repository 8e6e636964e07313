"""
Tests for report data models.
"""

import dataclasses

import pytest

from beacon.models import LicenseKeyStatus, ReportPayload, ReportResult, RequestContext


class TestRequestContext:
    """Test request context construction."""

    def test_from_environ(self):
        context = RequestContext.from_environ({
            "wsgi.url_scheme": "https",
            "HTTP_HOST": "example.com:8443",
            "SCRIPT_NAME": "/cms",
            "PATH_INFO": "/admin/utils",
            "QUERY_STRING": "tab=info",
            "SERVER_PORT": "8443",
            "REMOTE_ADDR": "198.51.100.4",
        })
        assert context.url == "https://example.com:8443/cms/admin/utils?tab=info"
        assert context.host_name == "example.com"
        assert context.port == 8443
        assert context.ip == "198.51.100.4"

    def test_from_environ_minimal(self):
        context = RequestContext.from_environ({"SERVER_NAME": "localhost"})
        assert context.url == "http://localhost/"
        assert context.port is None
        assert context.ip is None

    def test_from_url(self):
        context = RequestContext.from_url("https://example.com/site")
        assert context.host_name == "example.com"
        assert context.port == 443


class TestLicenseKeyStatus:
    """Test wire value parsing."""

    @pytest.mark.parametrize("value,expected", [
        ("Valid", LicenseKeyStatus.VALID),
        ("valid", LicenseKeyStatus.VALID),
        ("MismatchedDomain", LicenseKeyStatus.MISMATCHED_DOMAIN),
        ("mismatched", LicenseKeyStatus.MISMATCHED_DOMAIN),
        ("INVALID", LicenseKeyStatus.INVALID),
        ("bogus", LicenseKeyStatus.UNKNOWN),
        (None, LicenseKeyStatus.UNKNOWN),
        (3, LicenseKeyStatus.UNKNOWN),
    ])
    def test_parse(self, value, expected):
        assert LicenseKeyStatus.parse(value) == expected


class TestReportResult:
    """Test decoding the remote result."""

    def test_from_dict(self):
        result = ReportResult.from_dict({
            "licenseKey": "KEY",
            "licenseKeyStatus": "Valid",
            "licensedEdition": 2,
            "editionTestableDomain": 1,
            "somethingNew": "ignored",
        })
        assert result.license_key == "KEY"
        assert result.licensed_edition == 2
        assert result.edition_testable_domain is True
        assert result.licensed_domain is None

    def test_empty_key_is_absent(self):
        assert ReportResult.from_dict({"licenseKey": ""}).license_key is None

    def test_rejects_non_object(self):
        with pytest.raises(ValueError):
            ReportResult.from_dict(["Valid"])

    @pytest.mark.parametrize("field", ["licenseKey", "licensedDomain"])
    def test_rejects_non_string_values(self, field):
        with pytest.raises(ValueError, match=field):
            ReportResult.from_dict({field: 12345, "licenseKeyStatus": "Valid"})

    @pytest.mark.parametrize("value,expected", [
        (True, True),
        (1, True),
        ("1", True),
        ("true", True),
        (False, False),
        (0, False),
        ("0", False),
        ("false", False),
        ("No", False),
        (None, False),
        ([1], False),
    ])
    def test_edition_testable_domain_flag(self, value, expected):
        result = ReportResult.from_dict({"editionTestableDomain": value})
        assert result.edition_testable_domain is expected

    def test_to_dict(self):
        data = ReportResult(LicenseKeyStatus.INVALID, "personal").to_dict()
        assert data["license_key_status"] == "Invalid"
        assert data["licensed_edition"] == "personal"


class TestReportPayload:
    """Test the outbound payload."""

    def make_payload(self, **overrides):
        values = dict(
            license_key=None, request_url="http://localhost/", request_ip=None,
            request_time=0, request_port=80, local_build="1", local_version="1.0",
            local_edition="personal", user_email=None, track="stable",
        )
        values.update(overrides)
        return ReportPayload(**values)

    def test_frozen(self):
        payload = self.make_payload()
        with pytest.raises(dataclasses.FrozenInstanceError):
            payload.license_key = "changed"

    def test_host_name_not_sent(self):
        assert "hostName" not in self.make_payload(host_name="example.com").to_dict()

    def test_missing_key(self):
        assert self.make_payload().missing_license_key is True
        assert self.make_payload(license_key="").missing_license_key is True
        assert self.make_payload(license_key="K").missing_license_key is False
