"""
Configuration Tests
===================

Tests for graph_proxy/config.py
"""

import pytest
from pydantic import ValidationError

from graph_proxy.config import Settings, validate_configuration


TENANT_ID = "11111111-2222-3333-4444-555555555555"
CLIENT_ID = "66666666-7777-8888-9999-000000000000"


def make_settings(**overrides):
    values = {
        "AZURE_TENANT_ID": TENANT_ID,
        "AZURE_CLIENT_ID": CLIENT_ID,
        "AZURE_CLIENT_SECRET": "secret",
    }
    values.update(overrides)
    return Settings(**values)


def test_defaults():
    settings = make_settings()

    assert settings.graph_base_url_str == "https://graph.microsoft.com/v1.0"
    assert settings.graph_scopes_list == [
        "User.Read",
        "MailboxSettings.Read",
        "Calendars.ReadWrite",
    ]
    assert settings.LOG_LEVEL == "INFO"
    assert settings.UPSTREAM_TIMEOUT_SECONDS is None


def test_guid_ids_are_lowercased():
    settings = make_settings(AZURE_TENANT_ID="AAAAAAAA-BBBB-CCCC-DDDD-EEEEEEEEEEEE")

    assert settings.AZURE_TENANT_ID == "aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee"
    assert settings.azure_authority == (
        "https://login.microsoftonline.com/aaaaaaaa-bbbb-cccc-dddd-eeeeeeeeeeee"
    )


def test_invalid_guid_rejected():
    with pytest.raises(ValidationError):
        make_settings(AZURE_CLIENT_ID="not-a-guid-but-exactly-36-chars-long")


def test_log_level_normalized():
    assert make_settings(LOG_LEVEL="debug").LOG_LEVEL == "DEBUG"

    with pytest.raises(ValidationError):
        make_settings(LOG_LEVEL="chatty")


def test_trailing_slash_removed_from_base_url():
    settings = make_settings(GRAPH_BASE_URL="https://graph.microsoft.com/beta/")

    assert settings.graph_base_url_str == "https://graph.microsoft.com/beta"


def test_allowed_origins_list():
    settings = make_settings(ALLOWED_ORIGINS="http://a.test, http://b.test ,")

    assert settings.allowed_origins_list == ["http://a.test", "http://b.test"]
    assert make_settings().allowed_origins_list == []


def test_validate_configuration_ok():
    report = validate_configuration(make_settings(ALLOWED_ORIGINS="http://a.test"))

    assert report["valid"] is True
    assert report["errors"] == []
    assert report["warnings"] == []


def test_validate_configuration_flags_missing_version_segment():
    report = validate_configuration(make_settings(GRAPH_BASE_URL="https://graph.microsoft.com"))

    assert report["valid"] is False
    assert any("version segment" in error for error in report["errors"])


def test_validate_configuration_warns_on_plain_http():
    report = validate_configuration(
        make_settings(GRAPH_BASE_URL="http://localhost:9000/v1.0", ALLOWED_ORIGINS="http://a.test")
    )

    assert report["valid"] is True
    assert any("HTTPS" in warning for warning in report["warnings"])
