"""Tests for application settings."""

import pytest

from app.config import Settings


def test_defaults(monkeypatch):
    monkeypatch.delenv("MISSING_VALUE_STATUS", raising=False)
    monkeypatch.delenv("DEFAULT_PANEL", raising=False)
    s = Settings(_env_file=None, analysis_service_url="http://analysis.test")
    assert s.missing_value_status == "unknown"
    assert s.default_panel == "cbc_basic"
    assert s.api_key == ""


def test_env_override(monkeypatch):
    monkeypatch.setenv("MISSING_VALUE_STATUS", "normal")
    monkeypatch.setenv("ANALYSIS_TIMEOUT_SECONDS", "5")
    with pytest.warns(UserWarning, match="MISSING_VALUE_STATUS"):
        s = Settings(_env_file=None, analysis_service_url="http://analysis.test")
    assert s.missing_value_status == "normal"
    assert s.analysis_timeout_seconds == 5.0


def test_warns_without_analysis_service(monkeypatch):
    monkeypatch.delenv("ANALYSIS_SERVICE_URL", raising=False)
    with pytest.warns(UserWarning, match="ANALYSIS_SERVICE_URL"):
        Settings(_env_file=None)


def test_invalid_missing_status(monkeypatch):
    monkeypatch.setenv("MISSING_VALUE_STATUS", "maybe")
    with pytest.raises(ValueError):
        Settings(_env_file=None)
