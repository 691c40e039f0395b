"""Tests for configuration module."""
from __future__ import annotations

from zkteco_sync.config import get_settings


def test_settings_defaults():
    """Test that settings load with defaults."""
    settings = get_settings()
    assert settings.API_PORT == 8000
    assert settings.API_KEY == "test-api-key"
    assert settings.ENVIRONMENT == "test"
    assert settings.ZK_PORT == 4370
    assert settings.ZK_PROFILE == "auto"
    assert settings.SYNC_INTERVAL_MINUTES == 30


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("ZK_TRANSPORT", "udp")
    monkeypatch.setenv("CACHE_DEVICE_INFO_MINUTES", "5")
    settings = get_settings()
    assert settings.ZK_TRANSPORT == "udp"
    assert settings.device_info_ttl == 300


def test_cors_origins(monkeypatch):
    """Test CORS origin parsing."""
    monkeypatch.setenv("API_CORS_ORIGINS", "http://a.local, http://b.local,")
    assert get_settings().cors_origins == ["http://a.local", "http://b.local"]


def test_settings_singleton():
    """Test that get_settings returns the same instance."""
    s1 = get_settings()
    s2 = get_settings()
    assert s1 is s2
