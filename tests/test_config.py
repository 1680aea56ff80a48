"""Unit tests for core/config.py -- Settings secret policy and defaults.

Settings() is constructed directly (not through the cached get_settings())
with monkeypatched environment so each case sees exactly the variables it sets.
"""

import pytest
from pydantic import ValidationError

from core.config import ADMIN_ACTION, Settings

_SECRET_VARS = ("DEVICES_SERVER_JWT_SECRET", "DEVICES_SERVER_ADMIN_SECRET", "DEVICES_SERVER_DEBUG")


@pytest.fixture
def clean_env(monkeypatch):
    for name in _SECRET_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_production_requires_jwt_secret(clean_env):
    clean_env.setenv("DEVICES_SERVER_ADMIN_SECRET", "admin-secret")
    with pytest.raises(ValidationError, match="DEVICES_SERVER_JWT_SECRET is required"):
        Settings(_env_file=None)


def test_production_requires_admin_secret(clean_env):
    clean_env.setenv("DEVICES_SERVER_JWT_SECRET", "x" * 32)
    with pytest.raises(ValidationError, match="DEVICES_SERVER_ADMIN_SECRET is required"):
        Settings(_env_file=None)


def test_debug_generates_missing_secrets(clean_env):
    clean_env.setenv("DEVICES_SERVER_DEBUG", "true")
    settings = Settings(_env_file=None)
    assert len(settings.jwt_secret) == 64
    assert settings.admin_secret
    assert settings.admin_secret != settings.jwt_secret


def test_short_jwt_secret_rejected(clean_env):
    clean_env.setenv("DEVICES_SERVER_JWT_SECRET", "short")
    clean_env.setenv("DEVICES_SERVER_ADMIN_SECRET", "admin-secret")
    with pytest.raises(ValidationError, match="at least 16 characters"):
        Settings(_env_file=None)


def test_admin_action_always_allowed(clean_env):
    clean_env.setenv("DEVICES_SERVER_DEBUG", "true")
    clean_env.setenv("DEVICES_SERVER_ALLOWED_ACTIONS", '["READ"]')
    settings = Settings(_env_file=None)
    assert settings.allowed_actions == [ADMIN_ACTION, "READ"]


def test_defaults(clean_env):
    clean_env.setenv("DEVICES_SERVER_DEBUG", "true")
    clean_env.delenv("DEVICES_SERVER_PORT", raising=False)
    settings = Settings(_env_file=None)
    assert settings.app_name == "Devices API Server"
    assert settings.token_issuer == "Rubicon BMS"
    assert settings.token_expire_days == 30
    assert settings.cookie_max_age_seconds == 86400
    assert settings.port is None
    assert settings.stop_file == "tmp/stop"
