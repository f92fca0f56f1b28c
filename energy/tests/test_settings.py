import importlib
import sys

import pytest
from django.core.exceptions import ImproperlyConfigured

ENV_KEYS = ("DEBUG", "ALLOWED_HOSTS", "SECRET_KEY", "JWT_SECRET", "DATABASE_PASSWORD")


def load_settings(monkeypatch, name, **env):
    """Import a fresh copy of a settings module under the given environment."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setattr("dotenv.load_dotenv", lambda *args, **kwargs: False)
    for module in ("energy_tracker.settings.base", f"energy_tracker.settings.{name}"):
        monkeypatch.delitem(sys.modules, module, raising=False)
    return importlib.import_module(f"energy_tracker.settings.{name}")


def test_local_debug_is_off_without_env(monkeypatch):
    settings = load_settings(monkeypatch, "local")

    assert settings.DEBUG is False
    assert "localhost" in settings.ALLOWED_HOSTS


def test_local_debug_follows_env(monkeypatch):
    settings = load_settings(monkeypatch, "local", DEBUG="1")

    assert settings.DEBUG is True


def test_production_forces_debug_off(monkeypatch):
    settings = load_settings(
        monkeypatch, "production",
        DEBUG="1", ALLOWED_HOSTS="energy.example.com",
        SECRET_KEY="prod-secret", JWT_SECRET="prod-jwt-secret",
    )

    assert settings.DEBUG is False
    assert settings.ALLOWED_HOSTS == ["energy.example.com"]
    assert settings.DATABASES["default"]["ENGINE"] == "django.db.backends.postgresql"


@pytest.mark.parametrize("missing", ["ALLOWED_HOSTS", "SECRET_KEY", "JWT_SECRET"])
def test_production_requires_deployment_values(monkeypatch, missing):
    env = {
        "ALLOWED_HOSTS": "energy.example.com",
        "SECRET_KEY": "prod-secret",
        "JWT_SECRET": "prod-jwt-secret",
    }
    del env[missing]

    with pytest.raises(ImproperlyConfigured, match=missing):
        load_settings(monkeypatch, "production", **env)
