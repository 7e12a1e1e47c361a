import pytest

from config import get_settings_module, load_settings


@pytest.mark.parametrize(
    "env, expected",
    [
        ("production", "config.production"),
        ("PROD", "config.production"),
        ("testing", "config.testing"),
        ("staging", "config.development"),
    ],
)
def test_app_env_selects_settings_module(monkeypatch, env, expected):
    monkeypatch.setenv("APP_ENV", env)
    assert get_settings_module() == expected


def test_testing_settings_expose_store_options(monkeypatch):
    monkeypatch.setenv("APP_ENV", "testing")
    settings = load_settings(configure_logging=False)

    assert settings.TESTING is True
    assert settings.WRITE_RETRY_ATTEMPTS >= 1
    assert set(settings.DB_CONFIG) == {"host", "port", "user", "password", "database"}
