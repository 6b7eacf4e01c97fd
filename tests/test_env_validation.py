import os

import pytest

from env_validation import (
    DEFAULT_ISSUER,
    DEFAULT_VERIFY_URL,
    EnvironmentError,
    get_env_bool,
    load_settings,
    validate_environment,
)


def test_defaults_are_applied(clean_env):
    settings = load_settings()

    assert settings.issuer_name == DEFAULT_ISSUER
    assert settings.verify_base_url == DEFAULT_VERIFY_URL
    assert settings.log_level == "INFO"
    assert settings.credential_levels_path is None
    assert os.environ["CREDENTIAL_ISSUER"] == DEFAULT_ISSUER


def test_overrides_are_read_from_environment(clean_env, tmp_path):
    catalog = tmp_path / "catalog.json"
    catalog.write_text("{}", encoding="utf-8")
    clean_env.setenv("CREDENTIAL_ISSUER", "Acme Academy")
    clean_env.setenv("CREDENTIAL_VERIFY_URL", "https://acme.test/verify/")
    clean_env.setenv("LOG_LEVEL", "debug")
    clean_env.setenv("BADGE_CATALOG_PATH", str(catalog))

    settings = load_settings()

    assert settings.issuer_name == "Acme Academy"
    assert settings.verify_base_url == "https://acme.test/verify"
    assert settings.log_level == "DEBUG"
    assert settings.badge_catalog_path == catalog


@pytest.mark.parametrize(
    "var, value",
    [
        ("CREDENTIAL_VERIFY_URL", "ftp://verify.example"),
        ("LOG_LEVEL", "LOUD"),
        ("CREDENTIAL_LEVELS_PATH", "/nonexistent/levels.json"),
    ],
)
def test_invalid_values_raise(clean_env, var, value):
    clean_env.setenv(var, value)
    with pytest.raises(EnvironmentError):
        validate_environment()


@pytest.mark.parametrize(
    "value, expected",
    [("1", True), ("TRUE", True), ("on", True), ("0", False), ("no", False)],
)
def test_get_env_bool(clean_env, value, expected):
    clean_env.setenv("REPORT_PRETTY", value)
    assert get_env_bool("REPORT_PRETTY") is expected


def test_get_env_bool_default(clean_env):
    assert get_env_bool("REPORT_PRETTY", True) is True
