import pytest
from pydantic import ValidationError

from core.config import Settings, get_settings


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)  # type: ignore[call-arg]


def test_defaults_match_service_limits():
    settings = _settings()

    assert settings.MAX_CORRECTION_CHARS == 20_000
    assert settings.MAX_TRANSLATION_CHARS == 16_000
    assert settings.MAX_ANNOTATIONS == 12
    assert settings.MIN_FIDELITY == 85


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("https://a.test, https://b.test", ["https://a.test", "https://b.test"]),
        ('["https://a.test"]', ["https://a.test"]),
        ("", []),
    ],
)
def test_cors_origins_accept_csv_and_json(raw, expected):
    assert _settings(CORS_ORIGINS=raw).CORS_ORIGINS == expected


def test_cors_origins_reject_bad_json():
    with pytest.raises(ValidationError):
        _settings(CORS_ORIGINS="[not json")


def test_wildcard_with_credentials_is_rejected():
    with pytest.raises(ValidationError):
        _settings(CORS_ORIGINS=["*"], ALLOW_CREDENTIALS=True)


@pytest.mark.parametrize(
    "overrides",
    [{"MAX_ANNOTATIONS": -1}, {"MAX_CORRECTION_CHARS": 0}, {"MIN_FIDELITY": 101}],
)
def test_invalid_limits_are_rejected(overrides):
    with pytest.raises(ValidationError):
        _settings(**overrides)


def test_environment_is_read_from_env(monkeypatch):
    monkeypatch.setenv("MAX_ANNOTATIONS", "5")

    assert _settings().MAX_ANNOTATIONS == 5


def test_production_requires_provider_key(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "production")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    get_settings.cache_clear()
    try:
        with pytest.raises(RuntimeError):
            get_settings()
    finally:
        monkeypatch.setenv("ENVIRONMENT", "test")
        get_settings.cache_clear()


def test_unknown_environment_is_rejected(monkeypatch):
    monkeypatch.setenv("ENVIRONMENT", "staging")
    get_settings.cache_clear()
    try:
        with pytest.raises(ValueError):
            get_settings()
    finally:
        monkeypatch.setenv("ENVIRONMENT", "test")
        get_settings.cache_clear()
