"""Tests for application configuration."""
import pytest

from core.config import ConfigError, Settings, get_settings

_CREDENTIAL_VARS = (
    "STORE_URL",
    "STORE_API_KEY",
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "NEXT_PUBLIC_SUPABASE_URL",
    "NEXT_PUBLIC_SUPABASE_ANON_KEY",
)


@pytest.fixture
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path) -> pytest.MonkeyPatch:
    """Remove credential env vars and run from a directory without a .env file."""
    for name in _CREDENTIAL_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield monkeypatch
    get_settings.cache_clear()


class TestStoreCredentials:
    """Tests for required store credentials."""

    def test__settings__reads_store_prefixed_vars(self, clean_env: pytest.MonkeyPatch) -> None:
        """STORE_URL and STORE_API_KEY populate the store settings."""
        clean_env.setenv("STORE_URL", "https://abc.store.test/")
        clean_env.setenv("STORE_API_KEY", "anon")

        settings = Settings(_env_file=None)

        assert settings.store_url == "https://abc.store.test/"
        assert settings.store_api_key == "anon"
        assert settings.store_base_url == "https://abc.store.test"

    def test__settings__reads_public_frontend_vars(self, clean_env: pytest.MonkeyPatch) -> None:
        """The hosted frontend's NEXT_PUBLIC_ variables are accepted as aliases."""
        clean_env.setenv("NEXT_PUBLIC_SUPABASE_URL", "https://xyz.supabase.co")
        clean_env.setenv("NEXT_PUBLIC_SUPABASE_ANON_KEY", "public-key")

        settings = Settings(_env_file=None)

        assert settings.store_url == "https://xyz.supabase.co"
        assert settings.store_api_key == "public-key"

    def test__get_settings__missing_credentials_raises_config_error(
        self, clean_env: pytest.MonkeyPatch,  # noqa: ARG002
    ) -> None:
        """Missing credentials fail fast with ConfigError."""
        with pytest.raises(ConfigError) as exc_info:
            get_settings()

        assert exc_info.value.reason == "missing-credentials"
        assert "STORE_URL" in str(exc_info.value)

    def test__get_settings__blank_api_key_raises_config_error(
        self, clean_env: pytest.MonkeyPatch,
    ) -> None:
        """An empty variable is treated the same as a missing one."""
        clean_env.setenv("STORE_URL", "https://abc.store.test")
        clean_env.setenv("STORE_API_KEY", "   ")

        with pytest.raises(ConfigError):
            get_settings()

    def test__get_settings__returns_cached_instance(self, clean_env: pytest.MonkeyPatch) -> None:
        """Settings are constructed once per process."""
        clean_env.setenv("STORE_URL", "https://abc.store.test")
        clean_env.setenv("STORE_API_KEY", "anon")

        assert get_settings() is get_settings()


class TestDefaults:
    """Tests for optional settings."""

    def test__defaults(self) -> None:
        """Optional settings have sensible defaults."""
        settings = Settings(_env_file=None, store_url="https://a.test", store_api_key="k")

        assert settings.store_request_timeout == 30.0
        assert settings.feed_path == "/realtime/v1/changes"
        assert settings.feed_retry_initial_seconds == 1.0
        assert settings.feed_retry_max_seconds == 30.0
        assert settings.max_title_length == 500

    def test__overrides_from_env(self, clean_env: pytest.MonkeyPatch) -> None:
        """Optional settings can be overridden from the environment."""
        clean_env.setenv("STORE_URL", "https://a.test")
        clean_env.setenv("STORE_API_KEY", "k")
        clean_env.setenv("FEED_PATH", "/feed")
        clean_env.setenv("MAX_TITLE_LENGTH", "120")

        settings = Settings(_env_file=None)

        assert settings.feed_path == "/feed"
        assert settings.max_title_length == 120
