"""
Unit tests for environment-driven settings
"""
from cromwell.core.config import Settings


class TestSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("DB_SLOW_QUERY_THRESHOLD", raising=False)
        monkeypatch.delenv("DB_QUERY_CACHE", raising=False)

        settings = Settings(_env_file=None)

        assert settings.DB_SLOW_QUERY_THRESHOLD == 1000
        assert settings.DB_QUERY_CACHE is True
        assert settings.REDIS_PREFIX == "cromwell:"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("DB_SLOW_QUERY_THRESHOLD", "250")
        monkeypatch.setenv("DB_QUERY_CACHE", "false")
        monkeypatch.setenv("CACHE_MEMORY_MAX", "50")

        settings = Settings(_env_file=None)

        assert settings.DB_SLOW_QUERY_THRESHOLD == 250
        assert settings.DB_QUERY_CACHE is False
        assert settings.CACHE_MEMORY_MAX == 50

    def test_names_are_case_sensitive(self, monkeypatch):
        monkeypatch.delenv("API_PORT", raising=False)
        monkeypatch.setenv("api_port", "9999")

        assert Settings(_env_file=None).API_PORT == 4016

    def test_unknown_env_file_keys_are_ignored(self, monkeypatch, tmp_path):
        monkeypatch.delenv("API_PORT", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("API_PORT=5000\nUNRELATED_KEY=1\n")

        settings = Settings(_env_file=str(env_file))

        assert settings.API_PORT == 5000
        assert not hasattr(settings, "UNRELATED_KEY")
