"""Tests for config/settings.py."""

from scorekit.config import Settings, get_settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        settings = Settings()

        assert settings.state_dir == ".scorekit"
        assert settings.log_level == "INFO"
        assert settings.command_timeout is None
        assert settings.http_timeout is None

    def test_environment_prefix(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("SCOREKIT_STATE_DIR", "/tmp/state")
        monkeypatch.setenv("SCOREKIT_COMMAND_TIMEOUT", "2.5")
        monkeypatch.setenv("SCOREKIT_DEBUG", "true")

        settings = Settings()

        assert settings.state_dir == "/tmp/state"
        assert settings.command_timeout == 2.5
        assert settings.debug is True

    def test_dotenv_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / ".env").write_text("SCOREKIT_HTTP_TIMEOUT=7\n")

        assert Settings().http_timeout == 7.0

    def test_get_settings_cached(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)

        assert get_settings() is get_settings()
