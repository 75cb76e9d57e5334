import logging
from unittest.mock import AsyncMock, patch

import pytest

from video_subtitles import __main__ as entrypoint
from video_subtitles import main as app_module
from video_subtitles.config import Settings


@pytest.fixture
def quiet_logging():
    with patch.object(entrypoint, "setup_logging", return_value=logging.getLogger("video_subtitles")):
        yield


@pytest.fixture
def credentials(monkeypatch):
    monkeypatch.setattr(app_module.settings, "aws_profile", "default")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

class TestSettings:
    def test_defaults(self, monkeypatch):
        for name in ("PORT", "SAMPLE_RATE", "SUBTITLES_DIR", "MAX_UPLOAD_SIZE"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None)

        assert settings.port == 8080
        assert settings.sample_rate == 16000
        assert settings.subtitles_dir == "subtitles"
        assert settings.max_upload_size == 1 << 30

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("PORT", "9090")
        monkeypatch.setenv("DEFAULT_LANGUAGE", "en-US")

        settings = Settings(_env_file=None)

        assert settings.port == 9090
        assert settings.default_language == "en-US"

    def test_credentials(self, monkeypatch):
        for name in ("AWS_PROFILE", "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY"):
            monkeypatch.delenv(name, raising=False)

        assert not Settings(_env_file=None).has_aws_credentials()
        assert Settings(_env_file=None, aws_profile="dev").has_aws_credentials()
        assert not Settings(_env_file=None, aws_access_key_id="AKIA").has_aws_credentials()
        assert Settings(
            _env_file=None, aws_access_key_id="AKIA", aws_secret_access_key="secret"
        ).has_aws_credentials()


# ---------------------------------------------------------------------------
# python -m video_subtitles
# ---------------------------------------------------------------------------

class TestMain:
    def test_missing_credentials_is_fatal(self, monkeypatch, quiet_logging):
        monkeypatch.setattr(app_module.settings, "aws_profile", None)
        monkeypatch.setattr(app_module.settings, "aws_access_key_id", None)

        assert entrypoint.main([]) == entrypoint.EXIT_MISSING_CREDENTIALS

    def test_directory_creation_failure_is_fatal(self, monkeypatch, tmp_path, credentials, quiet_logging):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("")
        monkeypatch.setattr(app_module.settings, "tmp_dir", str(blocker / "tmp"))

        assert entrypoint.main([]) == entrypoint.EXIT_DIRECTORIES

    def test_bind_failure_is_fatal(self, monkeypatch, tmp_path, credentials, quiet_logging):
        monkeypatch.setattr(app_module.settings, "tmp_dir", str(tmp_path / "tmp"))
        monkeypatch.setattr(app_module.settings, "subtitles_dir", str(tmp_path / "subtitles"))
        monkeypatch.setattr(app_module.settings, "port", app_module.settings.port)

        with patch.object(entrypoint, "serve", AsyncMock(side_effect=OSError("address already in use"))):
            assert entrypoint.main(["--port", "9999"]) == entrypoint.EXIT_START_FAILED

        assert app_module.settings.port == 9999
        assert (tmp_path / "tmp").is_dir()
        assert (tmp_path / "subtitles").is_dir()

    def test_parse_args(self):
        assert entrypoint.parse_args(["--port", "8181"]).port == 8181
        assert entrypoint.parse_args([]).port is None
