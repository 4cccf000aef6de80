"""Tests for environment-driven settings."""

from dvingest.config import Settings


def test_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    config = Settings(_env_file=None)

    assert config.api_url == "http://localhost:8080"
    assert config.api_key is None
    assert config.parent_collection == "root"
    assert config.max_files_per_upload == 1000
    assert config.max_bytes_per_upload == 1024**3
    assert config.publish_poll_interval_ms == 3000
    assert config.publish_max_retries == 10
    assert config.max_import_workers >= 1


def test_env_prefix(tmp_path, monkeypatch):
    monkeypatch.setenv("DVINGEST_API_URL", "https://demo.example.org")
    monkeypatch.setenv("DVINGEST_API_KEY", "secret")
    monkeypatch.setenv("DVINGEST_MAX_FILES_PER_UPLOAD", "5")
    monkeypatch.setenv("DVINGEST_INBOX", str(tmp_path / "in"))
    monkeypatch.setenv("DVINGEST_OUTBOX", str(tmp_path / "out"))

    config = Settings(_env_file=None)

    assert config.api_url == "https://demo.example.org"
    assert config.api_key == "secret"
    assert config.max_files_per_upload == 5


def test_null_strings(tmp_path, monkeypatch):
    monkeypatch.setenv("DVINGEST_API_KEY", "null")
    monkeypatch.setenv("DVINGEST_TEMP_DIR", "none")

    config = Settings(_env_file=None, inbox=tmp_path / "in", outbox=tmp_path / "out")

    assert config.api_key is None
    assert config.temp_dir is None


def test_directories_created(tmp_path):
    config = Settings(
        _env_file=None,
        inbox=tmp_path / "in",
        outbox=tmp_path / "deep" / "out",
        temp_dir=tmp_path / "tmp",
    )

    assert config.outbox.is_dir()
    assert config.temp_dir.is_dir()
    assert config.outbox.is_absolute()
