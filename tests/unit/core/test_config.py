"""
Unit Tests for Configuration Management.

Black box tests against the public interface of config.py.
Tests run against the real project files (YAML configs).
Failure scenarios use tmp_path to create controlled filesystems.
"""

import pytest

from notesync.core.config import (
    AppConfig,
    Settings,
    find_project_root,
    get_app_config,
    get_database_url,
    get_settings,
    load_yaml_config,
    validate_project_root,
)
from notesync.core.config_schema import (
    ApplicationSchema,
    LoggingSchema,
    RemoteSchema,
    SyncSchema,
)


@pytest.fixture(autouse=True)
def _clear_config_cache():
    """Clear lru_cache between tests so each test gets a fresh load."""
    get_settings.cache_clear()
    get_app_config.cache_clear()
    yield
    get_settings.cache_clear()
    get_app_config.cache_clear()


def _write_project(root, files: dict[str, str]) -> None:
    (root / ".project_root").touch()
    settings = root / "config" / "settings"
    settings.mkdir(parents=True)
    for name, content in files.items():
        (settings / name).write_text(content)


# =============================================================================
# find_project_root
# =============================================================================


class TestFindProjectRoot:
    """Tests for .project_root marker discovery."""

    def test_finds_root_from_project_directory(self):
        root = find_project_root()
        assert root.is_dir()
        assert (root / ".project_root").exists()

    def test_finds_root_from_subdirectory(self, monkeypatch):
        root = find_project_root()
        monkeypatch.chdir(root / "config" / "settings")
        assert find_project_root() == root

    def test_raises_when_no_marker_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(RuntimeError, match="Project root not found"):
            find_project_root()


class TestValidateProjectRoot:
    """Tests for the SystemExit wrapper around find_project_root."""

    def test_returns_path_when_marker_exists(self):
        root = validate_project_root()
        assert (root / ".project_root").exists()

    def test_exits_when_marker_missing(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(SystemExit):
            validate_project_root()


# =============================================================================
# YAML loading
# =============================================================================


class TestLoadYamlConfig:
    """Tests for raw YAML loading."""

    def test_loads_sync_yaml(self):
        raw = load_yaml_config("sync.yaml")
        assert raw["pull_policy"] in ("guarded", "always")

    def test_missing_file_raises(self):
        with pytest.raises(FileNotFoundError, match="missing.yaml"):
            load_yaml_config("missing.yaml")

    def test_empty_file_returns_empty_dict(self, tmp_path, monkeypatch):
        _write_project(tmp_path, {"empty.yaml": ""})
        monkeypatch.chdir(tmp_path)
        assert load_yaml_config("empty.yaml") == {}


class TestAppConfig:
    """Tests for validated, typed configuration."""

    def test_project_files_validate(self):
        config = AppConfig()
        assert isinstance(config.application, ApplicationSchema)
        assert isinstance(config.remote, RemoteSchema)
        assert isinstance(config.sync, SyncSchema)
        assert isinstance(config.logging, LoggingSchema)

    def test_remote_defaults_match_project_files(self):
        remote = AppConfig().remote
        assert remote.notes_path == "/api/notes/"
        assert remote.page_size == 20
        assert remote.retry.max_attempts >= 1

    def test_get_app_config_is_cached(self):
        assert get_app_config() is get_app_config()

    def test_unknown_key_is_rejected(self, tmp_path, monkeypatch):
        _write_project(tmp_path, {
            "application.yaml": "name: x\nversion: '1'\ndescription: d\nenvironment: test\ndebug: false\n",
            "database.yaml": "url: 'sqlite+aiosqlite:///:memory:'\n",
            "remote.yaml": "base_url: http://x\n",
            "sync.yaml": "pull_policy: guarded\nsurprise: 1\n",
            "logging.yaml": "level: INFO\nformat: json\nhandlers:\n  console: {enabled: true}\n"
                            "  file: {enabled: false, path: l.jsonl, max_bytes: 1, backup_count: 1}\n",
        })
        monkeypatch.chdir(tmp_path)
        with pytest.raises(ValueError, match="Invalid configuration in sync.yaml"):
            AppConfig()

    def test_invalid_pull_policy_is_rejected(self):
        with pytest.raises(Exception):
            SyncSchema(pull_policy="sometimes")


class TestSettings:
    """Tests for secrets loading."""

    def test_token_defaults_to_none(self, monkeypatch):
        monkeypatch.delenv("REMOTE_API_TOKEN", raising=False)
        assert Settings(_env_file=None).remote_api_token is None

    def test_token_read_from_environment(self, monkeypatch):
        monkeypatch.setenv("REMOTE_API_TOKEN", "secret")
        assert Settings(_env_file=None).remote_api_token == "secret"


class TestGetDatabaseUrl:
    """Tests for replica URL resolution."""

    def test_relative_sqlite_path_resolves_against_root(self, tmp_path, monkeypatch):
        _write_project(tmp_path, {
            "application.yaml": "name: x\nversion: '1'\ndescription: d\nenvironment: test\ndebug: false\n",
            "database.yaml": "url: sqlite+aiosqlite:///data/notes.db\n",
            "remote.yaml": "base_url: http://x\n",
            "sync.yaml": "{}\n",
            "logging.yaml": "level: INFO\nformat: json\nhandlers:\n  console: {enabled: true}\n"
                            "  file: {enabled: false, path: l.jsonl, max_bytes: 1, backup_count: 1}\n",
        })
        monkeypatch.chdir(tmp_path)

        url = get_database_url()

        assert url == f"sqlite+aiosqlite:///{tmp_path / 'data' / 'notes.db'}"
        assert (tmp_path / "data").is_dir()

    def test_memory_url_is_unchanged(self, tmp_path, monkeypatch):
        _write_project(tmp_path, {
            "application.yaml": "name: x\nversion: '1'\ndescription: d\nenvironment: test\ndebug: false\n",
            "database.yaml": "url: 'sqlite+aiosqlite:///:memory:'\n",
            "remote.yaml": "base_url: http://x\n",
            "sync.yaml": "{}\n",
            "logging.yaml": "level: INFO\nformat: json\nhandlers:\n  console: {enabled: true}\n"
                            "  file: {enabled: false, path: l.jsonl, max_bytes: 1, backup_count: 1}\n",
        })
        monkeypatch.chdir(tmp_path)

        assert get_database_url() == "sqlite+aiosqlite:///:memory:"
