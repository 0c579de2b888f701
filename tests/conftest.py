"""Pytest fixtures for dbupgrade tests."""

import pytest

from dbupgrade.config import set_settings

from tests.helpers.fakes import (
    FakeConnectionManager,
    InMemoryJournal,
    RecordingExecutor,
    RecordingLog,
)


@pytest.fixture(autouse=True)
def reset_settings():
    """Reload global settings from the environment for every test."""
    set_settings(None)
    yield
    set_settings(None)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove DBUPGRADE_* variables from the environment."""
    for name in [
        "DBUPGRADE_DATABASE",
        "DBUPGRADE_SCRIPTS_DIR",
        "DBUPGRADE_JOURNAL_TABLE",
        "DBUPGRADE_ROLLBACK_SUFFIX",
        "DBUPGRADE_CASE_INSENSITIVE",
        "DBUPGRADE_INCLUDE_SUBDIRECTORIES",
        "DBUPGRADE_TRANSACTION_MODE",
        "DBUPGRADE_CONNECT_TIMEOUT",
    ]:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def log():
    """Create a recording upgrade log."""
    return RecordingLog()


@pytest.fixture
def journal():
    """Create an empty in-memory journal."""
    return InMemoryJournal()


@pytest.fixture
def executor():
    """Create a recording script executor."""
    return RecordingExecutor()


@pytest.fixture
def connection_manager():
    """Create a fake connection manager."""
    return FakeConnectionManager()


@pytest.fixture
def scripts_dir(tmp_path):
    """Create a directory of SQLite scripts with rollbacks."""
    directory = tmp_path / "sql"
    directory.mkdir()
    (directory / "0001_create_users.sql").write_text(
        "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT);\n"
    )
    (directory / "0001_create_users_rollback.sql").write_text("DROP TABLE users;\n")
    (directory / "0002_create_posts.sql").write_text(
        "CREATE TABLE posts (id INTEGER PRIMARY KEY, user_id INTEGER);\n"
    )
    (directory / "0002_create_posts_rollback.sql").write_text("DROP TABLE posts;\n")
    (directory / "0003_add_index.sql").write_text(
        "CREATE INDEX idx_posts_user ON posts (user_id);\n"
    )
    (directory / "0003_add_index_rollback.sql").write_text("DROP INDEX idx_posts_user;\n")
    return directory
