from pathlib import Path

import pytest

from chameleon.history.recent import RecentHistory
from chameleon.history.saved import SavedHistory
from chameleon.storage import SQLAlchemyRecordStorage


class RecordingShell:
    """Shell double that remembers what it was asked to do.
    呼び出し内容を記録するだけのシェル。
    """

    def __init__(self):
        self.opened = []
        self.revealed = []

    def open(self, path: Path) -> None:
        self.opened.append(path)

    def reveal(self, path: Path) -> None:
        self.revealed.append(path)


@pytest.fixture
def shell():
    return RecordingShell()


@pytest.fixture
def make_file(tmp_path):
    def _make(name: str, content: str = "Test content") -> Path:
        path = tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    return _make


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'history.db'}"


@pytest.fixture
def saved_history(database_url, shell):
    return SavedHistory(SQLAlchemyRecordStorage.from_url(database_url), shell=shell)


@pytest.fixture
def recent_history(shell):
    return RecentHistory(shell=shell)
