"""Common test fixtures for zettelkit."""

import tempfile
from pathlib import Path
from typing import List, Optional

import pytest

from zettelkit.config import config
from zettelkit.observability import metrics
from zettelkit.services.backlink_service import BacklinkService
from zettelkit.services.graph_service import GraphService
from zettelkit.services.rename_service import RenameService
from zettelkit.services.sync_service import SyncService
from zettelkit.storage.note_index import NoteIndex


class FakeEditor:
    """Stands in for the external editor.

    Records every path it is asked to open and, when ``content`` is set,
    replaces the file with it (``{title}`` is substituted).
    """

    def __init__(self, content: Optional[str] = None):
        self.content = content
        self.opened: List[Path] = []

    def __call__(self, path: Path) -> None:
        self.opened.append(path)
        if self.content is not None:
            path.write_text(self.content.replace("{title}", path.stem), encoding="utf-8")


class FakeConfirm:
    """Answers every prompt with ``answer`` and remembers the prompts."""

    def __init__(self, answer: bool = True):
        self.answer = answer
        self.prompts: List[str] = []

    def __call__(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.answer


@pytest.fixture
def temp_dirs():
    """Create temporary directories for notes and database."""
    with tempfile.TemporaryDirectory() as notes_dir:
        with tempfile.TemporaryDirectory() as db_dir:
            yield Path(notes_dir), Path(db_dir)


@pytest.fixture
def test_config(temp_dirs, monkeypatch):
    """Configure with test paths (auto-restored even on crash)."""
    notes_dir, db_dir = temp_dirs
    monkeypatch.setattr(config, "zettelkasten_dir", notes_dir)
    monkeypatch.setattr(config, "database_path", db_dir / "test_index.db")
    monkeypatch.setattr(config, "max_workers", 4)
    monkeypatch.setattr(config, "editor", "true")
    yield config


@pytest.fixture(autouse=True)
def _reset_metrics():
    metrics.reset()
    yield


@pytest.fixture
def zk_root(test_config) -> Path:
    return test_config.zettelkasten_dir


@pytest.fixture
def write_note(zk_root):
    """Write a note file: ``write_note(title, body, project=None) -> Path``."""

    def _write(title: str, body: str = "", project: Optional[str] = None) -> Path:
        directory = zk_root.joinpath(*project.split("/")) if project else zk_root
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / f"{title}.md"
        path.write_text(body, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def note_index(test_config):
    """Create a test index over the temp collection."""
    index = NoteIndex()
    yield index
    index.close()


@pytest.fixture
def fake_editor():
    return FakeEditor()


@pytest.fixture
def make_editor():
    """Factory for editors that write ``content`` into the opened file."""
    return FakeEditor


@pytest.fixture
def fake_confirm():
    return FakeConfirm(answer=True)


@pytest.fixture
def make_confirm():
    """Factory for prompts answering a fixed ``answer``."""
    return FakeConfirm


@pytest.fixture
def sync_service(note_index, fake_editor):
    return SyncService(index=note_index, editor=fake_editor)


@pytest.fixture
def rename_service(note_index, fake_confirm):
    return RenameService(index=note_index, confirm=fake_confirm)


@pytest.fixture
def backlink_service(note_index):
    return BacklinkService(index=note_index)


@pytest.fixture
def graph_service(note_index):
    return GraphService(index=note_index)
