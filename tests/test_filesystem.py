"""Tests for the note file primitives."""
import pytest

from zettelkit.exceptions import (
    ErrorCode,
    FileOperationError,
    NoteFileNotFoundError,
    ValidationError,
)
from zettelkit.storage.filesystem import (
    atomic_write_text,
    list_markdown_files,
    note_identity,
    read_text,
    rename_file,
)


class TestReadWrite:
    def test_atomic_write_and_read(self, tmp_path):
        path = tmp_path / "A.md"
        atomic_write_text(path, "line one\r\nline two\n")
        assert read_text(path) == "line one\r\nline two\n"
        assert [p.name for p in tmp_path.iterdir()] == ["A.md"]

    def test_atomic_write_overwrites(self, tmp_path):
        path = tmp_path / "A.md"
        path.write_text("old")
        atomic_write_text(path, "new")
        assert read_text(path) == "new"

    def test_write_into_missing_directory(self, tmp_path):
        with pytest.raises(NoteFileNotFoundError):
            atomic_write_text(tmp_path / "missing" / "A.md", "x")

    def test_read_missing(self, tmp_path):
        with pytest.raises(NoteFileNotFoundError) as exc_info:
            read_text(tmp_path / "nope.md")
        assert exc_info.value.code == ErrorCode.FILE_NOT_FOUND

    def test_read_undecodable(self, tmp_path):
        path = tmp_path / "bad.md"
        path.write_bytes(b"\xff\xfe\xfa")
        with pytest.raises(FileOperationError) as exc_info:
            read_text(path)
        assert not isinstance(exc_info.value, NoteFileNotFoundError)


class TestRename:
    def test_rename(self, tmp_path):
        src = tmp_path / "A.md"
        src.write_text("x")
        rename_file(src, tmp_path / "B.md")
        assert not src.exists()
        assert (tmp_path / "B.md").read_text() == "x"

    def test_rename_refuses_overwrite(self, tmp_path):
        (tmp_path / "A.md").write_text("a")
        (tmp_path / "B.md").write_text("b")
        with pytest.raises(FileOperationError) as exc_info:
            rename_file(tmp_path / "A.md", tmp_path / "B.md")
        assert exc_info.value.code == ErrorCode.FILE_RENAME_FAILED
        assert (tmp_path / "B.md").read_text() == "b"

    def test_rename_missing_source(self, tmp_path):
        with pytest.raises(NoteFileNotFoundError):
            rename_file(tmp_path / "A.md", tmp_path / "B.md")


class TestListing:
    def test_lists_notes_recursively_skipping_hidden(self, tmp_path):
        (tmp_path / "proj" / "sub").mkdir(parents=True)
        (tmp_path / ".git").mkdir()
        for rel in ["A.md", "proj/B.md", "proj/sub/C.md", ".git/D.md", ".E.md", "F.txt"]:
            (tmp_path / rel).write_text("")
        names = [p.relative_to(tmp_path).as_posix() for p in list_markdown_files(tmp_path)]
        assert names == ["A.md", "proj/B.md", "proj/sub/C.md"]

    def test_missing_root(self, tmp_path):
        with pytest.raises(NoteFileNotFoundError):
            list_markdown_files(tmp_path / "missing")


class TestNoteIdentity:
    def test_default_project(self, tmp_path):
        assert note_identity(tmp_path, tmp_path / "My Note.md") == ("My Note", None)

    def test_nested_project(self, tmp_path):
        path = tmp_path / "research" / "ml" / "Paper.md"
        assert note_identity(tmp_path, path) == ("Paper", "research/ml")

    def test_outside_collection(self, tmp_path):
        with pytest.raises(ValidationError) as exc_info:
            note_identity(tmp_path / "zk", tmp_path / "other" / "A.md")
        assert exc_info.value.code == ErrorCode.PATH_OUTSIDE_COLLECTION

    def test_not_markdown(self, tmp_path):
        with pytest.raises(ValidationError):
            note_identity(tmp_path, tmp_path / "A.txt")
