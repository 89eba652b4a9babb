"""File primitives for note files.

Every function reports a missing file as ``NoteFileNotFoundError`` and any
other OS failure as ``FileOperationError`` so callers can tell the two apart.
"""

import errno
import logging
import os
import uuid
from pathlib import Path
from typing import List, Optional, Tuple

from zettelkit.exceptions import (
    ErrorCode,
    FileOperationError,
    NoteFileNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

NOTE_SUFFIX = ".md"


def file_exists(path: Path) -> bool:
    """Whether ``path`` is an existing regular file."""
    return Path(path).is_file()


def read_text(path: Path) -> str:
    """Read a whole note file, line endings untouched."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            return f.read()
    except FileNotFoundError:
        raise NoteFileNotFoundError(str(path), operation="read")
    except (OSError, UnicodeDecodeError) as e:
        raise FileOperationError(
            f"Failed to read {path.name}",
            path=str(path),
            operation="read",
            code=ErrorCode.FILE_READ_FAILED,
            original_error=e,
        ) from e


def atomic_write_text(path: Path, text: str) -> None:
    """Overwrite ``path`` with ``text`` without ever leaving a partial file.

    Writes to a temp file in the same directory, fsyncs, then replaces.
    """
    path = Path(path)
    tmp_path = path.parent / f".{path.name}.tmp-{uuid.uuid4().hex}"
    try:
        with open(tmp_path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(path)
    except FileNotFoundError as e:
        raise NoteFileNotFoundError(str(path.parent), operation="write") from e
    except OSError as e:
        raise FileOperationError(
            f"Failed to write {path.name}",
            path=str(path),
            operation="write",
            code=ErrorCode.FILE_WRITE_FAILED,
            original_error=e,
        ) from e
    finally:
        if tmp_path.exists():
            try:
                tmp_path.unlink()
            except OSError as e:
                logger.warning(f"Could not remove temp file {tmp_path.name}: {e}")


def rename_file(src: Path, dst: Path) -> None:
    """Rename a note file, refusing to overwrite an existing one."""
    src, dst = Path(src), Path(dst)
    if dst.exists():
        raise FileOperationError(
            f"Refusing to overwrite {dst.name}",
            path=str(dst),
            operation="rename",
            code=ErrorCode.FILE_RENAME_FAILED,
            original_error=OSError(errno.EEXIST, "File exists"),
        )
    try:
        src.rename(dst)
    except FileNotFoundError:
        raise NoteFileNotFoundError(str(src), operation="rename")
    except OSError as e:
        raise FileOperationError(
            f"Failed to rename {src.name} to {dst.name}",
            path=str(src),
            operation="rename",
            code=ErrorCode.FILE_RENAME_FAILED,
            original_error=e,
        ) from e


def make_dir(path: Path) -> None:
    """Create a directory (and parents) if it does not exist yet."""
    path = Path(path)
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FileOperationError(
            f"Failed to create directory {path}",
            path=str(path),
            operation="mkdir",
            code=ErrorCode.FILE_WRITE_FAILED,
            original_error=e,
        ) from e


def list_markdown_files(root: Path) -> List[Path]:
    """List every note file under ``root``, sorted.

    Hidden files and anything below a hidden directory (``.git``, editor
    swap directories, temp files from ``atomic_write_text``) are skipped.
    """
    root = Path(root)
    if not root.is_dir():
        raise NoteFileNotFoundError(str(root), operation="list")
    try:
        files = [
            p
            for p in root.rglob(f"*{NOTE_SUFFIX}")
            if p.is_file()
            and not any(part.startswith(".") for part in p.relative_to(root).parts)
        ]
    except OSError as e:
        raise FileOperationError(
            f"Failed to list notes in {root}",
            path=str(root),
            operation="list",
            code=ErrorCode.FILE_READ_FAILED,
            original_error=e,
        ) from e
    return sorted(files)


def note_identity(root: Path, path: Path) -> Tuple[str, Optional[str]]:
    """Derive ``(title, project)`` from a note file's location.

    The file stem is the title; the directory relative to ``root`` is the
    project, with ``root`` itself being the default collection.
    """
    root, path = Path(root).resolve(), Path(path).resolve()
    if path.suffix != NOTE_SUFFIX:
        raise ValidationError(
            f"Not a note file (expected {NOTE_SUFFIX}): {path.name}",
            field="path",
            value=str(path),
        )
    try:
        relative = path.relative_to(root)
    except ValueError:
        raise ValidationError(
            f"{path} is not inside the collection {root}",
            field="path",
            value=str(path),
            code=ErrorCode.PATH_OUTSIDE_COLLECTION,
        )
    project = "/".join(relative.parent.parts) or None
    return path.stem, project
