"""Keeps the index in step with the note files."""

import logging
from pathlib import Path
from typing import Optional

from zettelkit.config import config
from zettelkit.exceptions import ConflictError, NoteFileNotFoundError
from zettelkit.models.schema import (
    CreateResult,
    Note,
    require_project,
    require_title,
)
from zettelkit.observability import timed_operation
from zettelkit.services.interaction import Editor, launch_editor
from zettelkit.storage.filesystem import atomic_write_text, file_exists, make_dir
from zettelkit.storage.note_index import NoteIndex

logger = logging.getLogger(__name__)


class SyncService:
    """Creates notes and reconciles single files or the whole collection."""

    def __init__(
        self,
        index: Optional[NoteIndex] = None,
        editor: Optional[Editor] = None,
        template: Optional[str] = None,
    ):
        """Initialize the service.

        Args:
            index: Index of the collection. Created with defaults if None.
            editor: Callable opening a file and blocking until the user is
                done. Defaults to the configured external editor.
            template: Initial content of new notes; ``{title}`` is replaced
                by the title. Defaults to config.note_template.
        """
        self.index = index or NoteIndex()
        self._editor = editor or launch_editor
        self._template = template if template is not None else config.note_template

    def create(self, title: str, project: Optional[str] = None) -> CreateResult:
        """Create a note, or index it if its file already exists.

        The file and the index are compared first:

        - file and record both present: ``ConflictError``, nothing changes.
        - file only: the existing file is indexed as it is.
        - record only: the record is stale; it is dropped and the note is
          created fresh.
        - neither: the template is written, the editor opened, and the
          result indexed.

        Titles are unique across projects, so a title already used in
        another project is a ``ConflictError`` too.
        """
        title = require_title(title)
        project = require_project(project)
        note = Note(title=title, project=project)
        path = self.index.path_of(note)

        with timed_operation("create", title=title[:30]) as op:
            elsewhere = [
                n for n in self.index.find_by_exact_title(title) if n.key != note.key
            ]
            if elsewhere:
                raise ConflictError(
                    f"A note titled '{title}' already exists: {elsewhere[0].label}",
                    title=title,
                )

            indexed = self.index.get(title, project)
            on_disk = file_exists(path)

            if on_disk and indexed is not None:
                raise ConflictError(f"Note {note.label} already exists", title=title)

            if on_disk:
                logger.info(f"Indexing existing file for {note.label}")
                created = self.index.save(self.index.read_note(path))
                op["action"] = "indexed"
                return CreateResult(note=created, created_file=False)

            dropped = False
            if indexed is not None:
                logger.warning(f"Dropping stale index record for {note.label}: no file")
                self.index.remove(indexed)
                dropped = True

            make_dir(path.parent)
            atomic_write_text(path, self._template.replace("{title}", title))
            self._editor(path)
            created = self.index.save(self.index.read_note(path))
            op["action"] = "created"
            logger.info(f"Created {created.label}")
            return CreateResult(note=created, created_file=True, dropped_stale_record=dropped)

    def update(self, path: Path) -> Note:
        """Re-read one note file and overwrite its index record.

        Raises:
            NoteFileNotFoundError: If ``path`` is not an existing file.
            ValidationError: If it is outside the collection or not a note.
        """
        path = Path(path)
        if not file_exists(path):
            raise NoteFileNotFoundError(str(path), operation="update")
        with timed_operation("update", path=path.name):
            note = self.index.update(self.index.read_note(path))
        logger.debug(f"Updated {note.label}: {len(note.links)} links, {len(note.tags)} tags")
        return note

    def regenerate(self) -> int:
        """Rebuild the index from the files. Returns the number of notes."""
        return self.index.generate()
