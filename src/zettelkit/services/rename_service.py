"""Renaming and moving notes without breaking the links that point at them."""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from functools import partial
from typing import List, Optional, Tuple

from zettelkit.exceptions import (
    ConflictError,
    ErrorCode,
    FileOperationError,
    NoteNotFoundError,
    StorageError,
    ValidationError,
    ZettelkitError,
)
from zettelkit.models.schema import (
    MoveOutcome,
    MoveResult,
    Note,
    PropagationOutcome,
    RenameResult,
    require_project,
    require_title,
)
from zettelkit.observability import timed_operation
from zettelkit.services.interaction import Confirm, confirm
from zettelkit.storage.filesystem import (
    atomic_write_text,
    file_exists,
    make_dir,
    read_text,
    rename_file,
)
from zettelkit.storage.note_index import NoteIndex

logger = logging.getLogger(__name__)


def link_pattern(title: str) -> "re.Pattern[str]":
    """Regex matching every ``[[title]]`` reference to ``title``.

    A space in the title matches any run of whitespace, line breaks
    included, and whitespace just inside the brackets is allowed. This
    mirrors how links are extracted.
    """
    words = [re.escape(word) for word in title.split(" ")]
    return re.compile(r"\[\[\s*" + r"\s+".join(words) + r"\s*\]\]")


def rewrite_links(content: str, old_title: str, new_title: str) -> Tuple[str, int]:
    """Point every link to ``old_title`` at ``new_title``.

    Returns:
        The new content and the number of links rewritten.
    """
    replacement = f"[[{new_title}]]"
    return link_pattern(old_title).subn(lambda _: replacement, content)


class RenameService:
    """Renames notes and moves them between projects.

    Both operations ask for confirmation first and change nothing when the
    user declines. Rewriting the notes that link to a renamed note is
    best-effort: each one is handled on its own and failures are collected
    in the result instead of stopping the others.
    """

    def __init__(
        self,
        index: Optional[NoteIndex] = None,
        confirm: Confirm = confirm,
        max_workers: Optional[int] = None,
    ):
        self.index = index or NoteIndex()
        self._confirm = confirm
        self.max_workers = max_workers or self.index.max_workers

    # ------------------------------------------------------------------
    # Rename
    # ------------------------------------------------------------------

    def _resolve(self, title: str, project: Optional[str]) -> Note:
        candidates = self.index.find_by_exact_title(title)
        if project is not None:
            candidates = [n for n in candidates if n.project == project]
        if not candidates:
            raise NoteNotFoundError(title)
        if len(candidates) > 1:
            labels = ", ".join(n.label for n in candidates)
            raise ConflictError(
                f"'{title}' is ambiguous ({labels}); pass the project",
                title=title,
                code=ErrorCode.NOTE_AMBIGUOUS,
            )
        return candidates[0]

    def rename(
        self, old_title: str, new_title: str, project: Optional[str] = None
    ) -> RenameResult:
        """Rename a note and rewrite every link to it.

        Args:
            old_title: Current title.
            new_title: Title to rename to. Must not be used by any note.
            project: Project of the note, needed only when several projects
                have a note called ``old_title``.

        Raises:
            NoteNotFoundError: If no note has ``old_title``.
            ConflictError: If ``old_title`` is ambiguous or ``new_title``
                is taken.
            StorageError: If the index could not be updated; the file
                rename is undone in that case.
        """
        new_title = require_title(new_title)
        project = require_project(project)
        note = self._resolve(old_title, project)

        if new_title == note.title:
            raise ValidationError(
                "New title is the same as the old one",
                field="title",
                value=new_title,
                code=ErrorCode.INVALID_TITLE,
            )

        renamed = note.with_identity(title=new_title)
        old_path = self.index.path_of(note)
        new_path = self.index.path_of(renamed)

        taken = self.index.find_by_exact_title(new_title)
        if taken or file_exists(new_path):
            where = taken[0].label if taken else str(new_path)
            raise ConflictError(
                f"Renaming would overwrite {where}",
                title=new_title,
                code=ErrorCode.NOTE_WOULD_OVERWRITE,
            )

        if not self._confirm(f"{note.title} --> {new_title}"):
            logger.info(f"Rename of {note.label} declined")
            return RenameResult(old_title=note.title, new_title=new_title, applied=False)

        with timed_operation("rename", old=note.title[:30], new=new_title[:30]) as op:
            rename_file(old_path, new_path)
            try:
                renamed = self.index.change_title(note, new_title)
            except (StorageError, NoteNotFoundError):
                logger.error(f"Index update failed, restoring {old_path.name}")
                rename_file(new_path, old_path)
                raise

            outcomes = self._propagate(note.title, new_title)
            op["dependents"] = len(outcomes)

        result = RenameResult(
            old_title=note.title,
            new_title=new_title,
            applied=True,
            note=renamed,
            outcomes=outcomes,
        )
        if result.failures:
            logger.warning(
                f"{len(result.failures)} of {len(outcomes)} notes linking to "
                f"'{note.title}' could not be updated"
            )
        return result

    def _propagate(self, old_title: str, new_title: str) -> List[PropagationOutcome]:
        # The dependent list is fixed before any file is rewritten
        dependents = self.index.find_by_links_to(old_title)
        if not dependents:
            return []
        logger.info(f"Updating {len(dependents)} notes linking to '{old_title}'")
        rewrite = partial(self._rewrite_dependent, old_title, new_title)
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(rewrite, dependents))

    def _rewrite_dependent(
        self, old_title: str, new_title: str, dependent: Note
    ) -> PropagationOutcome:
        path = self.index.path_of(dependent)
        try:
            content = read_text(path)
            new_content, count = rewrite_links(content, old_title, new_title)
            if count:
                atomic_write_text(path, new_content)
            self.index.update(self.index.read_note(path))
        except (FileOperationError, StorageError, ValidationError) as e:
            logger.error(f"Could not update links in {dependent.label}: {e}")
            return PropagationOutcome(note=dependent, error=str(e))
        logger.debug(f"Rewrote {count} links in {dependent.label}")
        return PropagationOutcome(note=dependent, changed=bool(count))

    # ------------------------------------------------------------------
    # Move
    # ------------------------------------------------------------------

    def move(self, pattern: str, project: Optional[str]) -> MoveResult:
        """Move every note whose title matches ``pattern`` into ``project``.

        Notes already in ``project`` are skipped. Links in other notes are
        untouched since they refer to titles, not locations.

        Raises:
            NoteNotFoundError: If no note matches.
            ConflictError: If a destination file already exists or two
                matching notes would land on the same file.
        """
        project = require_project(project)
        notes = self.index.find_by_title(pattern)
        if not notes:
            raise NoteNotFoundError(pattern, message=f"No notes match '{pattern}'")

        to_move = [n for n in notes if n.project != project]
        skipped = [n for n in notes if n.project == project]
        if not to_move:
            return MoveResult(project=project, applied=True, skipped=skipped)

        destinations = [n.with_identity(project=project) for n in to_move]
        titles = [n.title for n in destinations]
        clashes = [
            d.label
            for d in destinations
            if file_exists(self.index.path_of(d)) or titles.count(d.title) > 1
        ]
        if clashes:
            raise ConflictError(
                f"Moving would overwrite: {', '.join(sorted(set(clashes)))}",
                code=ErrorCode.NOTE_WOULD_OVERWRITE,
            )

        where = "main zettelkasten" if project is None else f"'{project}' project"
        if not self._confirm(f">> These notes will be transferred to the {where}. Proceed?"):
            logger.info("Move declined")
            return MoveResult(project=project, applied=False, skipped=skipped)

        make_dir(destinations[0].directory(self.index.root))
        with timed_operation("move", project=project, count=len(to_move)):
            outcomes = [self._move_one(note, project) for note in to_move]

        result = MoveResult(
            project=project, applied=True, outcomes=outcomes, skipped=skipped
        )
        if result.failures:
            logger.warning(f"{len(result.failures)} of {len(outcomes)} notes could not be moved")
        return result

    def _move_one(self, note: Note, project: Optional[str]) -> MoveOutcome:
        old_path = self.index.path_of(note)
        new_path = self.index.path_of(note.with_identity(project=project))
        try:
            rename_file(old_path, new_path)
        except FileOperationError as e:
            logger.error(f"Could not move {note.label}: {e}")
            return MoveOutcome(note=note, error=str(e))
        try:
            moved = self.index.change_project(note, project)
        except ZettelkitError as e:
            logger.error(f"Index update failed for {note.label}, restoring file: {e}")
            rename_file(new_path, old_path)
            return MoveOutcome(note=note, error=str(e))
        return MoveOutcome(note=moved)
