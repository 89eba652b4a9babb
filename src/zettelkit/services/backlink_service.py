"""Writes the generated ``## Backlinks`` section at the end of a note."""

import logging
import re
from typing import List, Optional

from zettelkit.exceptions import (
    ConflictError,
    ErrorCode,
    FileOperationError,
    NoteNotFoundError,
)
from zettelkit.models.schema import BacklinkOutcome, Note, require_project
from zettelkit.storage.filesystem import atomic_write_text, read_text
from zettelkit.storage.markdown_parser import (
    BACKLINKS_HEADING,
    MarkdownParser,
    strip_backlinks_section,
)
from zettelkit.storage.note_index import NoteIndex

logger = logging.getLogger(__name__)

BACKLINKS_HEADER = f"\n{BACKLINKS_HEADING}\n\n"


def context_pattern(title: str) -> "re.Pattern[str]":
    """Regex for a parenthesized reference to a note file: ``(…Title.md)``.

    The ``.md`` suffix is optional, so ``(see Title)`` counts too. The title
    must start a word, so ``(in the AB)`` does not cite ``B``.
    """
    return re.compile(r"\([^()]*?(?<!\w)" + re.escape(title) + r"(?:\.md)?\)")


def format_entry(source: Note, contexts: List[str]) -> str:
    """One bullet for a linking note, followed by its context lines."""
    lines = "".join(f"\t* {context}\n" for context in contexts)
    return f"* [[{source.title}]]\n{lines}\n"


class BacklinkService:
    """Composes backlinks sections from the index and the linking files."""

    def __init__(
        self, index: Optional[NoteIndex] = None, parser: Optional[MarkdownParser] = None
    ):
        self.index = index or NoteIndex()
        self._parser = parser or MarkdownParser()

    def _resolve(self, title: str, project: Optional[str]) -> Note:
        if project is not None:
            note = self.index.get(title, project)
            if note is None:
                raise NoteNotFoundError(title)
            return note
        candidates = self.index.find_by_exact_title(title)
        if not candidates:
            raise NoteNotFoundError(title)
        if len(candidates) > 1:
            raise ConflictError(
                f"'{title}' is ambiguous; pass the project",
                title=title,
                code=ErrorCode.NOTE_AMBIGUOUS,
            )
        return candidates[0]

    def contexts(self, target: Note, source: Note) -> List[str]:
        """Paragraphs of ``source`` that cite ``target``'s file in parentheses.

        The parenthetical itself is removed from each returned paragraph. A
        source whose file cannot be read contributes no context.
        """
        try:
            content = strip_backlinks_section(read_text(self.index.path_of(source)))
        except FileOperationError as e:
            logger.warning(f"No context from {source.label} for {target.label}: {e}")
            return []
        pattern = context_pattern(target.title)
        return [
            pattern.sub("", block)
            for block in self._parser.split_blocks(content)
            if pattern.search(block)
        ]

    def render(self, target: Note) -> str:
        """The full backlinks section for ``target``."""
        sources = [
            n for n in self.index.find_by_links_to(target.title) if n.key != target.key
        ]
        entries = [format_entry(s, self.contexts(target, s)) for s in sources]
        return BACKLINKS_HEADER + "".join(entries)

    def update_backlinks_section(self, title: str, project: Optional[str] = None) -> str:
        """Replace (or append) the backlinks section of one note.

        Everything from the ``## Backlinks`` heading to the end of the file
        is regenerated. The file is only written when its content changes,
        so running this twice in a row leaves it untouched the second time.

        Returns:
            The new file content.

        Raises:
            NoteNotFoundError: If the note is not indexed.
        """
        return self._write_section(self._resolve(title, require_project(project)))

    def _write_section(self, note: Note) -> str:
        path = self.index.path_of(note)
        content = read_text(path)
        new_content = strip_backlinks_section(content) + self.render(note)
        if new_content != content:
            atomic_write_text(path, new_content)
            logger.info(f"Updated backlinks of {note.label}")
        else:
            logger.debug(f"Backlinks of {note.label} already up to date")
        return new_content

    def update_matching(self, pattern: str) -> List[BacklinkOutcome]:
        """Regenerate the backlinks section of every note matching a title glob.

        A note whose file cannot be read or written is reported in its
        outcome and the remaining notes are still processed.
        """
        outcomes = []
        for note in self.index.find_by_title(pattern):
            try:
                outcomes.append(BacklinkOutcome(note, content=self._write_section(note)))
            except FileOperationError as e:
                logger.error(f"Backlinks of {note.label} not updated: {e}")
                outcomes.append(BacklinkOutcome(note, error=e.message))
        return outcomes
