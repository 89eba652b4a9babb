"""Read-only questions about the link graph."""

import logging
from typing import List, Optional, Tuple

from zettelkit.models.schema import Note, sort_notes
from zettelkit.storage.note_index import NoteIndex

logger = logging.getLogger(__name__)


class GraphService:
    """Ghosts, isolated notes, tag subtrees and link listings."""

    def __init__(self, index: Optional[NoteIndex] = None):
        self.index = index or NoteIndex()

    def ghosts(self) -> List[str]:
        """Titles that are linked to but have no note yet, sorted."""
        return self.index.zettel_not_yet_created()

    def isolated(self) -> List[Note]:
        """Notes of the default collection with no links in either direction.

        Notes in named projects are never reported.
        """
        incoming = self.index.incoming_counts()
        return [
            note
            for note in self.index.all()
            if note.is_default_project
            and not note.links
            and not incoming.get(note.title)
        ]

    def notes_with_tag(self, tag: str) -> List[Note]:
        """Notes tagged ``tag`` or any tag below it (``tag/...``)."""
        tag = tag.lstrip("#")
        found = self.index.find_by_tag(tag) + self.index.find_by_tag(f"{tag}/*")
        return sort_notes(found)

    def outgoing(self, pattern: str = "*") -> List[Note]:
        """Notes whose title matches ``pattern``, each carrying its links."""
        return self.index.find_by_title(pattern)

    def backlinks(self, pattern: str = "*") -> List[Tuple[Note, List[Note]]]:
        """Notes whose title matches ``pattern`` with the notes linking to each."""
        return [
            (note, self.index.find_by_links_to(note.title))
            for note in self.index.find_by_title(pattern)
        ]
