"""Storage layer for zettelkit."""

from zettelkit.storage.link_repository import LinkRepository
from zettelkit.storage.markdown_parser import MarkdownParser
from zettelkit.storage.note_index import NoteIndex
from zettelkit.storage.tag_repository import TagRepository

__all__ = [
    "LinkRepository",
    "MarkdownParser",
    "NoteIndex",
    "TagRepository",
]
