"""Link and tag extraction for Zettel markdown.

Turns the raw text of a note into the ordered link and tag sequences the
index stores. Everything here is pure: no file or database access.
"""
import logging
import re
from typing import Any, Dict, List, Optional, Tuple

import yaml
from frontmatter.default_handlers import YAMLHandler

from zettelkit.models.schema import Note

logger = logging.getLogger(__name__)

# [[Title]]; a title may span whitespace and line breaks but not brackets,
# so an unterminated "[[" never swallows the text up to a later link.
LINK_RE = re.compile(r"\[\[([^\[\]]+)\]\]")

# #tag, #area/sub, #multi-word_tag; only when followed by whitespace
TAG_RE = re.compile(r"#([\w/-]+)(?=\s)")

BACKLINKS_HEADING = "## Backlinks"

# Generated section: from the heading to the end of the file
BACKLINKS_SECTION_RE = re.compile(r"\n" + re.escape(BACKLINKS_HEADING) + r".*\Z", re.DOTALL)

_HEADING_RE = re.compile(r"^#{1,6}(\s|$)")
_BLANK_LINE_RE = re.compile(r"\n[ \t]*\n")


def normalize_title(raw: str) -> str:
    """Collapse whitespace runs (line breaks included) to single spaces."""
    return " ".join(raw.split())


def strip_backlinks_section(content: str) -> str:
    """Remove the generated backlinks section, if any."""
    return BACKLINKS_SECTION_RE.sub("", content, count=1)


class MarkdownParser:
    """Extracts the link/tag graph from note text."""

    def __init__(self):
        self._frontmatter = YAMLHandler()

    def find_links(self, content: str) -> List[str]:
        """Return every ``[[Title]]`` target in source order.

        Duplicates are kept. Empty references (``[[ ]]``) are ignored.
        """
        links = []
        for match in LINK_RE.finditer(content):
            title = normalize_title(match.group(1))
            if title:
                links.append(title)
        return links

    def find_tags(self, content: str) -> List[str]:
        """Return every ``#tag`` followed by whitespace, in source order."""
        return [match.group(1) for match in TAG_RE.finditer(content)]

    def parse_note(
        self, title: str, project: Optional[str], content: str
    ) -> Note:
        """Build the index view of a note from its file content.

        Args:
            title: Title derived from the filename.
            project: Project derived from the directory, None for default.
            content: Full file text.

        Returns:
            Note with links and tags extracted.
        """
        authored = strip_backlinks_section(content)
        metadata, body = self.split_frontmatter(authored)

        links = self.find_links(authored)
        tags = self.find_tags(body)
        for tag in self._frontmatter_tags(metadata, title):
            if tag not in tags:
                tags.append(tag)

        return Note(title=title, project=project, links=links, tags=tags)

    def split_frontmatter(self, content: str) -> Tuple[Dict[str, Any], str]:
        """Separate YAML frontmatter from the body.

        Returns an empty mapping and the untouched text when there is no
        frontmatter or it cannot be parsed.
        """
        if not self._frontmatter.detect(content):
            return {}, content
        try:
            raw, body = self._frontmatter.split(content)
            metadata = self._frontmatter.load(raw)
        except (ValueError, yaml.YAMLError) as e:
            logger.warning(f"Ignoring malformed frontmatter: {e}")
            return {}, content
        if not isinstance(metadata, dict):
            return {}, content
        return metadata, body

    def split_blocks(self, content: str) -> List[str]:
        """Split text into paragraph-like blocks.

        Blocks are separated by blank lines. Heading lines are dropped and
        the remaining lines of a block are joined with single spaces.
        """
        blocks = []
        for raw_block in _BLANK_LINE_RE.split(content):
            lines = [
                line.strip()
                for line in raw_block.split("\n")
                if line.strip() and not _HEADING_RE.match(line.strip())
            ]
            if lines:
                blocks.append(" ".join(lines))
        return blocks

    @staticmethod
    def _frontmatter_tags(metadata: Dict[str, Any], title: str) -> List[str]:
        """Tags declared in frontmatter, as a list or comma-separated string."""
        raw = metadata.get("tags")
        if raw is None:
            return []
        if isinstance(raw, str):
            names = [t.strip() for t in raw.split(",")]
        elif isinstance(raw, list):
            names = [str(t).strip() for t in raw if t is not None]
        else:
            logger.warning(f"Unsupported 'tags' frontmatter in '{title}': {raw!r}")
            return []
        return [name.lstrip("#") for name in names if name.lstrip("#")]
