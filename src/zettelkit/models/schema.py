"""Data models for zettelkit."""

import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator

from zettelkit.exceptions import ErrorCode, ValidationError

# One directory level of a project path
SAFE_PROJECT_SEGMENT_PATTERN = re.compile(r"^[\w\-. ]+$")

# Characters that cannot appear in a title: they either break the filename
# derived from it or the [[...]] link syntax that refers to it.
_FORBIDDEN_TITLE_CHARS = ("/", "\\", "[", "]", "\x00")


def validate_title(value: str) -> str:
    """Validate that a title can be used both as a filename and a link target.

    Titles are normalized the same way links are extracted: single spaces
    only, nothing at either end. Anything else could never be matched by a
    ``[[Title]]`` reference.

    Args:
        value: The title to validate

    Returns:
        The validated title (unchanged)

    Raises:
        ValueError: If the title is empty or contains unsafe characters
    """
    if not value or not value.strip():
        raise ValueError("Title cannot be empty")

    if " ".join(value.split()) != value:
        raise ValueError(
            "Title cannot have leading, trailing or repeated whitespace"
        )

    for char in _FORBIDDEN_TITLE_CHARS:
        if char in value:
            raise ValueError(f"Title cannot contain {char!r}")

    if value.startswith("."):
        raise ValueError("Title cannot start with '.'")

    return value


def validate_project_path(value: str) -> str:
    """Check a project path such as ``research/ml``.

    Every ``/``-separated segment becomes a directory under the collection
    root, so segments must be plain names: no ``..``, no hidden directories,
    no empty parts.

    Raises:
        ValueError: If any segment is unusable as a directory name
    """
    if not value:
        raise ValueError("Project path cannot be empty")
    if "\\" in value:
        raise ValueError("Use '/' to separate sub-projects")

    for segment in value.split("/"):
        if not segment:
            raise ValueError(f"Project path {value!r} has an empty segment")
        if segment in (".", "..") or segment.startswith("."):
            raise ValueError(f"Project segment {segment!r} cannot start with '.'")
        if segment != segment.strip():
            raise ValueError(f"Project segment {segment!r} has surrounding whitespace")
        if not SAFE_PROJECT_SEGMENT_PATTERN.match(segment):
            raise ValueError(
                f"Project segment {segment!r} may only hold letters, digits, "
                "spaces and '_-.'"
            )

    return value


def normalize_project(value: Optional[str]) -> Optional[str]:
    """Map the empty project to the default collection (None)."""
    if value is None or not value.strip():
        return None
    return validate_project_path(value)


class Note(BaseModel):
    """A Zettel as seen by the index.

    ``project`` is ``None`` for the default collection and a project path
    otherwise; the empty string is accepted on input and normalized away.
    """

    title: str = Field(..., description="Title of the note, also its filename")
    project: Optional[str] = Field(
        default=None,
        description="Project this note belongs to, None for the default collection",
    )
    links: List[str] = Field(
        default_factory=list, description="Link targets in source order"
    )
    tags: List[str] = Field(default_factory=list, description="Tags in source order")

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @field_validator("title")
    @classmethod
    def _validate_title(cls, v: str) -> str:
        return validate_title(v)

    @field_validator("project", mode="before")
    @classmethod
    def _validate_project(cls, v: Optional[str]) -> Optional[str]:
        return normalize_project(v)

    @property
    def is_default_project(self) -> bool:
        """Whether the note lives in the default (unnamed) collection."""
        return self.project is None

    @property
    def filename(self) -> str:
        """Name of the note's file."""
        return f"{self.title}.md"

    @property
    def label(self) -> str:
        """Display form: ``[project] title``."""
        return f"[{self.project or ''}] {self.title}"

    @property
    def key(self) -> Tuple[str, str]:
        """Identity of the record: (project, title)."""
        return (self.project or "", self.title)

    def sort_key(self) -> Tuple[str, str]:
        """Stable ordering used for every listing."""
        return self.key

    def directory(self, root: Path) -> Path:
        """Directory holding the note's file."""
        if self.project is None:
            return root
        return root.joinpath(*self.project.split("/"))

    def path(self, root: Path) -> Path:
        """Deterministic location of the note's file under ``root``."""
        return self.directory(root) / self.filename

    def with_identity(
        self, title: Optional[str] = None, project: Optional[str] = ""
    ) -> "Note":
        """Copy of this note with a new title and/or project.

        ``project=""`` keeps the current project; pass ``None`` explicitly to
        move into the default collection.
        """
        update = {}
        if title is not None:
            update["title"] = validate_title(title)
        if project != "":
            update["project"] = normalize_project(project)
        return self.model_copy(update=update)


def sort_notes(notes: List[Note]) -> List[Note]:
    """Deduplicate notes by identity and sort them by (project, title)."""
    unique = {note.key: note for note in notes}
    return sorted(unique.values(), key=Note.sort_key)


@dataclass
class CreateResult:
    """Outcome of creating a note.

    Attributes:
        note: The indexed note.
        created_file: True when a new file was written (and edited).
        dropped_stale_record: True when an index record without a file
            was discarded first.
    """

    note: Note
    created_file: bool
    dropped_stale_record: bool = False


@dataclass
class PropagationOutcome:
    """Result of rewriting one linking note after a rename."""

    note: Note
    changed: bool = False
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RenameResult:
    """Outcome of a rename.

    ``applied`` is False when the user declined; in that case nothing on
    disk or in the index has changed.
    """

    old_title: str
    new_title: str
    applied: bool
    note: Optional[Note] = None
    outcomes: List[PropagationOutcome] = field(default_factory=list)

    @property
    def failures(self) -> List[PropagationOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def rewritten(self) -> List[PropagationOutcome]:
        return [o for o in self.outcomes if o.ok and o.changed]


@dataclass
class BacklinkOutcome:
    """Result of regenerating the backlinks section of one note."""

    note: Note
    content: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class MoveOutcome:
    """Result of moving one note into a project."""

    note: Note
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class MoveResult:
    """Outcome of moving notes into a project."""

    project: Optional[str]
    applied: bool
    outcomes: List[MoveOutcome] = field(default_factory=list)
    skipped: List[Note] = field(default_factory=list)

    @property
    def failures(self) -> List[MoveOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def moved(self) -> List[Note]:
        return [o.note for o in self.outcomes if o.ok]


def require_title(value: str) -> str:
    """``validate_title`` for user input: raises ``ValidationError``."""
    try:
        return validate_title(value)
    except ValueError as e:
        raise ValidationError(
            str(e), field="title", value=value, code=ErrorCode.INVALID_TITLE
        ) from e


def require_project(value: Optional[str]) -> Optional[str]:
    """``normalize_project`` for user input: raises ``ValidationError``."""
    try:
        return normalize_project(value)
    except ValueError as e:
        raise ValidationError(
            str(e), field="project", value=value, code=ErrorCode.INVALID_PROJECT
        ) from e
