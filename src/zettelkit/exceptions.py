"""Error types raised by zettelkit.

Each error carries an ``ErrorCode`` and a small ``details`` mapping so the
command line can print a short message while the log keeps the context.
"""
from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorCode(Enum):
    """Stable numeric codes, grouped by the layer that raises them."""

    # Notes and titles
    NOTE_NOT_FOUND = 1001
    NOTE_ALREADY_EXISTS = 1003
    NOTE_WOULD_OVERWRITE = 1006
    NOTE_AMBIGUOUS = 1007

    # Index database
    STORAGE_READ_FAILED = 4001
    STORAGE_WRITE_FAILED = 4002
    STORAGE_CONNECTION_FAILED = 4004
    DATABASE_CORRUPTED = 4005
    DATABASE_REBUILD_FAILED = 4006

    # Note files
    FILE_NOT_FOUND = 4501
    FILE_READ_FAILED = 4502
    FILE_WRITE_FAILED = 4503
    FILE_RENAME_FAILED = 4504

    # Link rewriting after a rename
    PROPAGATION_PARTIAL = 5001

    CONFIG_INVALID = 6001

    # Input
    VALIDATION_FAILED = 7001
    INVALID_TITLE = 7002
    INVALID_PROJECT = 7003
    PATH_OUTSIDE_COLLECTION = 7005


def _context(**fields: Any) -> Dict[str, Any]:
    """Keep the fields that are set; long error texts are clipped."""
    context = {}
    for key, value in fields.items():
        if value is None or value == "":
            continue
        if isinstance(value, BaseException):
            value = str(value)[:200]
        context[key] = value
    return context


class ZettelkitError(Exception):
    """Root of every error zettelkit raises on purpose."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = dict(details or {})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "code": self.code.value,
            "code_name": self.code.name,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        text = f"[{self.code.name}] {self.message}"
        if not self.details:
            return text
        pairs = ", ".join(f"{key}={value}" for key, value in self.details.items())
        return f"{text} ({pairs})"


class NoteNotFoundError(ZettelkitError):
    """No note has the given title (or none matches the pattern)."""

    def __init__(self, title: str, message: Optional[str] = None):
        self.title = title
        super().__init__(
            message or f"No Zettel with title '{title}'",
            code=ErrorCode.NOTE_NOT_FOUND,
            details={"title": title},
        )


class ConflictError(ZettelkitError):
    """The request would duplicate a note, overwrite one, or has to guess.

    Creating an existing note, renaming onto a taken title and naming a
    title that several projects share all end up here.
    """

    def __init__(
        self,
        message: str,
        title: Optional[str] = None,
        code: ErrorCode = ErrorCode.NOTE_ALREADY_EXISTS
    ):
        self.title = title
        super().__init__(message, code=code, details=_context(title=title))


class StorageError(ZettelkitError):
    """The SQLite index could not be opened, read or written."""

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        path: Optional[str] = None,
        code: ErrorCode = ErrorCode.STORAGE_READ_FAILED,
        original_error: Optional[Exception] = None
    ):
        self.operation = operation
        self.path = path
        self.original_error = original_error
        super().__init__(
            message,
            code=code,
            details=_context(operation=operation, path=path, original_error=original_error),
        )


class DatabaseCorruptionError(StorageError):
    """A rebuilt index could not replace the live one.

    ``recovered`` is True when the previous index is still open and usable.
    """

    def __init__(
        self,
        message: str,
        recovered: bool = False,
        code: ErrorCode = ErrorCode.DATABASE_REBUILD_FAILED,
        original_error: Optional[Exception] = None
    ):
        self.recovered = recovered
        super().__init__(
            message, operation="generate", code=code, original_error=original_error
        )
        self.details["recovered"] = recovered


class FileOperationError(ZettelkitError):
    """A note file could not be read, written, created or renamed."""

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        operation: Optional[str] = None,
        code: ErrorCode = ErrorCode.FILE_READ_FAILED,
        original_error: Optional[Exception] = None
    ):
        self.path = path
        self.operation = operation
        self.original_error = original_error
        super().__init__(
            message,
            code=code,
            details=_context(path=path, operation=operation, original_error=original_error),
        )


class NoteFileNotFoundError(FileOperationError):
    """The note file is missing, as opposed to present but unreadable."""

    def __init__(self, path: str, operation: Optional[str] = None):
        super().__init__(
            f"No such note file: {path}",
            path=path,
            operation=operation,
            code=ErrorCode.FILE_NOT_FOUND,
        )


class ValidationError(ZettelkitError):
    """A title, project or path was rejected before touching anything."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        code: ErrorCode = ErrorCode.VALIDATION_FAILED
    ):
        self.field = field
        self.value = value
        shown = None if value is None else str(value)[:100]
        super().__init__(message, code=code, details=_context(field=field, value=shown))


class ConfigurationError(ZettelkitError):
    """A setting is unusable, such as an editor command that does not exist."""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        code: ErrorCode = ErrorCode.CONFIG_INVALID
    ):
        self.config_key = config_key
        super().__init__(message, code=code, details=_context(config_key=config_key))


class PropagationError(ZettelkitError):
    """A rename went through but some linking notes kept the old title.

    ``failed_titles`` holds every failure; ``details`` lists at most ten.
    """

    def __init__(
        self,
        old_title: str,
        new_title: str,
        total_count: int,
        failed_titles: List[str],
        code: ErrorCode = ErrorCode.PROPAGATION_PARTIAL
    ):
        if len(failed_titles) > total_count:
            raise ValueError("more failures than linking notes")
        self.old_title = old_title
        self.new_title = new_title
        self.total_count = total_count
        self.failed_titles: List[str] = list(failed_titles)
        super().__init__(
            f"Renamed '{old_title}' to '{new_title}' but {self.failed_count} "
            f"of {total_count} linking notes could not be updated",
            code=code,
            details={
                "old_title": old_title,
                "new_title": new_title,
                "total_count": total_count,
                "failed_count": self.failed_count,
                "failed_titles": self.failed_titles[:10],
            },
        )

    @property
    def failed_count(self) -> int:
        return len(self.failed_titles)
