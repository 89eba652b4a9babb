"""Configuration module for zettelkit."""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, model_validator

# Project-local .env first, then the user-level one; existing environment
# variables always win.
load_dotenv()
_USER_ENV = Path.home() / ".zettelkit" / ".env"
load_dotenv(_USER_ENV)


logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _default_editor() -> str:
    """Pick the editor the same way most command-line tools do."""
    return (
        os.getenv("ZETTELKIT_EDITOR")
        or os.getenv("VISUAL")
        or os.getenv("EDITOR")
        or "vi"
    )


class ZettelkitConfig(BaseModel):
    """Configuration for a zettelkit collection."""

    # Root of the collection; default-project notes live directly here and
    # each named project is a subdirectory.
    zettelkasten_dir: Path = Field(
        default_factory=lambda: Path(
            os.getenv("ZETTELKIT_DIR", str(Path.home() / "zettelkasten"))
        ).expanduser()
    )
    # Index file, relative paths are resolved against zettelkasten_dir
    database_path: Path = Field(
        default_factory=lambda: Path(
            os.getenv("ZETTELKIT_DATABASE_PATH", ".zettelkit.db")
        )
    )
    editor: str = Field(default_factory=_default_editor)
    # Worker threads for extraction, text search and rename propagation
    max_workers: int = Field(
        default_factory=lambda: int(os.getenv("ZETTELKIT_MAX_WORKERS", "8"))
    )
    log_level: str = Field(
        default_factory=lambda: os.getenv("ZETTELKIT_LOG_LEVEL", "WARNING").upper()
    )
    # Persistent file logging is only enabled when a directory is given
    log_dir: Optional[Path] = Field(
        default_factory=lambda: (
            Path(os.getenv("ZETTELKIT_LOG_DIR")).expanduser()
            if os.getenv("ZETTELKIT_LOG_DIR")
            else None
        )
    )
    # Template for a freshly created note
    note_template: str = Field(default="# {title}\n")

    @model_validator(mode="after")
    def _validate(self) -> "ZettelkitConfig":
        """Reject settings that would make the engine misbehave."""
        if self.max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        if self.log_level not in _LOG_LEVELS:
            raise ValueError(
                f"log_level must be one of {', '.join(_LOG_LEVELS)}, "
                f"got '{self.log_level}'"
            )
        if "{title}" not in self.note_template:
            logger.warning("note_template has no {title} placeholder")
        return self

    def get_absolute_path(self, path: Path) -> Path:
        """Convert a relative path to an absolute path based on zettelkasten_dir."""
        if path.is_absolute():
            return path
        return self.zettelkasten_dir / path

    def get_db_path(self) -> Path:
        """Get the absolute path of the index file."""
        return self.get_absolute_path(self.database_path)


# Create a global config instance
config = ZettelkitConfig()
