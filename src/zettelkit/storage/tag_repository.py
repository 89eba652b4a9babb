"""Repository for tag queries."""
import logging
from typing import Dict, List

from sqlalchemy import func, select

from zettelkit.models.db_models import DBTag

logger = logging.getLogger(__name__)


class TagRepository:
    """Read-side queries over the ``tags`` table.

    Tags are written together with their note by ``NoteIndex``; this
    repository only answers questions about them.
    """

    def __init__(self, session_factory):
        """Initialize the tag repository.

        Args:
            session_factory: SQLAlchemy session factory for database operations.
        """
        self.session_factory = session_factory

    def list_names(self) -> List[str]:
        """Get every distinct tag, sorted."""
        with self.session_factory() as session:
            return list(
                session.scalars(
                    select(DBTag.name).distinct().order_by(DBTag.name)
                ).all()
            )

    def get_with_counts(self) -> Dict[str, int]:
        """Get all tags with the number of notes carrying them."""
        with self.session_factory() as session:
            result = session.execute(
                select(DBTag.name, func.count(func.distinct(DBTag.note_id)))
                .group_by(DBTag.name)
                .order_by(DBTag.name)
            ).all()
            return {name: count for name, count in result}

    def find_note_ids_by_pattern(self, pattern: str) -> List[int]:
        """Find ids of notes with at least one tag matching a glob pattern.

        Args:
            pattern: SQLite GLOB pattern (``*``, ``?``, ``[...]``), case-sensitive.

        Returns:
            Distinct note ids.
        """
        with self.session_factory() as session:
            return list(
                session.scalars(
                    select(DBTag.note_id)
                    .where(DBTag.name.op("GLOB")(pattern))
                    .distinct()
                ).all()
            )

