"""Repository for link queries."""
import logging
from typing import Dict, List

from sqlalchemy import func, select

from zettelkit.models.db_models import DBLink, DBNote

logger = logging.getLogger(__name__)


class LinkRepository:
    """Read-side queries over the ``links`` table.

    Links are stored as plain target titles, so a link may point at a title
    no note has yet (a ghost). They are written together with their source
    note by ``NoteIndex``.
    """

    def __init__(self, session_factory):
        """Initialize the link repository.

        Args:
            session_factory: SQLAlchemy session factory for database operations.
        """
        self.session_factory = session_factory

    def find_source_ids(self, target: str) -> List[int]:
        """Get ids of notes that link to exactly ``target``.

        Args:
            target: Title to match (exact string, not a pattern).

        Returns:
            Distinct source note ids.
        """
        with self.session_factory() as session:
            return list(
                session.scalars(
                    select(DBLink.note_id).where(DBLink.target == target).distinct()
                ).all()
            )

    def find_unresolved_targets(self) -> List[str]:
        """Get link targets that no indexed note carries as its title.

        Returns:
            Distinct targets, sorted.
        """
        with self.session_factory() as session:
            existing_titles = select(DBNote.title)
            return list(
                session.scalars(
                    select(DBLink.target)
                    .where(DBLink.target.not_in(existing_titles))
                    .distinct()
                    .order_by(DBLink.target)
                ).all()
            )

    def count_incoming(self) -> Dict[str, int]:
        """Count linking notes per target title.

        A note linking to the same target several times counts once.
        """
        with self.session_factory() as session:
            result = session.execute(
                select(DBLink.target, func.count(func.distinct(DBLink.note_id)))
                .group_by(DBLink.target)
            ).all()
            return {target: count for target, count in result}
