"""Relational index over the note files.

The files are the source of truth; this SQLite index is a cache derived
from them. It answers title/tag/link queries quickly and can be discarded
and regenerated at any time.
"""

import logging
import os
import sqlite3
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from zettelkit.config import config
from zettelkit.exceptions import (
    DatabaseCorruptionError,
    ErrorCode,
    FileOperationError,
    NoteNotFoundError,
    StorageError,
    ValidationError,
)
from zettelkit.models.db_models import (
    Base,
    DBLink,
    DBNote,
    DBTag,
    get_session_factory,
    init_db,
)
from zettelkit.models.schema import (
    Note,
    require_project,
    require_title,
    sort_notes,
)
from zettelkit.observability import traced
from zettelkit.storage.filesystem import list_markdown_files, note_identity, read_text
from zettelkit.storage.link_repository import LinkRepository
from zettelkit.storage.markdown_parser import MarkdownParser
from zettelkit.storage.tag_repository import TagRepository

logger = logging.getLogger(__name__)

_DB_ERRORS = (SQLAlchemyError, sqlite3.Error)


class NoteIndex:
    """Queryable projection of the note collection.

    Every public operation raises ``StorageError`` when the underlying
    store fails; callers abort the current command on it.

    Writes are serialized with a re-entrant lock so that a read-modify-write
    of one record is never interleaved with another thread's.
    """

    def __init__(
        self,
        root: Optional[Path] = None,
        db_path: Optional[Path] = None,
        max_workers: Optional[int] = None,
        parser: Optional[MarkdownParser] = None,
    ):
        """Open the index of a collection.

        Args:
            root: Collection directory. If None, uses config.zettelkasten_dir.
            db_path: Index file. If None, uses config.database_path,
                resolved against ``root``.
            max_workers: Thread pool size for extraction and text search.
                If None, uses config.max_workers.
            parser: Extractor used to read note files.
        """
        self.root = Path(root) if root else config.zettelkasten_dir
        if db_path is None:
            db_path = config.database_path
        self.db_path = db_path if db_path.is_absolute() else self.root / db_path
        self.max_workers = max_workers or config.max_workers
        self._parser = parser or MarkdownParser()
        self._write_lock = threading.RLock()

        logger.debug(f"NoteIndex: root={self.root}, db_path={self.db_path}")
        self._connect()

    # ------------------------------------------------------------------
    # Connection handling
    # ------------------------------------------------------------------

    def _connect(self) -> None:
        try:
            self.engine = init_db(self.db_path)
        except (*_DB_ERRORS, OSError) as e:
            raise StorageError(
                "Cannot open the index",
                operation="connect",
                path=str(self.db_path),
                code=ErrorCode.STORAGE_CONNECTION_FAILED,
                original_error=e,
            ) from e
        self.session_factory = get_session_factory(self.engine)
        self.links = LinkRepository(self.session_factory)
        self.tags = TagRepository(self.session_factory)

    def close(self) -> None:
        """Release every pooled connection."""
        self.engine.dispose()

    @contextmanager
    def _guard(self, operation: str, code: ErrorCode = ErrorCode.STORAGE_READ_FAILED):
        """Translate storage engine failures into ``StorageError``."""
        try:
            yield
        except _DB_ERRORS as e:
            logger.error(f"Index {operation} failed: {e}")
            raise StorageError(
                f"Index {operation} failed",
                operation=operation,
                path=str(self.db_path),
                code=code,
                original_error=e,
            ) from e

    def init(self) -> None:
        """Create the schema if it does not exist yet (idempotent)."""
        with self._guard("init", ErrorCode.STORAGE_WRITE_FAILED):
            Base.metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Conversion helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _to_db(note: Note) -> DBNote:
        return DBNote(
            title=note.title,
            project=note.project,
            links=[DBLink(position=i, target=t) for i, t in enumerate(note.links)],
            tags=[DBTag(position=i, name=t) for i, t in enumerate(note.tags)],
        )

    @staticmethod
    def _to_model(db_note: DBNote) -> Note:
        return Note(
            title=db_note.title,
            project=db_note.project,
            links=[link.target for link in db_note.links],
            tags=[tag.name for tag in db_note.tags],
        )

    @staticmethod
    def _identity_filter(title: str, project: Optional[str]):
        if project is None:
            return (DBNote.title == title) & DBNote.project.is_(None)
        return (DBNote.title == title) & (DBNote.project == project)

    def _select_notes(self, session: Session, *criteria) -> List[Note]:
        query = select(DBNote).options(
            selectinload(DBNote.links), selectinload(DBNote.tags)
        )
        for criterion in criteria:
            query = query.where(criterion)
        return sort_notes([self._to_model(n) for n in session.scalars(query).all()])

    def _load_ids(self, ids: Iterable[int]) -> List[Note]:
        ids = list(ids)
        if not ids:
            return []
        with self.session_factory() as session:
            return self._select_notes(session, DBNote.id.in_(ids))

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def save(self, note: Note) -> Note:
        """Insert one record with its link and tag rows."""
        with self._write_lock, self._guard("save", ErrorCode.STORAGE_WRITE_FAILED):
            with self.session_factory() as session:
                session.add(self._to_db(note))
                session.commit()
        logger.debug(f"Indexed {note.label}")
        return note

    def update(self, note: Note) -> Note:
        """Overwrite the link and tag rows of one record.

        Inserts the record when it is not indexed yet. Leftover duplicate
        records with the same identity are dropped.
        """
        with self._write_lock, self._guard("update", ErrorCode.STORAGE_WRITE_FAILED):
            with self.session_factory() as session:
                records = session.scalars(
                    select(DBNote)
                    .where(self._identity_filter(note.title, note.project))
                    .order_by(DBNote.id)
                ).all()
                if not records:
                    session.add(self._to_db(note))
                else:
                    record = records[0]
                    record.links = [
                        DBLink(position=i, target=t) for i, t in enumerate(note.links)
                    ]
                    record.tags = [
                        DBTag(position=i, name=t) for i, t in enumerate(note.tags)
                    ]
                    for duplicate in records[1:]:
                        session.delete(duplicate)
                session.commit()
        logger.debug(f"Re-indexed {note.label}")
        return note

    def change_title(self, note: Note, new_title: str) -> Note:
        """Change the title of one record, atomically.

        Raises:
            NoteNotFoundError: If the record is not indexed.
        """
        new_title = require_title(new_title)
        with self._write_lock, self._guard("change_title", ErrorCode.STORAGE_WRITE_FAILED):
            with self.session_factory() as session:
                record = session.scalars(
                    select(DBNote).where(self._identity_filter(note.title, note.project))
                ).first()
                if record is None:
                    raise NoteNotFoundError(note.title)
                record.title = new_title
                session.commit()
                return self._to_model(record)

    def change_project(self, note: Note, new_project: Optional[str]) -> Note:
        """Move one record into another project, atomically.

        Raises:
            NoteNotFoundError: If the record is not indexed.
        """
        new_project = require_project(new_project)
        with self._write_lock, self._guard("change_project", ErrorCode.STORAGE_WRITE_FAILED):
            with self.session_factory() as session:
                record = session.scalars(
                    select(DBNote).where(self._identity_filter(note.title, note.project))
                ).first()
                if record is None:
                    raise NoteNotFoundError(note.title)
                record.project = new_project
                session.commit()
                return self._to_model(record)

    def remove(self, note: Note) -> bool:
        """Drop every record with the note's identity.

        Returns:
            True if anything was removed.
        """
        with self._write_lock, self._guard("remove", ErrorCode.STORAGE_WRITE_FAILED):
            with self.session_factory() as session:
                records = session.scalars(
                    select(DBNote).where(self._identity_filter(note.title, note.project))
                ).all()
                for record in records:
                    session.delete(record)
                session.commit()
        return bool(records)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def all(self) -> List[Note]:
        """Every indexed note, sorted by (project, title)."""
        with self._guard("all"):
            with self.session_factory() as session:
                return self._select_notes(session)

    def get(self, title: str, project: Optional[str] = None) -> Optional[Note]:
        """Exact lookup of one record by identity."""
        with self._guard("get"):
            with self.session_factory() as session:
                notes = self._select_notes(
                    session, self._identity_filter(title, require_project(project))
                )
        return notes[0] if notes else None

    def find_by_exact_title(self, title: str) -> List[Note]:
        """Every note with exactly this title, in any project."""
        with self._guard("find_by_exact_title"):
            with self.session_factory() as session:
                return self._select_notes(session, DBNote.title == title)

    def find_by_title(self, pattern: str) -> List[Note]:
        """Notes whose title matches a glob pattern (``*``, ``?``, ``[...]``)."""
        with self._guard("find_by_title"):
            with self.session_factory() as session:
                return self._select_notes(session, DBNote.title.op("GLOB")(pattern))

    def find_by_tag(self, pattern: str) -> List[Note]:
        """Notes with at least one tag matching a glob pattern.

        Hierarchical children are not included implicitly; query
        ``f"{tag}/*"`` as well for the subtree.
        """
        with self._guard("find_by_tag"):
            return self._load_ids(self.tags.find_note_ids_by_pattern(pattern))

    def find_by_links_to(self, title: str) -> List[Note]:
        """Notes whose links contain exactly ``title``."""
        with self._guard("find_by_links_to"):
            return self._load_ids(self.links.find_source_ids(title))

    def list_tags(self) -> List[str]:
        """Distinct tags across the collection, sorted."""
        with self._guard("list_tags"):
            return self.tags.list_names()

    def tag_counts(self) -> Dict[str, int]:
        """Number of notes carrying each tag, keyed by tag."""
        with self._guard("tag_counts"):
            return self.tags.get_with_counts()

    def incoming_counts(self) -> Dict[str, int]:
        """Number of notes linking to each target title."""
        with self._guard("incoming_counts"):
            return self.links.count_incoming()

    def list_projects(self) -> List[str]:
        """Distinct named projects, sorted. The default collection is not listed."""
        with self._guard("list_projects"):
            with self.session_factory() as session:
                return list(
                    session.scalars(
                        select(DBNote.project)
                        .where(DBNote.project.is_not(None))
                        .distinct()
                        .order_by(DBNote.project)
                    ).all()
                )

    def zettel_not_yet_created(self) -> List[str]:
        """Link targets with no note of that exact title (ghosts), sorted."""
        with self._guard("zettel_not_yet_created"):
            return self.links.find_unresolved_targets()

    @traced("search_text")
    def search_text(self, text: str) -> List[Note]:
        """Notes whose file content contains ``text`` (case-sensitive).

        Files are scanned in parallel. A file that cannot be read is logged
        and skipped.
        """
        notes = self.all()

        def contains(note: Note) -> bool:
            try:
                return text in read_text(self.path_of(note))
            except FileOperationError as e:
                logger.warning(f"Skipping {note.label} during search: {e}")
                return False

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            hits = list(executor.map(contains, notes))
        return [note for note, hit in zip(notes, hits) if hit]

    # ------------------------------------------------------------------
    # Files
    # ------------------------------------------------------------------

    def path_of(self, note: Note) -> Path:
        """Location of a note's file in this collection."""
        return note.path(self.root)

    def read_note(self, path: Path) -> Note:
        """Read a note file and extract its links and tags.

        Raises:
            NoteFileNotFoundError: If the file does not exist.
            FileOperationError: If it cannot be read.
            ValidationError: If its location does not make a valid note.
        """
        title, project = note_identity(self.root, path)
        content = read_text(path)
        try:
            return self._parser.parse_note(title, project, content)
        except ValueError as e:
            raise ValidationError(
                f"Cannot index {Path(path).name}: {e}",
                field="path",
                value=str(path),
            ) from e

    # ------------------------------------------------------------------
    # Full rebuild
    # ------------------------------------------------------------------

    def _read_for_rebuild(self, path: Path) -> Optional[Note]:
        try:
            return self.read_note(path)
        except (FileOperationError, ValidationError) as e:
            logger.error(f"Skipping {path.name}: {e}")
            return None

    @traced("generate")
    def generate(self) -> int:
        """Rebuild the whole index from the note files.

        Files are read and parsed in worker threads, the records are
        written into a scratch database next to the live one, and the
        scratch file replaces the live one only once it is complete. If
        anything fails, the previous index is left untouched.

        Files that cannot be read or do not form a valid note are logged
        and skipped.

        Returns:
            Number of notes indexed.
        """
        files = list_markdown_files(self.root)
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            parsed = list(executor.map(self._read_for_rebuild, files))
        notes = [note for note in parsed if note is not None]
        failed = len(files) - len(notes)
        if failed:
            logger.warning(f"{failed} of {len(files)} note files could not be indexed")

        scratch = self.db_path.with_name(
            f".{self.db_path.name}.rebuild-{uuid.uuid4().hex[:8]}"
        )
        try:
            self._build_scratch(scratch, notes)
            self._swap_in(scratch)
        finally:
            if scratch.exists():
                try:
                    scratch.unlink()
                except OSError as e:
                    logger.warning(f"Could not remove scratch index {scratch.name}: {e}")

        logger.info(f"Index generated: {len(notes)} notes from {len(files)} files")
        return len(notes)

    def _build_scratch(self, scratch: Path, notes: List[Note]) -> None:
        engine = None
        try:
            engine = init_db(scratch, wal=False)
            session_factory = get_session_factory(engine)
            with session_factory() as session:
                session.add_all(self._to_db(note) for note in notes)
                session.commit()
        except (*_DB_ERRORS, OSError) as e:
            raise StorageError(
                "Failed to build the new index",
                operation="generate",
                path=str(scratch),
                code=ErrorCode.DATABASE_REBUILD_FAILED,
                original_error=e,
            ) from e
        finally:
            if engine is not None:
                engine.dispose()

    def _swap_in(self, scratch: Path) -> None:
        """Replace the live index file with ``scratch``."""
        with self._write_lock:
            self.engine.dispose()
            try:
                # A leftover WAL of the old file must never be replayed onto the new one
                for suffix in ("-wal", "-shm"):
                    sidecar = Path(f"{self.db_path}{suffix}")
                    if sidecar.exists():
                        sidecar.unlink()
                os.replace(scratch, self.db_path)
            except OSError as e:
                self._connect()
                raise DatabaseCorruptionError(
                    f"Could not replace the index with the rebuilt one: {e}",
                    recovered=True,
                    original_error=e,
                ) from e
            self._connect()
