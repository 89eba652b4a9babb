"""SQLAlchemy database models for the zettelkit index."""
from pathlib import Path

from sqlalchemy import (Column, ForeignKey, Integer, String, Text, create_engine,
                        event)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship, sessionmaker

Base = declarative_base()


class DBNote(Base):
    """One indexed note file.

    ``project`` is NULL for the default collection. ``(title, project)`` is
    deliberately not unique: the files are authoritative and the index only
    mirrors them.
    """
    __tablename__ = "notes"
    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(Text, nullable=False, index=True)
    project = Column(Text, nullable=True, index=True)

    links = relationship(
        "DBLink",
        back_populates="note",
        cascade="all, delete-orphan",
        order_by="DBLink.position",
    )
    tags = relationship(
        "DBTag",
        back_populates="note",
        cascade="all, delete-orphan",
        order_by="DBTag.position",
    )

    def __repr__(self) -> str:
        return f"<Note(id={self.id}, title='{self.title}', project={self.project!r})>"


class DBLink(Base):
    """A `[[target]]` reference, kept in the order it appears in the body."""
    __tablename__ = "links"
    id = Column(Integer, primary_key=True, autoincrement=True)
    note_id = Column(
        Integer, ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False)
    target = Column(Text, nullable=False, index=True)

    note = relationship("DBNote", back_populates="links")

    def __repr__(self) -> str:
        return f"<Link(note_id={self.note_id}, target='{self.target}')>"


class DBTag(Base):
    """A `#tag` occurrence, kept in the order it appears in the note."""
    __tablename__ = "tags"
    id = Column(Integer, primary_key=True, autoincrement=True)
    note_id = Column(
        Integer, ForeignKey("notes.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = Column(Integer, nullable=False)
    name = Column(String(255), nullable=False, index=True)

    note = relationship("DBNote", back_populates="tags")

    def __repr__(self) -> str:
        return f"<Tag(note_id={self.note_id}, name='{self.name}')>"


def init_db(db_path: Path, wal: bool = True) -> Engine:
    """Open (and create if needed) the index at ``db_path``.

    Applies SQLite settings on every connection:
    - WAL journal for the live index, the rollback journal for scratch
      files that are about to be swapped in with a plain rename
    - NORMAL synchronous mode
    - foreign keys, so deleting a note drops its links and tags
    - a busy timeout so worker threads wait for the writer instead of failing

    Args:
        db_path: Location of the SQLite file.
        wal: Use write-ahead logging.

    Returns:
        The SQLAlchemy engine, with the schema created.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"timeout": 30},
        pool_pre_ping=True,
    )

    journal_mode = "WAL" if wal else "DELETE"

    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute(f"PRAGMA journal_mode={journal_mode}")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    return engine


def get_session_factory(engine: Engine):
    """Sessions that keep loaded rows usable after commit."""
    return sessionmaker(bind=engine, expire_on_commit=False)
