"""
zettelkit - a note-graph engine for a plain-text Zettelkasten.

Notes are markdown files that reference each other with ``[[Title]]`` links
and carry inline ``#tags``. The files are the source of truth; a SQLite index
is kept alongside them as a disposable cache that answers graph queries
(backlinks, ghosts, isolated notes) and can be rebuilt at any time.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("zettelkit")
except PackageNotFoundError:
    __version__ = "0.3.0"
