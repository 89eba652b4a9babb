"""Service layer: synchronization, rename propagation, backlinks and graph queries."""

from zettelkit.services.backlink_service import BacklinkService
from zettelkit.services.graph_service import GraphService
from zettelkit.services.rename_service import RenameService
from zettelkit.services.sync_service import SyncService

__all__ = [
    "BacklinkService",
    "GraphService",
    "RenameService",
    "SyncService",
]
