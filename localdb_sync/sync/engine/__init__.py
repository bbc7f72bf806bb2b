"""
Sync engine components
"""

from .manifest import ManifestStore
from .planner import SyncPlanner, ToolWarningState
from .snapshot import SnapshotLifecycle
from .sync_engine import NetworkSyncEngine

__all__ = ['ManifestStore', 'SyncPlanner', 'ToolWarningState', 'SnapshotLifecycle', 'NetworkSyncEngine']
