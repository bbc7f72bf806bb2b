"""
localdb_sync - keeps per-network local database snapshots in sync with an external indexer
"""

__version__ = "1.0.0"
