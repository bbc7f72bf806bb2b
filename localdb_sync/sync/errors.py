"""
Exception types raised by the sync engine
"""

from typing import Optional


class SyncError(Exception):
    """Base class for all sync failures"""
    pass


class ConfigurationError(SyncError):
    """Missing or malformed run inputs (environment, config file, arguments)"""
    pass


class ManifestError(SyncError):
    """Manifest consistency errors: schema mismatch, unknown network, bad document"""
    pass


class ArchiveError(SyncError):
    """The CLI archive could not be unpacked into a usable binary"""
    pass


class HttpError(SyncError):
    """Non-2xx response or transport failure while fetching a URL"""

    def __init__(self, url: str, message: str, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class ToolError(SyncError):
    """A helper process (tar, gzip, sqlite3, the indexer) failed to spawn or exited non-zero"""

    def __init__(self, tool: str, message: str, returncode: Optional[int] = None):
        self.tool = tool
        self.returncode = returncode
        status = "not started" if returncode is None else f"exit code {returncode}"
        super().__init__(f"{message} ({tool}: {status})")


class NetworkSyncError(SyncError):
    """Wraps the failure of a single network's sync"""

    def __init__(self, chain_id: int, message: str):
        self.chain_id = chain_id
        super().__init__(message)
