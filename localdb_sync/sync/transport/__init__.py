"""
Adapters for the external collaborators: HTTP, the CLI archive and the indexer process
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union

from ..models import RunCliSyncOptions

PathLike = Union[str, Path]


class HttpClient(ABC):
    """Abstract base for fetching remote documents."""

    @abstractmethod
    def fetch_text(self, url: str) -> str:
        """Fetch a text document; raises HttpError on non-2xx."""
        pass

    @abstractmethod
    def fetch_binary(self, url: str) -> bytes:
        """Fetch raw bytes; raises HttpError on non-2xx."""
        pass


class ArchiveService(ABC):
    """Abstract base for obtaining the indexer binary."""

    @abstractmethod
    def download_archive(self, http: HttpClient, url: str, destination: PathLike) -> Path:
        """Download the CLI archive to destination."""
        pass

    @abstractmethod
    def extract_binary(self, archive_path: PathLike, output_dir: PathLike) -> Path:
        """Unpack the archive and return the executable path."""
        pass


class CliRunner(ABC):
    """Abstract base for running the external indexer."""

    @abstractmethod
    def run(self, options: RunCliSyncOptions):
        """Run one sync; raises on failure."""
        pass
