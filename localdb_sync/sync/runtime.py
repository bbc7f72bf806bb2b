"""
Capability bundle handed to the sync orchestrator.

Each collaborator is an abstract base with one production adapter; tests
swap in fakes by building a SyncRuntime directly.
"""

import os
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple, Union

from .constants import MANIFEST_FILE_NAME, RELEASE_DOWNLOAD_URL_TEMPLATE
from .errors import HttpError
from .models import Manifest, ManifestEntry, SyncPlan
from .engine.manifest import ManifestStore, parse_manifest
from .engine.planner import SyncPlanner, ToolWarningState
from .engine.snapshot import SnapshotLifecycle, ARCHIVE_SUFFIX
from .transport import ArchiveService, CliRunner, HttpClient
from .transport.archive import TarArchiveService
from .transport.cli_runner import SubprocessCliRunner
from .transport.http_client import RequestsHttpClient

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class DatabaseManager(ABC):
    """Abstract base for the per-network snapshot operations."""

    @abstractmethod
    def prepare(self, stem: str, directory: PathLike) -> Tuple[Path, Path]:
        pass

    @abstractmethod
    def plan(self, db_path: PathLike, dump_path: PathLike) -> SyncPlan:
        pass

    @abstractmethod
    def finalize(self, stem: str, db_path: PathLike, dump_path: PathLike):
        pass


class ManifestService(ABC):
    """Abstract base for fetching and committing the manifest."""

    @abstractmethod
    def download_manifest(self, http: HttpClient, manifest_path: PathLike, url: str) -> Manifest:
        pass

    @abstractmethod
    def download_dumps(self, http: HttpClient, manifest: Manifest, db_dir: PathLike,
                       release_url_template: str):
        pass

    @abstractmethod
    def update_manifest(self, manifest_path: PathLike, network_id: int, dump_url: str,
                        timestamp: datetime) -> ManifestEntry:
        pass


class TimeProvider(ABC):
    """Abstract base for the clock."""

    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware UTC."""
        pass


class DefaultDatabaseManager(DatabaseManager):
    """SnapshotLifecycle plus SyncPlanner; owns the warn-once state for the run."""

    def __init__(self, warnings: Optional[ToolWarningState] = None, sqlite_bin: str = "sqlite3",
                 gzip_bin: str = "gzip"):
        self.warnings = warnings if warnings is not None else ToolWarningState()
        self.lifecycle = SnapshotLifecycle(sqlite_bin=sqlite_bin, gzip_bin=gzip_bin)
        self.planner = SyncPlanner(sqlite_bin=sqlite_bin, warnings=self.warnings)

    def prepare(self, stem: str, directory: PathLike) -> Tuple[Path, Path]:
        return self.lifecycle.prepare(stem, directory)

    def plan(self, db_path: PathLike, dump_path: PathLike) -> SyncPlan:
        return self.planner.plan(db_path, dump_path)

    def finalize(self, stem: str, db_path: PathLike, dump_path: PathLike):
        self.lifecycle.finalize(stem, db_path, dump_path)


class DefaultManifestService(ManifestService):
    """Manifest download, dump hydration and commits through a ManifestStore."""

    def __init__(self, store: ManifestStore = None):
        self.store = store or ManifestStore()

    def download_manifest(self, http: HttpClient, manifest_path: PathLike, url: str) -> Manifest:
        """
        Fetch the published manifest and write it locally in canonical form.

        An unreachable manifest (first run, or no release yet) starts an empty
        one. A reachable manifest that is malformed, or whose schema version is
        not the current one, is an error and nothing is written.
        """
        manifest_path = Path(manifest_path)
        manifest_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Fetching manifest from {url}")
        try:
            contents = http.fetch_text(url)
        except HttpError as e:
            logger.warning(f"No manifest available at {url}; starting with empty manifest ({e})")
            manifest = Manifest.new()
        else:
            manifest = parse_manifest(contents, url)
            self.store.check_schema_version(manifest)

        self.store.save(manifest_path, manifest)
        return manifest

    def download_dumps(self, http: HttpClient, manifest: Manifest, db_dir: PathLike,
                       release_url_template: str = RELEASE_DOWNLOAD_URL_TEMPLATE):
        if not manifest.networks:
            logger.info("Manifest has no networks; skipping dump hydration.")
            return

        db_dir = Path(db_dir)
        db_dir.mkdir(parents=True, exist_ok=True)

        for network_id in sorted(manifest.networks):
            file_name = f"{network_id}{ARCHIVE_SUFFIX}"
            url = release_url_template.format(file=file_name)
            destination = db_dir / file_name

            logger.info(f"Downloading dump for chain {network_id} from {url}")
            try:
                payload = http.fetch_binary(url)
            except HttpError as e:
                raise HttpError(url, f"failed to download dump for chain {network_id} from {url}",
                                status_code=e.status_code) from e
            destination.write_bytes(payload)

    def update_manifest(self, manifest_path: PathLike, network_id: int, dump_url: str,
                        timestamp: datetime) -> ManifestEntry:
        return self.store.commit(manifest_path, network_id, dump_url, timestamp)


class SystemTimeProvider(TimeProvider):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def manifest_url(release_url_template: str) -> str:
    return release_url_template.format(file=MANIFEST_FILE_NAME)


@dataclass
class SyncRuntime:
    """Everything the orchestrator touches outside its own arguments."""
    env: Mapping[str, str]
    cwd: Path
    http: HttpClient
    cli_runner: CliRunner
    archive: ArchiveService
    database: DatabaseManager
    manifest: ManifestService
    time: TimeProvider

    @classmethod
    def default(cls) -> 'SyncRuntime':
        """Production runtime bound to the process environment and working directory."""
        env: Dict[str, str] = dict(os.environ)
        return cls(
            env=env,
            cwd=Path(os.getcwd()),
            http=RequestsHttpClient(),
            cli_runner=SubprocessCliRunner(),
            archive=TarArchiveService(),
            database=DefaultDatabaseManager(),
            manifest=DefaultManifestService(),
            time=SystemTimeProvider(),
        )
