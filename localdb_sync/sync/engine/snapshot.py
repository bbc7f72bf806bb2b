"""
Working snapshot lifecycle: hydrate from a .sql.gz archive, re-package after sync
"""

import os
import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple, Union

from ..errors import ToolError

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

SNAPSHOT_SUFFIX = ".db"
ARCHIVE_SUFFIX = ".sql.gz"
INTERMEDIATE_SUFFIX = ".sql"


def snapshot_paths(stem: str, directory: PathLike) -> Tuple[Path, Path]:
    """(working snapshot, archive) paths for a stem."""
    directory = Path(directory)
    return directory / f"{stem}{SNAPSHOT_SUFFIX}", directory / f"{stem}{ARCHIVE_SUFFIX}"


def remove_if_exists(path: Path):
    try:
        path.unlink()
    except FileNotFoundError:
        pass


def _discard(*paths: Path):
    """Best-effort removal of partial outputs while an error is propagating."""
    for path in paths:
        try:
            remove_if_exists(path)
        except OSError as e:
            logger.warning(f"Failed to remove partial file {path}: {e}")


class SnapshotLifecycle:
    """Prepare and finalize the per-network SQLite snapshot."""

    def __init__(self, sqlite_bin: str = "sqlite3", gzip_bin: str = "gzip"):
        self.sqlite_bin = sqlite_bin
        self.gzip_bin = gzip_bin

    def prepare(self, stem: str, directory: PathLike) -> Tuple[Path, Path]:
        """
        Materialize the working snapshot for a stem.

        Removes any stale snapshot left by an earlier failed run. When an
        archive exists it is decompressed and loaded into a fresh database;
        otherwise no snapshot is created and the indexer starts from scratch.

        Returns:
            (db_path, dump_path)

        Raises:
            ToolError: If decompression or loading fails; partial output is removed
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)

        db_path, dump_path = snapshot_paths(stem, directory)
        sql_path = directory / f"{stem}{INTERMEDIATE_SUFFIX}"

        remove_if_exists(db_path)
        remove_if_exists(sql_path)

        if not dump_path.exists():
            logger.info(f"No existing dump for {stem}; CLI will initialize a new database.")
            return db_path, dump_path

        logger.info(f"Extracting dump for {stem} from {dump_path}")
        try:
            self._run_tool(
                self.gzip_bin,
                [self.gzip_bin, "-dc", str(dump_path)],
                f"failed to decompress dump for {stem}",
                stdout_path=sql_path,
            )
            self._run_tool(
                self.sqlite_bin,
                [self.sqlite_bin, "-bail", str(db_path), f".read {_dot_command_arg(sql_path)}"],
                f"failed to load dump for {stem} into {db_path}",
            )
        except BaseException:
            _discard(db_path, sql_path)
            raise

        remove_if_exists(sql_path)
        return db_path, dump_path

    def finalize(self, stem: str, db_path: PathLike, dump_path: PathLike):
        """
        Export the working snapshot back into its archive.

        A missing snapshot means nothing to persist and is not an error. The
        new archive is written to a temp file and renamed over the old one,
        so the previous archive survives any failure.
        """
        db_path = Path(db_path)
        dump_path = Path(dump_path)

        if not db_path.exists():
            logger.info(f"No database file produced for {stem}; skipping archive.")
            return

        sql_path = db_path.with_name(f"{stem}{INTERMEDIATE_SUFFIX}")
        temp_dump_path = dump_path.with_name(dump_path.name + ".tmp")

        logger.info(f"Archiving database for {stem} to {dump_path}")
        try:
            self._run_tool(
                self.sqlite_bin,
                [self.sqlite_bin, "-bail", str(db_path), ".dump"],
                f"failed to export database for {stem}",
                stdout_path=sql_path,
            )
            self._run_tool(
                self.gzip_bin,
                [self.gzip_bin, "-c", "-n", str(sql_path)],
                f"failed to compress dump for {stem}",
                stdout_path=temp_dump_path,
            )
            os.replace(temp_dump_path, dump_path)
        except BaseException:
            _discard(sql_path, temp_dump_path)
            raise

        remove_if_exists(sql_path)
        remove_if_exists(db_path)
        logger.info(f"Archived {stem} ({dump_path.stat().st_size} bytes)")

    def _run_tool(self, tool: str, cmd: List[str], message: str,
                  stdout_path: Optional[Path] = None):
        """Run a helper tool, optionally streaming stdout to a file."""
        logger.debug(f"Running: {' '.join(cmd)}")
        try:
            if stdout_path is not None:
                with open(stdout_path, 'wb') as out:
                    result = subprocess.run(cmd, stdout=out, stderr=subprocess.PIPE)
            else:
                result = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as e:
            raise ToolError(tool, f"{message}: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.decode(errors='replace').strip()
            detail = f": {stderr}" if stderr else ""
            raise ToolError(tool, f"{message}{detail}", returncode=result.returncode)


def _dot_command_arg(path: Path) -> str:
    """Quote a path for use in a sqlite3 dot-command."""
    return '"' + str(path).replace('\\', '\\\\').replace('"', '\\"') + '"'
