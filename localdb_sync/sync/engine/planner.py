"""
Resume-point planning from a local snapshot's own sync state
"""

import json
import logging
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple, Union

from ..constants import SYNC_STATUS_TABLE
from ..models import SyncPlan

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ToolWarningState:
    """
    Remembers whether the missing-sqlite3 warning was already shown.

    One instance lives for the whole process (the default database manager owns it);
    tests create their own to start clean.
    """

    def __init__(self):
        self.sqlite_missing_warned = False

    def warn_sqlite_missing(self, sqlite_bin: str):
        if self.sqlite_missing_warned:
            return
        logger.warning(f"{sqlite_bin} CLI not found; skipping local sync-status inspection.")
        self.sqlite_missing_warned = True


class SqliteToolMissing(Exception):
    """Raised internally when the sqlite3 executable cannot be spawned"""
    pass


def quote_identifier(identifier: str) -> str:
    """Quote an SQL identifier, doubling embedded quotes."""
    return '"' + identifier.replace('"', '""') + '"'


def select_block_column(columns: List[Tuple[str, str]]) -> Optional[str]:
    """First column (declaration order) whose name contains 'block', any case."""
    for name, _type in columns:
        if 'block' in name.lower():
            return name
    return None


def parse_block_number(value) -> Optional[int]:
    """Non-negative integer from a stored value, None if it isn't one."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    text = str(value).strip()
    if not text.isdecimal():
        return None
    return int(text)


class SyncPlanner:
    """
    Inspect a snapshot read-only to find the last synced block.

    Every lookup failure (missing table, no block column, empty table,
    unparsable value, sqlite3 errors) yields a plan without a start block
    so the indexer decides where to begin.
    """

    def __init__(self, sqlite_bin: str = "sqlite3", warnings: Optional[ToolWarningState] = None):
        self.sqlite_bin = sqlite_bin
        self.warnings = warnings if warnings is not None else ToolWarningState()

    def plan(self, db_path: PathLike, dump_path: PathLike) -> SyncPlan:
        db_path = Path(db_path)
        last_synced_block = self.last_synced_block(db_path)
        next_start_block = last_synced_block + 1 if last_synced_block is not None else None

        return SyncPlan(
            db_path=db_path,
            dump_path=Path(dump_path),
            last_synced_block=last_synced_block,
            next_start_block=next_start_block,
        )

    def last_synced_block(self, db_path: PathLike) -> Optional[int]:
        db_path = Path(db_path)
        if not db_path.exists():
            return None

        try:
            if not self._has_status_table(db_path):
                logger.debug(f"{db_path} has no {SYNC_STATUS_TABLE} table")
                return None

            column = select_block_column(self.table_columns(db_path, SYNC_STATUS_TABLE))
            if column is None:
                logger.debug(f"No block column in {SYNC_STATUS_TABLE} of {db_path}")
                return None

            quoted = quote_identifier(column)
            rows = self._query(
                db_path,
                f"SELECT {quoted} FROM {SYNC_STATUS_TABLE} ORDER BY {quoted} DESC LIMIT 1;",
            )
        except SqliteToolMissing:
            self.warnings.warn_sqlite_missing(self.sqlite_bin)
            return None

        if not rows:
            return None
        return parse_block_number(rows[0].get(column))

    def table_columns(self, db_path: Path, table: str) -> List[Tuple[str, str]]:
        """(name, type) pairs of a table in declaration order."""
        rows = self._query(db_path, f"PRAGMA table_info({quote_identifier(table)});")
        rows = sorted(rows, key=lambda row: row.get('cid', 0))
        return [
            (str(row['name']), str(row.get('type') or ''))
            for row in rows
            if row.get('name') is not None
        ]

    def _has_status_table(self, db_path: Path) -> bool:
        rows = self._query(
            db_path,
            f"SELECT name FROM sqlite_master WHERE type='table' AND name='{SYNC_STATUS_TABLE}' LIMIT 1;",
        )
        return bool(rows)

    def _query(self, db_path: Path, sql: str) -> List[dict]:
        """
        Run one read-only query through the sqlite3 CLI in JSON mode.

        Returns an empty list when sqlite3 fails or prints something that
        isn't a JSON array of rows.
        """
        cmd = [self.sqlite_bin, "-readonly", "-json", str(db_path), sql]
        try:
            result = subprocess.run(cmd, capture_output=True, text=True)
        except OSError as e:
            raise SqliteToolMissing(str(e)) from e

        if result.returncode != 0:
            logger.debug(f"sqlite3 query failed on {db_path} (exit code {result.returncode}): {result.stderr.strip()}")
            return []

        output = result.stdout.strip()
        if not output:
            return []
        try:
            rows = json.loads(output)
        except json.JSONDecodeError:
            logger.debug(f"Unexpected sqlite3 output for {db_path}: {output[:200]}")
            return []
        if not isinstance(rows, list):
            return []
        return [row for row in rows if isinstance(row, dict)]
