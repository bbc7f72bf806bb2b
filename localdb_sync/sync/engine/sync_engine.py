"""
Per-network sync execution engine
"""

import logging
from pathlib import Path

from ..models import ManifestEntry, RunCliSyncOptions, SyncPlan
from ...utils.sync_logs import log_plan
from .snapshot import remove_if_exists

logger = logging.getLogger(__name__)


class NetworkSyncEngine:
    """Run prepare, plan, indexer and finalize for one network, then record it."""

    def __init__(self, database, cli_runner, manifest, time_provider):
        self.database = database
        self.cli_runner = cli_runner
        self.manifest = manifest
        self.time = time_provider

    def sync_network(
        self,
        chain_id: int,
        cli_binary: Path,
        db_dir: Path,
        manifest_path: Path,
        api_token: str,
        settings_yaml: str,
        release_url_template: str,
    ) -> ManifestEntry:
        """
        Sync a single network and commit its manifest entry.

        The working snapshot is removed whether the sync succeeds or fails;
        the manifest is only touched after the archive has been refreshed.

        Args:
            chain_id: Network to sync
            cli_binary: Path of the extracted indexer
            db_dir: Directory holding snapshots and archives
            manifest_path: Local manifest file
            api_token: Indexer credential
            settings_yaml: Settings document passed to the indexer
            release_url_template: Published location pattern with a {file} placeholder

        Returns:
            ManifestEntry: The committed entry
        """
        stem = str(chain_id)
        logger.info(f"Syncing chain {chain_id}")

        db_path, dump_path = self.database.prepare(stem, db_dir)
        try:
            plan: SyncPlan = self.database.plan(db_path, dump_path)
            log_plan(chain_id, plan)

            self.cli_runner.run(RunCliSyncOptions(
                cli_binary=str(cli_binary),
                db_path=str(db_path),
                chain_id=chain_id,
                api_token=api_token,
                settings_yaml=settings_yaml,
                start_block=plan.next_start_block,
            ))

            self.database.finalize(stem, db_path, dump_path)
        finally:
            remove_if_exists(Path(db_path))

        dump_url = release_url_template.format(file=Path(dump_path).name)
        entry = self.manifest.update_manifest(manifest_path, chain_id, dump_url, self.time.now())
        logger.info(f"Chain {chain_id} synced; manifest entry updated ({dump_url})")
        return entry
