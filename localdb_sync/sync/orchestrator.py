"""
Sync orchestrator - central coordinator for a full multi-network run
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from .constants import (
    API_TOKEN_ENV_VARS,
    CLI_ARCHIVE_NAME,
    CLI_BINARY_URL_ENV_VAR,
    MANIFEST_FILE_NAME,
    SETTINGS_YAML_ENV_VAR,
    SYNC_CHAIN_IDS_ENV_VAR,
)
from .errors import ConfigurationError, HttpError, NetworkSyncError, SyncError
from .models import Manifest, SyncConfig, SyncReport
from .runtime import SyncRuntime, manifest_url
from .engine.sync_engine import NetworkSyncEngine
from ..utils.config_loader import parse_chain_ids, resolve_api_token, resolve_required_env

logger = logging.getLogger(__name__)


class SyncInputs:
    """Environment inputs, validated before anything touches disk or network."""

    def __init__(self, cli_binary_url: str, settings_yaml_url: str, api_token: str,
                 chain_ids: Tuple[int, ...]):
        self.cli_binary_url = cli_binary_url
        self.settings_yaml_url = settings_yaml_url
        self.api_token = api_token
        self.chain_ids = chain_ids

    def __repr__(self):
        return (f"SyncInputs(cli_binary_url={self.cli_binary_url!r}, "
                f"settings_yaml_url={self.settings_yaml_url!r}, chain_ids={self.chain_ids!r})")


def resolve_inputs(env) -> SyncInputs:
    """
    Read and validate every environment input.

    Raises:
        ConfigurationError: On the first missing or malformed input
    """
    cli_binary_url = resolve_required_env(env, CLI_BINARY_URL_ENV_VAR)
    settings_yaml_url = resolve_required_env(env, SETTINGS_YAML_ENV_VAR)

    api_token = resolve_api_token(env)
    if api_token is None:
        raise ConfigurationError(f"Missing API token. Set one of: {', '.join(API_TOKEN_ENV_VARS)}.")

    chain_ids = parse_chain_ids(env.get(SYNC_CHAIN_IDS_ENV_VAR), source=SYNC_CHAIN_IDS_ENV_VAR)
    return SyncInputs(cli_binary_url, settings_yaml_url, api_token, chain_ids)


def resolve_path(base: Path, configured: Path) -> Path:
    configured = Path(configured)
    return configured if configured.is_absolute() else Path(base) / configured


def network_set(manifest: Manifest, *extra: Iterable[int]) -> List[int]:
    """Ascending union of manifest networks and any extra id collections."""
    chain_ids = set(manifest.networks)
    for ids in extra:
        chain_ids.update(ids)
    return sorted(chain_ids)


class SyncOrchestrator:
    """Drive one run: inputs, binary, manifest, snapshots, then each network."""

    def __init__(self, runtime: SyncRuntime, config: Optional[SyncConfig] = None):
        self.runtime = runtime
        self.config = config or SyncConfig()
        self.engine = NetworkSyncEngine(
            database=runtime.database,
            cli_runner=runtime.cli_runner,
            manifest=runtime.manifest,
            time_provider=runtime.time,
        )

    def run(self) -> SyncReport:
        """
        Execute the run, stopping at the first failure.

        Networks committed before a failure keep their manifest entries; the
        failing network is not committed.

        Returns:
            SyncReport: Start and end time plus the processed network ids

        Raises:
            SyncError: Any failure, with its cause chained
        """
        runtime = self.runtime
        config = self.config

        start_time = runtime.time.now()
        logger.info(f"Sync started at {start_time.isoformat()}")

        inputs = resolve_inputs(runtime.env)
        logger.info(f"Using CLI binary at {inputs.cli_binary_url}")
        logger.info("Using API token sourced from environment.")

        settings_yaml = self._fetch_settings(inputs.settings_yaml_url)
        cli_binary = self._acquire_binary(inputs.cli_binary_url)

        db_dir = resolve_path(runtime.cwd, config.db_dir)
        db_dir.mkdir(parents=True, exist_ok=True)
        manifest_path = db_dir / MANIFEST_FILE_NAME

        manifest = runtime.manifest.download_manifest(
            runtime.http, manifest_path, manifest_url(config.release_url_template)
        )
        runtime.manifest.download_dumps(runtime.http, manifest, db_dir, config.release_url_template)

        chain_ids = network_set(manifest, inputs.chain_ids, config.chain_ids)
        logger.info(f"Networks to sync: {', '.join(map(str, chain_ids)) or 'none'}")

        processed = []
        for chain_id in chain_ids:
            chain_start = runtime.time.now()
            try:
                self.engine.sync_network(
                    chain_id=chain_id,
                    cli_binary=cli_binary,
                    db_dir=db_dir,
                    manifest_path=manifest_path,
                    api_token=inputs.api_token,
                    settings_yaml=settings_yaml,
                    release_url_template=config.release_url_template,
                )
            except (SyncError, OSError) as e:
                logger.error(f"Sync failed for chain {chain_id}: {e}")
                raise NetworkSyncError(chain_id, f"sync failed for chain {chain_id}") from e

            processed.append(chain_id)
            chain_end = runtime.time.now()
            logger.info(
                f"Chain {chain_id} completed at {chain_end.isoformat()} "
                f"(duration: {(chain_end - chain_start).total_seconds():.1f}s)"
            )

        end_time = runtime.time.now()
        report = SyncReport(start_time=start_time, end_time=end_time, chain_ids=tuple(processed))
        logger.info(f"All syncs completed at {end_time.isoformat()} (duration: {report.duration:.1f}s)")
        return report

    def _fetch_settings(self, url: str) -> str:
        logger.info(f"Fetching settings YAML from {url}")
        try:
            return self.runtime.http.fetch_text(url)
        except HttpError as e:
            raise HttpError(url, f"failed to download settings YAML from {url}",
                            status_code=e.status_code) from e

    def _acquire_binary(self, url: str) -> Path:
        runtime = self.runtime
        archive_path = runtime.cwd / CLI_ARCHIVE_NAME
        runtime.archive.download_archive(runtime.http, url, archive_path)

        cli_dir = resolve_path(runtime.cwd, self.config.cli_dir)
        cli_binary = runtime.archive.extract_binary(archive_path, cli_dir)

        if not self.config.keep_archive:
            try:
                archive_path.unlink()
            except OSError as e:
                logger.warning(f"Failed to remove CLI archive {archive_path}: {e}")
        return Path(cli_binary)


def run_sync_with(runtime: SyncRuntime, config: Optional[SyncConfig] = None) -> SyncReport:
    return SyncOrchestrator(runtime, config).run()


def run_sync(config: Optional[SyncConfig] = None) -> SyncReport:
    """Run with the production runtime (process environment, real tools)."""
    return run_sync_with(SyncRuntime.default(), config)
