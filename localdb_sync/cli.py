"""
Command-line entry point for a full sync run
"""

import argparse
import logging
import traceback
from datetime import datetime, timezone
from typing import List, Optional

from .sync.errors import SyncError
from .sync.models import SyncReport, parse_network_id
from .sync.orchestrator import run_sync
from .utils.app_logging import configure_logging, log_application_event, log_error
from .utils.config_loader import ConfigLoader
from .utils.sync_logs import save_sync_log

logger = logging.getLogger(__name__)


def network_arg(value: str) -> int:
    try:
        return parse_network_id(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="localdb-sync",
        description="Sync per-network local databases and publish their archives",
    )
    parser.add_argument("--networks", nargs="+", type=network_arg, metavar="ID",
                        help="Extra network ids to sync in addition to the manifest")
    parser.add_argument("--db-dir", help="Directory for snapshots, archives and the manifest")
    parser.add_argument("--cli-dir", help="Directory the indexer binary is extracted into")
    parser.add_argument("--keep-archive", action="store_true", default=None,
                        help="Keep the downloaded CLI archive")
    parser.add_argument("--config", help="YAML config file (default: $LOCALDB_SYNC_CONFIG or ./localdb-sync.yaml)")
    parser.add_argument("--log-level", default="INFO", help="Logging level (default: INFO)")
    return parser


def format_error_chain(error: BaseException) -> str:
    """Full traceback including chained causes."""
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        configure_logging(args.log_level)
    except ValueError as e:
        parser.error(str(e))

    started = datetime.now(timezone.utc)
    try:
        config = ConfigLoader(config_path=args.config).build_sync_config({
            'db_dir': args.db_dir,
            'cli_dir': args.cli_dir,
            'keep_archive': args.keep_archive,
            'chain_ids': tuple(args.networks) if args.networks else None,
        })
        log_application_event("sync.start", "Sync run started", {"config": repr(config)})
        report = run_sync(config)
    except (SyncError, OSError) as e:
        logger.error(f"error: {e}")
        logger.error(format_error_chain(e))
        failed = SyncReport(start_time=started, end_time=datetime.now(timezone.utc))
        save_sync_log(failed, success=False, error=str(e))
        log_error("sync", str(e), {"error_type": type(e).__name__})
        return 1

    save_sync_log(report, success=True)
    log_application_event("sync.complete", "Sync run completed", {
        "chain_ids": list(report.chain_ids),
        "duration": report.duration,
    })
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
