"""
Bump the manifest schema version together with the code constant that pins it.
"""

import argparse
import logging
from typing import List, Optional

from ..sync.engine.manifest import bump_schema_version
from ..sync.errors import SyncError
from ..sync.models import SchemaVersionBump
from ..utils.app_logging import configure_logging

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_PATH = "data/manifest.yaml"
DEFAULT_SOURCE_PATH = "localdb_sync/sync/constants.py"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bump-schema-version",
        description="Increment the manifest schema version and CURRENT_SCHEMA_VERSION together",
    )
    parser.add_argument("manifest_path", nargs="?", default=DEFAULT_MANIFEST_PATH,
                        help=f"Manifest file (default: {DEFAULT_MANIFEST_PATH})")
    parser.add_argument("source_path", nargs="?", default=DEFAULT_SOURCE_PATH,
                        help=f"Module defining CURRENT_SCHEMA_VERSION (default: {DEFAULT_SOURCE_PATH})")
    return parser


def run_with_args(argv: Optional[List[str]] = None) -> SchemaVersionBump:
    """Parse arguments and bump; usage errors exit through argparse."""
    args = build_parser().parse_args(argv)
    return bump_schema_version(args.manifest_path, args.source_path)


def main(argv: Optional[List[str]] = None) -> int:
    configure_logging("WARNING")
    try:
        bump = run_with_args(argv)
    except (SyncError, OSError) as e:
        logger.error(f"failed to bump schema version: {e}")
        return 1

    print(f"Bumped schema version from {bump.previous} to {bump.next}")
    print(f"previous={bump.previous}")
    print(f"next={bump.next}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
