"""
Bump the seed generation of one network in the manifest.

Consumers treat a new seed generation as a signal to discard their local
copy and re-seed from the published archive.
"""

import argparse
import logging
from typing import List, Optional

from ..sync.engine.manifest import bump_seed_generation
from ..sync.errors import SyncError
from ..sync.models import SeedGenerationBump, parse_network_id
from ..utils.app_logging import configure_logging

logger = logging.getLogger(__name__)

DEFAULT_MANIFEST_PATH = "data/manifest.yaml"


def chain_id_arg(value: str) -> int:
    try:
        return parse_network_id(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"failed to parse chain id {value!r}") from e


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bump-seed-generation",
        description="Increment a network's seed generation in the manifest",
    )
    parser.add_argument("chain_id", type=chain_id_arg, help="Network id, e.g. 42161")
    parser.add_argument("manifest_path", nargs="?", default=DEFAULT_MANIFEST_PATH,
                        help=f"Manifest file (default: {DEFAULT_MANIFEST_PATH})")
    return parser


def run_with_args(argv: Optional[List[str]] = None) -> SeedGenerationBump:
    """Parse arguments and bump; usage errors exit through argparse."""
    args = build_parser().parse_args(argv)
    return bump_seed_generation(args.manifest_path, args.chain_id)


def main(argv: Optional[List[str]] = None) -> int:
    configure_logging("WARNING")
    try:
        bump = run_with_args(argv)
    except (SyncError, OSError) as e:
        logger.error(f"failed to bump seed generation: {e}")
        return 1

    print(f"Bumped seed generation for chain {bump.network_id} from {bump.previous} to {bump.next}")
    print(f"previous={bump.previous}")
    print(f"next={bump.next}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
