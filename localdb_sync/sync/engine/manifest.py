"""
Manifest store for tracking published snapshots per network
"""

import os
import re
import stat
import logging
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Union

import yaml

from ..constants import CURRENT_SCHEMA_VERSION, DEFAULT_SEED_GENERATION
from ..errors import ManifestError
from ..models import (
    Manifest,
    ManifestEntry,
    SchemaVersionBump,
    SeedGenerationBump,
    parse_network_id,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

# Matches the single `CURRENT_SCHEMA_VERSION = N` assignment in the constants module
SCHEMA_CONSTANT_PATTERN = re.compile(
    r'^(?P<prefix>CURRENT_SCHEMA_VERSION\s*(?::\s*int\s*)?=\s*)(?P<value>\d+)(?P<suffix>[ \t]*(?:#.*)?)$',
    re.MULTILINE,
)


def normalize_yaml(contents: str) -> str:
    """Strip a leading document marker so stored manifests diff cleanly."""
    for marker in ("---\n", "---\r\n"):
        if contents.startswith(marker):
            return contents[len(marker):]
    return contents


def dump_manifest(manifest: Manifest) -> str:
    """Canonical YAML form of a manifest."""
    serialized = yaml.safe_dump(
        manifest.to_dict(),
        sort_keys=False,
        default_flow_style=False,
        explicit_start=False,
    )
    return normalize_yaml(serialized)


def parse_manifest(contents: str, source: str = "<string>") -> Manifest:
    """Parse manifest YAML; raises ManifestError on invalid documents."""
    try:
        data = yaml.safe_load(contents)
    except yaml.YAMLError as e:
        raise ManifestError(f"failed to parse manifest {source}: {e}") from e
    if data is None:
        raise ManifestError(f"manifest {source} is empty")
    try:
        return Manifest.from_dict(data)
    except ManifestError as e:
        raise ManifestError(f"invalid manifest {source}: {e}") from e


def atomic_write_text(path: PathLike, contents: str):
    """Write a file via a sibling temp file and an atomic rename."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', newline='') as f:
            f.write(contents)
            f.flush()
            os.fsync(f.fileno())
        # mkstemp creates 0600 files; keep the target's mode
        mode = stat.S_IMODE(path.stat().st_mode) if path.exists() else 0o644
        os.chmod(temp_name, mode)
        os.replace(temp_name, path)
    except BaseException:
        if os.path.exists(temp_name):
            os.unlink(temp_name)
        raise


def format_timestamp(timestamp: Union[datetime, str]) -> str:
    """ISO-8601 timestamp; naive datetimes are taken as UTC."""
    if isinstance(timestamp, str):
        return timestamp
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.isoformat()


class ManifestStore:
    """Load, commit and version-bump the manifest file."""

    def __init__(self, current_schema_version: int = CURRENT_SCHEMA_VERSION):
        self.current_schema_version = current_schema_version

    def load(self, manifest_path: PathLike) -> Manifest:
        """
        Load the manifest from disk.

        Returns an empty manifest at the current schema version when the file
        does not exist. Existing manifests are returned as stored; no migration
        is applied.
        """
        manifest_path = Path(manifest_path)
        if not manifest_path.exists():
            logger.info(f"No manifest at {manifest_path}, starting fresh")
            return Manifest(schema_version=self.current_schema_version)

        try:
            contents = manifest_path.read_text(encoding='utf-8')
        except OSError as e:
            raise ManifestError(f"failed to read manifest from {manifest_path}: {e}") from e

        manifest = parse_manifest(contents, str(manifest_path))
        logger.debug(f"Loaded manifest with {len(manifest.networks)} networks from {manifest_path}")
        return manifest

    def save(self, manifest_path: PathLike, manifest: Manifest):
        """Atomically rewrite the manifest in canonical form."""
        try:
            atomic_write_text(manifest_path, dump_manifest(manifest))
        except OSError as e:
            raise ManifestError(f"failed to write manifest to {manifest_path}: {e}") from e
        logger.debug(f"Saved manifest with {len(manifest.networks)} networks to {manifest_path}")

    def check_schema_version(self, manifest: Manifest):
        if manifest.schema_version != self.current_schema_version:
            raise ManifestError(
                f"unsupported manifest schema version {manifest.schema_version}; "
                f"expected {self.current_schema_version}"
            )

    def commit(self, manifest_path: PathLike, network_id: int, dump_url: str,
               timestamp: Union[datetime, str]) -> ManifestEntry:
        """
        Record a successful sync for one network.

        The network's existing seed generation is preserved (new networks
        start at 1). Fails without writing when the stored schema version is
        not the current one.

        Returns:
            ManifestEntry: The entry that was written
        """
        network_id = parse_network_id(network_id)
        manifest = self.load(manifest_path)
        self.check_schema_version(manifest)

        existing = manifest.networks.get(network_id)
        seed_generation = existing.seed_generation if existing else DEFAULT_SEED_GENERATION

        entry = ManifestEntry(
            dump_url=dump_url,
            dump_timestamp=format_timestamp(timestamp),
            seed_generation=seed_generation,
        )
        manifest.networks[network_id] = entry
        self.save(manifest_path, manifest)

        logger.info(f"Committed manifest entry for chain {network_id} (seed generation {seed_generation})")
        return entry

    def bump_seed_generation(self, manifest_path: PathLike, network_id: int) -> SeedGenerationBump:
        """Increment one network's seed generation by exactly one."""
        network_id = parse_network_id(network_id)
        manifest = self.load(manifest_path)
        self.check_schema_version(manifest)

        entry = manifest.networks.get(network_id)
        if entry is None:
            raise ManifestError(f"network {network_id} not found in manifest {manifest_path}")

        previous = entry.seed_generation
        entry.seed_generation = previous + 1
        self.save(manifest_path, manifest)

        logger.info(f"Bumped seed generation for chain {network_id} from {previous} to {entry.seed_generation}")
        return SeedGenerationBump(network_id=network_id, previous=previous, next=entry.seed_generation)

    def bump_schema_version(self, manifest_path: PathLike, source_path: PathLike) -> SchemaVersionBump:
        """
        Advance the manifest schema version and the CURRENT_SCHEMA_VERSION
        constant together.

        Both values must agree before the bump; on mismatch neither file is
        touched. If the manifest cannot be written after the source was
        updated, the source is restored.

        Args:
            manifest_path: Manifest YAML file
            source_path: Python module declaring CURRENT_SCHEMA_VERSION

        Returns:
            SchemaVersionBump: previous and next version
        """
        manifest_path = Path(manifest_path)
        source_path = Path(source_path)

        if not manifest_path.exists():
            raise ManifestError(f"manifest {manifest_path} does not exist")
        manifest = self.load(manifest_path)

        try:
            source = source_path.read_text(encoding='utf-8')
        except OSError as e:
            raise ManifestError(f"failed to read schema constant from {source_path}: {e}") from e

        matches = list(SCHEMA_CONSTANT_PATTERN.finditer(source))
        if len(matches) != 1:
            raise ManifestError(
                f"expected exactly one CURRENT_SCHEMA_VERSION assignment in {source_path}, found {len(matches)}"
            )
        match = matches[0]
        declared = int(match.group('value'))

        if declared != manifest.schema_version:
            raise ManifestError(
                f"schema version mismatch: {source_path} declares {declared} "
                f"but manifest {manifest_path} has {manifest.schema_version}"
            )

        previous = manifest.schema_version
        next_version = previous + 1

        updated_source = (
            source[:match.start('value')] + str(next_version) + source[match.end('value'):]
        )
        manifest.schema_version = next_version

        atomic_write_text(source_path, updated_source)
        try:
            atomic_write_text(manifest_path, dump_manifest(manifest))
        except BaseException:
            logger.error(f"Failed to write manifest {manifest_path}; restoring {source_path}")
            atomic_write_text(source_path, source)
            raise

        logger.info(f"Bumped manifest schema version from {previous} to {next_version}")
        return SchemaVersionBump(previous=previous, next=next_version)


_default_store = ManifestStore()


def load_manifest(manifest_path: PathLike) -> Manifest:
    return _default_store.load(manifest_path)


def update_manifest(manifest_path: PathLike, network_id: int, dump_url: str,
                    timestamp: Union[datetime, str]) -> ManifestEntry:
    return _default_store.commit(manifest_path, network_id, dump_url, timestamp)


def bump_seed_generation(manifest_path: PathLike, network_id: int) -> SeedGenerationBump:
    return _default_store.bump_seed_generation(manifest_path, network_id)


def bump_schema_version(manifest_path: PathLike, source_path: PathLike) -> SchemaVersionBump:
    return _default_store.bump_schema_version(manifest_path, source_path)
