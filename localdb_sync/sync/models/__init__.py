"""
Data models for sync operations
"""

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Tuple, Any

from ..constants import (
    CURRENT_SCHEMA_VERSION,
    DEFAULT_SEED_GENERATION,
    RELEASE_DOWNLOAD_URL_TEMPLATE,
)
from ..errors import ManifestError


def parse_network_id(value: Any) -> int:
    """
    Parse a network (chain) id from its numeric or decimal-string form.

    Raises:
        ValueError: If the value is not a non-negative integer
    """
    if isinstance(value, bool):
        raise ValueError(f"network id must be an integer, got {value!r}")
    if isinstance(value, int):
        network_id = value
    elif isinstance(value, str) and value.strip().isdecimal():
        network_id = int(value.strip())
    else:
        raise ValueError(f"network id must be a non-negative integer, got {value!r}")

    if network_id < 0:
        raise ValueError(f"network id must be non-negative, got {network_id}")
    return network_id


@dataclass
class ManifestEntry:
    """Where the packaged snapshot for one network lives."""
    dump_url: str
    dump_timestamp: str
    seed_generation: int = DEFAULT_SEED_GENERATION

    def to_dict(self) -> dict:
        return {
            'dump_url': self.dump_url,
            'dump_timestamp': self.dump_timestamp,
            'seed_generation': self.seed_generation,
        }

    @classmethod
    def from_dict(cls, data: Any) -> 'ManifestEntry':
        if not isinstance(data, dict):
            raise ManifestError(f"manifest entry must be a mapping, got {type(data).__name__}")
        try:
            dump_url = data['dump_url']
            dump_timestamp = data['dump_timestamp']
        except KeyError as e:
            raise ManifestError(f"manifest entry is missing field {e.args[0]!r}") from e

        seed_generation = data.get('seed_generation', DEFAULT_SEED_GENERATION)
        if isinstance(seed_generation, bool) or not isinstance(seed_generation, int) or seed_generation < 1:
            raise ManifestError(f"seed_generation must be a positive integer, got {seed_generation!r}")

        return cls(
            dump_url=str(dump_url),
            dump_timestamp=str(dump_timestamp),
            seed_generation=seed_generation,
        )


@dataclass
class Manifest:
    """Versioned mapping of network id to its published snapshot."""
    schema_version: int
    networks: Dict[int, ManifestEntry] = field(default_factory=dict)

    @classmethod
    def new(cls) -> 'Manifest':
        """Empty manifest at the current schema version."""
        return cls(schema_version=CURRENT_SCHEMA_VERSION)

    def to_dict(self) -> dict:
        """Serializable form with networks in ascending id order."""
        return {
            'schema_version': self.schema_version,
            'networks': {
                network_id: self.networks[network_id].to_dict()
                for network_id in sorted(self.networks)
            },
        }

    @classmethod
    def from_dict(cls, data: Any) -> 'Manifest':
        if not isinstance(data, dict):
            raise ManifestError("manifest document must be a mapping")

        schema_version = data.get('schema_version')
        if isinstance(schema_version, bool) or not isinstance(schema_version, int):
            raise ManifestError(f"schema_version must be an integer, got {schema_version!r}")

        raw_networks = data.get('networks') or {}
        if not isinstance(raw_networks, dict):
            raise ManifestError("networks must be a mapping of network id to entry")

        networks = {}
        for key, entry in raw_networks.items():
            try:
                network_id = parse_network_id(key)
            except ValueError as e:
                raise ManifestError(f"invalid network id in manifest: {e}") from e
            networks[network_id] = ManifestEntry.from_dict(entry)

        return cls(schema_version=schema_version, networks=dict(sorted(networks.items())))


@dataclass
class SyncPlan:
    """Resume point for one network, recomputed from the snapshot every run."""
    db_path: Path
    dump_path: Path
    last_synced_block: Optional[int] = None
    next_start_block: Optional[int] = None


@dataclass(frozen=True)
class SyncConfig:
    """Run-scoped configuration; never mutated once built."""
    db_dir: Path = Path("data")
    cli_dir: Path = Path("bin")
    chain_ids: Tuple[int, ...] = ()
    release_url_template: str = RELEASE_DOWNLOAD_URL_TEMPLATE
    keep_archive: bool = False


@dataclass
class RunCliSyncOptions:
    """Arguments for one invocation of the external indexer."""
    cli_binary: str
    db_path: str
    chain_id: int
    api_token: Optional[str] = field(default=None, repr=False)
    settings_yaml: str = field(default="", repr=False)
    start_block: Optional[int] = None
    end_block: Optional[int] = None


@dataclass
class SchemaVersionBump:
    previous: int
    next: int


@dataclass
class SeedGenerationBump:
    network_id: int
    previous: int
    next: int


@dataclass
class SyncReport:
    """Summary of a completed run."""
    start_time: datetime
    end_time: datetime
    chain_ids: Tuple[int, ...] = ()

    @property
    def duration(self) -> float:
        return (self.end_time - self.start_time).total_seconds()
