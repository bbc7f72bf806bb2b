"""
Centralized configuration loading for localdb-sync.

Run inputs come from two places: required environment variables (release
URLs, credentials, extra networks) and an optional YAML config file with
run settings (directories, extra networks, release location).
"""

import os
import yaml
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from ..sync.constants import API_TOKEN_ENV_VARS
from ..sync.errors import ConfigurationError
from ..sync.models import SyncConfig, parse_network_id

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = 'LOCALDB_SYNC_CONFIG'
DEFAULT_CONFIG_FILE = 'localdb-sync.yaml'

CONFIG_KEYS = ('db_dir', 'cli_dir', 'chain_ids', 'release_url_template', 'keep_archive')


def resolve_required_env(env: Mapping[str, str], name: str) -> str:
    """
    Trimmed value of a required environment variable.

    Raises:
        ConfigurationError: If the variable is unset or blank
    """
    value = (env.get(name) or '').strip()
    if not value:
        raise ConfigurationError(f"{name} environment variable is required")
    return value


def resolve_api_token(env: Mapping[str, str]) -> Optional[str]:
    """First non-empty credential among the accepted variable names"""
    for name in API_TOKEN_ENV_VARS:
        value = (env.get(name) or '').strip()
        if value:
            return value
    return None


def parse_chain_ids(value: Optional[str], source: str = 'SYNC_CHAIN_IDS') -> Tuple[int, ...]:
    """
    Parse a comma-separated list of network ids; blank entries are ignored.

    Raises:
        ConfigurationError: Naming the offending token
    """
    if not value:
        return ()

    chain_ids = []
    for token in value.split(','):
        token = token.strip()
        if not token:
            continue
        try:
            chain_ids.append(parse_network_id(token))
        except ValueError as e:
            raise ConfigurationError(f"invalid chain id {token!r} in {source}") from e
    return tuple(chain_ids)


class ConfigLoader:
    """Config file loader with consistent path resolution."""

    def __init__(self, config_path: Optional[str] = None, env: Optional[Mapping[str, str]] = None,
                 cwd: Optional[Path] = None):
        """
        Initialize the config loader with optional path overrides.

        Args:
            config_path: Optional explicit path to the config file
            env: Environment mapping (defaults to os.environ)
            cwd: Directory searched for localdb-sync.yaml (defaults to os.getcwd())
        """
        self.env = env if env is not None else os.environ
        self.cwd = Path(cwd) if cwd is not None else Path(os.getcwd())
        self.explicit = bool(config_path)
        self.config_path = self._resolve_config_path(config_path)

    def _resolve_config_path(self, config_path: Optional[str]) -> Optional[Path]:
        """
        Resolve the configuration file path.

        Priority order:
        1. Provided config_path parameter
        2. LOCALDB_SYNC_CONFIG environment variable
        3. localdb-sync.yaml in the working directory
        """
        if config_path:
            return Path(config_path)

        env_path = (self.env.get(CONFIG_ENV_VAR) or '').strip()
        if env_path:
            self.explicit = True
            return Path(env_path)

        cwd_path = self.cwd / DEFAULT_CONFIG_FILE
        if cwd_path.exists():
            return cwd_path

        return None

    def load_config(self) -> Dict[str, Any]:
        """
        Load the YAML configuration file.

        Returns:
            Dict of recognised settings; empty when no file is in use

        Raises:
            ConfigurationError: If a named file is missing, or any file is invalid
        """
        if self.config_path is None:
            return {}

        try:
            with open(self.config_path, 'r') as f:
                config = yaml.safe_load(f)
        except FileNotFoundError as e:
            if not self.explicit:
                return {}
            raise ConfigurationError(f"Configuration file not found: {self.config_path}") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration file {self.config_path}: {e}") from e

        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise ConfigurationError(f"Configuration file {self.config_path} must contain a mapping")

        unknown = sorted(set(config) - set(CONFIG_KEYS))
        if unknown:
            logger.warning(f"Ignoring unknown keys in {self.config_path}: {', '.join(map(str, unknown))}")

        logger.info(f"Loaded configuration from: {self.config_path}")
        return {key: config[key] for key in CONFIG_KEYS if key in config}

    def build_sync_config(self, overrides: Optional[Dict[str, Any]] = None) -> SyncConfig:
        """
        Merge file settings with command-line overrides into a SyncConfig.

        Overrides with a value of None are ignored.
        """
        settings = self.load_config()
        for key, value in (overrides or {}).items():
            if value is not None:
                settings[key] = value

        kwargs: Dict[str, Any] = {}
        if 'db_dir' in settings:
            kwargs['db_dir'] = Path(settings['db_dir'])
        if 'cli_dir' in settings:
            kwargs['cli_dir'] = Path(settings['cli_dir'])
        if 'release_url_template' in settings:
            template = str(settings['release_url_template'])
            if '{file}' not in template:
                raise ConfigurationError("release_url_template must contain a {file} placeholder")
            try:
                template.format(file='x')
            except (KeyError, IndexError, ValueError) as e:
                raise ConfigurationError(
                    f"release_url_template has placeholders other than {{file}}: {template!r}") from e
            kwargs['release_url_template'] = template
        if 'keep_archive' in settings:
            kwargs['keep_archive'] = bool(settings['keep_archive'])
        if 'chain_ids' in settings:
            kwargs['chain_ids'] = self._coerce_chain_ids(settings['chain_ids'])

        return SyncConfig(**kwargs)

    def _coerce_chain_ids(self, value: Any) -> Tuple[int, ...]:
        if isinstance(value, str):
            return parse_chain_ids(value, source='chain_ids')
        if not isinstance(value, (list, tuple)):
            raise ConfigurationError("chain_ids must be a list of network ids")

        chain_ids = []
        for item in value:
            try:
                chain_ids.append(parse_network_id(item))
            except ValueError as e:
                raise ConfigurationError(f"invalid chain id {item!r} in chain_ids") from e
        return tuple(chain_ids)


def load_sync_config(config_path: Optional[str] = None,
                     overrides: Optional[Dict[str, Any]] = None) -> SyncConfig:
    """
    Build the run configuration from the resolved config file and overrides.

    Args:
        config_path: Optional custom path to config file
        overrides: Settings taking precedence over the file

    Returns:
        SyncConfig
    """
    return ConfigLoader(config_path=config_path).build_sync_config(overrides)
