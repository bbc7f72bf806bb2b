#!/usr/bin/env python3
"""
Test the configuration loader and environment input helpers
"""

import os
import shutil
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from localdb_sync.sync.errors import ConfigurationError
from localdb_sync.sync.models import SyncConfig
from localdb_sync.utils.config_loader import (
    ConfigLoader,
    load_sync_config,
    parse_chain_ids,
    resolve_api_token,
    resolve_required_env,
)


class TestEnvironmentInputs(unittest.TestCase):
    """Test environment variable helpers"""

    def test_required_env_trimmed(self):
        self.assertEqual(resolve_required_env({'X': '  value \n'}, 'X'), 'value')

    def test_required_env_missing(self):
        with self.assertRaises(ConfigurationError) as ctx:
            resolve_required_env({'X': '   '}, 'X')
        self.assertIn('X', str(ctx.exception))
        with self.assertRaises(ConfigurationError):
            resolve_required_env({}, 'X')

    def test_api_token_order(self):
        env = {'HYPERRPC_API_TOKEN': 'third', 'RAIN_ORDERBOOK_API_TOKEN': 'second'}
        self.assertEqual(resolve_api_token(env), 'second')
        self.assertEqual(resolve_api_token({'RAIN_API_TOKEN': ' first '}), 'first')
        self.assertIsNone(resolve_api_token({'RAIN_API_TOKEN': ''}))

    def test_parse_chain_ids(self):
        self.assertEqual(parse_chain_ids('1, 137 ,,42161'), (1, 137, 42161))
        self.assertEqual(parse_chain_ids(''), ())
        self.assertEqual(parse_chain_ids(None), ())

    def test_parse_chain_ids_invalid(self):
        for value in ('1,mainnet', '1,-5', '1,2.5'):
            with self.assertRaises(ConfigurationError):
                parse_chain_ids(value)


class TestConfigLoader(unittest.TestCase):
    """Test config file resolution and merging"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()
        self.config_file = os.path.join(self.temp_dir, 'sync.yaml')
        with open(self.config_file, 'w') as f:
            f.write(
                "db_dir: /srv/localdb\n"
                "cli_dir: tools\n"
                "chain_ids: [137, 1]\n"
                "keep_archive: true\n"
                "release_url_template: https://mirror.example.com/{file}\n"
            )

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def test_explicit_path(self):
        loader = ConfigLoader(config_path=self.config_file, env={})
        config = loader.build_sync_config()

        self.assertEqual(config.db_dir, Path('/srv/localdb'))
        self.assertEqual(config.cli_dir, Path('tools'))
        self.assertEqual(config.chain_ids, (137, 1))
        self.assertTrue(config.keep_archive)
        self.assertEqual(config.release_url_template, 'https://mirror.example.com/{file}')

    def test_overrides_win(self):
        loader = ConfigLoader(config_path=self.config_file, env={})
        config = loader.build_sync_config({'db_dir': 'other', 'chain_ids': (10,), 'cli_dir': None})

        self.assertEqual(config.db_dir, Path('other'))
        self.assertEqual(config.chain_ids, (10,))
        self.assertEqual(config.cli_dir, Path('tools'))

    def test_env_path(self):
        loader = ConfigLoader(env={'LOCALDB_SYNC_CONFIG': self.config_file}, cwd=Path('/nonexistent'))
        self.assertEqual(loader.config_path, Path(self.config_file))

    def test_cwd_default(self):
        shutil.copy(self.config_file, os.path.join(self.temp_dir, 'localdb-sync.yaml'))
        loader = ConfigLoader(env={}, cwd=Path(self.temp_dir))
        self.assertEqual(loader.config_path, Path(self.temp_dir) / 'localdb-sync.yaml')
        self.assertEqual(loader.load_config()['chain_ids'], [137, 1])

    def test_no_file_gives_defaults(self):
        loader = ConfigLoader(env={}, cwd=Path(self.temp_dir))
        self.assertIsNone(loader.config_path)
        self.assertEqual(loader.build_sync_config(), SyncConfig())

    def test_missing_explicit_file(self):
        loader = ConfigLoader(config_path=os.path.join(self.temp_dir, 'absent.yaml'), env={})
        with self.assertRaises(ConfigurationError):
            loader.load_config()

    def test_invalid_yaml(self):
        with open(self.config_file, 'w') as f:
            f.write("db_dir: [unclosed\n")
        with self.assertRaises(ConfigurationError):
            ConfigLoader(config_path=self.config_file, env={}).load_config()

    def test_non_mapping(self):
        with open(self.config_file, 'w') as f:
            f.write("- just\n- a list\n")
        with self.assertRaises(ConfigurationError):
            ConfigLoader(config_path=self.config_file, env={}).load_config()

    def test_bad_chain_ids(self):
        with open(self.config_file, 'w') as f:
            f.write("chain_ids: [1, mainnet]\n")
        with self.assertRaises(ConfigurationError):
            ConfigLoader(config_path=self.config_file, env={}).build_sync_config()

    def test_template_requires_placeholder(self):
        with open(self.config_file, 'w') as f:
            f.write("release_url_template: https://mirror.example.com/static\n")
        with self.assertRaises(ConfigurationError):
            ConfigLoader(config_path=self.config_file, env={}).build_sync_config()

    def test_template_rejects_extra_placeholders(self):
        with open(self.config_file, 'w') as f:
            f.write("release_url_template: https://mirror.example.com/{tag}/{file}\n")
        with self.assertRaises(ConfigurationError):
            ConfigLoader(config_path=self.config_file, env={}).build_sync_config()

    def test_template_rejects_positional_placeholder(self):
        with open(self.config_file, 'w') as f:
            f.write("release_url_template: 'https://mirror.example.com/{}/{file}'\n")
        with self.assertRaises(ConfigurationError):
            ConfigLoader(config_path=self.config_file, env={}).build_sync_config()

    def test_unknown_keys_ignored(self):
        with open(self.config_file, 'w') as f:
            f.write("db_dir: x\nunexpected: 1\n")
        config = ConfigLoader(config_path=self.config_file, env={}).load_config()
        self.assertEqual(config, {'db_dir': 'x'})

    def test_convenience_function(self):
        with patch.dict(os.environ, {'LOCALDB_SYNC_CONFIG': self.config_file}):
            config = load_sync_config()
        self.assertEqual(config.chain_ids, (137, 1))


if __name__ == '__main__':
    unittest.main()
