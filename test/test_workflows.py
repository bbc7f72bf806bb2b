"""
Tests for the bump-schema-version and bump-seed-generation workflows
"""

import os
import shutil
import tempfile
from pathlib import Path

import pytest
import yaml

from localdb_sync.sync.engine.manifest import load_manifest
from localdb_sync.sync.errors import ManifestError
from localdb_sync.workflows import bump_schema_version, bump_seed_generation


def write_manifest(path, schema_version, networks=None):
    Path(path).write_text(yaml.safe_dump({'schema_version': schema_version, 'networks': networks or {}}))


class TestBumpSeedGeneration:

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.manifest_path = os.path.join(self.temp_dir, 'manifest.yaml')
        write_manifest(self.manifest_path, 1, {
            42: {
                'dump_url': 'https://example.com/42.sql.gz',
                'dump_timestamp': '2024-01-01T00:00:00Z',
                'seed_generation': 7,
            },
        })

    def teardown_method(self):
        shutil.rmtree(self.temp_dir)

    def test_run_with_args(self):
        bump = bump_seed_generation.run_with_args(['42', self.manifest_path])
        assert (bump.network_id, bump.previous, bump.next) == (42, 7, 8)
        assert load_manifest(self.manifest_path).networks[42].seed_generation == 8

    def test_main_prints_values(self, capsys):
        assert bump_seed_generation.main(['42', self.manifest_path]) == 0
        out = capsys.readouterr().out.splitlines()
        assert 'previous=7' in out
        assert 'next=8' in out

    def test_unknown_network(self):
        with pytest.raises(ManifestError, match='not found'):
            bump_seed_generation.run_with_args(['999', self.manifest_path])
        assert bump_seed_generation.main(['999', self.manifest_path]) == 1

    def test_invalid_chain_id(self):
        with pytest.raises(SystemExit) as excinfo:
            bump_seed_generation.run_with_args(['mainnet', self.manifest_path])
        assert excinfo.value.code == 2

    def test_extra_arguments(self, capsys):
        with pytest.raises(SystemExit):
            bump_seed_generation.run_with_args(['42', self.manifest_path, 'extra'])
        assert 'usage: bump-seed-generation' in capsys.readouterr().err

    def test_missing_chain_id(self):
        with pytest.raises(SystemExit):
            bump_seed_generation.run_with_args([])


class TestBumpSchemaVersion:

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.manifest_path = os.path.join(self.temp_dir, 'manifest.yaml')
        self.source_path = os.path.join(self.temp_dir, 'constants.py')
        write_manifest(self.manifest_path, 2)
        Path(self.source_path).write_text("CURRENT_SCHEMA_VERSION = 2\n")

    def teardown_method(self):
        shutil.rmtree(self.temp_dir)

    def test_main(self, capsys):
        assert bump_schema_version.main([self.manifest_path, self.source_path]) == 0
        out = capsys.readouterr().out.splitlines()
        assert 'previous=2' in out
        assert 'next=3' in out
        assert Path(self.source_path).read_text() == "CURRENT_SCHEMA_VERSION = 3\n"

    def test_mismatch_exit_code(self):
        Path(self.source_path).write_text("CURRENT_SCHEMA_VERSION = 5\n")
        assert bump_schema_version.main([self.manifest_path, self.source_path]) == 1
        assert load_manifest(self.manifest_path).schema_version == 2

    def test_defaults(self):
        args = bump_schema_version.build_parser().parse_args([])
        assert args.manifest_path == 'data/manifest.yaml'
        assert args.source_path == 'localdb_sync/sync/constants.py'

    def test_extra_arguments(self, capsys):
        with pytest.raises(SystemExit):
            bump_schema_version.run_with_args([self.manifest_path, self.source_path, 'extra'])
        assert 'usage: bump-schema-version' in capsys.readouterr().err
