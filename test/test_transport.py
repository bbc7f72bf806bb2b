#!/usr/bin/env python3
"""
Test the HTTP, archive and indexer adapters
"""

import io
import os
import shutil
import stat
import tarfile
import tempfile
import unittest
from pathlib import Path
from unittest.mock import MagicMock, patch

import requests

from localdb_sync.sync.errors import ArchiveError, ConfigurationError, HttpError, ToolError
from localdb_sync.sync.models import RunCliSyncOptions
from localdb_sync.sync.transport import cli_runner as cli_runner_module
from localdb_sync.sync.transport.archive import TarArchiveService, find_binary
from localdb_sync.sync.transport.cli_runner import (
    SubprocessCliRunner,
    build_cli_args,
    describe_command,
    redact_args,
)
from localdb_sync.sync.transport.http_client import USER_AGENT, RequestsHttpClient

HAS_TAR = shutil.which('tar') is not None


def make_response(status_code=200, text='', content=b''):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    response.content = content
    return response


class TestRequestsHttpClient(unittest.TestCase):
    """Test the requests-backed client"""

    def test_fetch_text(self):
        session = MagicMock()
        session.headers = {}
        session.get.return_value = make_response(text='orderbook: {}')

        client = RequestsHttpClient(session=session)
        self.assertEqual(client.fetch_text('https://example.com/settings.yaml'), 'orderbook: {}')

        session.get.assert_called_once_with('https://example.com/settings.yaml', timeout=300)
        self.assertEqual(session.headers['User-Agent'], USER_AGENT)

    def test_fetch_binary(self):
        session = MagicMock()
        session.headers = {}
        session.get.return_value = make_response(content=b'\x1f\x8b')

        client = RequestsHttpClient(session=session, timeout=5)
        self.assertEqual(client.fetch_binary('https://example.com/1.sql.gz'), b'\x1f\x8b')
        session.get.assert_called_once_with('https://example.com/1.sql.gz', timeout=5)

    def test_non_2xx_raises(self):
        session = MagicMock()
        session.headers = {}
        session.get.return_value = make_response(status_code=404)

        client = RequestsHttpClient(session=session)
        with self.assertRaises(HttpError) as ctx:
            client.fetch_text('https://example.com/manifest.yaml')

        self.assertEqual(ctx.exception.status_code, 404)
        self.assertEqual(ctx.exception.url, 'https://example.com/manifest.yaml')

    def test_transport_error_is_chained(self):
        session = MagicMock()
        session.headers = {}
        session.get.side_effect = requests.ConnectionError('connection refused')

        client = RequestsHttpClient(session=session)
        with self.assertRaises(HttpError) as ctx:
            client.fetch_binary('https://example.com/x')

        self.assertIsNone(ctx.exception.status_code)
        self.assertIsInstance(ctx.exception.__cause__, requests.ConnectionError)

    @patch('localdb_sync.sync.transport.http_client.requests.Session')
    def test_default_session(self, mock_session_cls):
        mock_session_cls.return_value.headers = {}
        client = RequestsHttpClient()
        self.assertIs(client.session, mock_session_cls.return_value)


class TestTarArchiveService(unittest.TestCase):
    """Test CLI archive download and extraction"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def build_archive(self, members):
        archive_path = os.path.join(self.temp_dir, 'cli.tar.gz')
        with tarfile.open(archive_path, 'w:gz') as tar:
            for name, payload in members.items():
                info = tarfile.TarInfo(name)
                info.size = len(payload)
                info.mode = 0o644
                tar.addfile(info, io.BytesIO(payload))
        return archive_path

    def test_download_archive(self):
        http = MagicMock()
        http.fetch_binary.return_value = b'tarball'
        destination = Path(self.temp_dir) / 'nested' / 'cli.tar.gz'

        result = TarArchiveService().download_archive(http, 'https://example.com/cli.tar.gz', destination)

        self.assertEqual(result, destination)
        self.assertEqual(destination.read_bytes(), b'tarball')
        http.fetch_binary.assert_called_once_with('https://example.com/cli.tar.gz')

    @unittest.skipUnless(HAS_TAR, "tar not installed")
    def test_extract_nested_binary(self):
        archive_path = self.build_archive({
            'release/README.md': b'readme',
            'release/bin/rain-orderbook-cli': b'#!/bin/sh\nexit 0\n',
        })
        output_dir = os.path.join(self.temp_dir, 'bin')

        binary = TarArchiveService().extract_binary(archive_path, output_dir)

        self.assertEqual(binary.name, 'rain-orderbook-cli')
        self.assertTrue(str(binary).startswith(output_dir))
        self.assertTrue(os.stat(binary).st_mode & stat.S_IXUSR)
        self.assertEqual(stat.S_IMODE(os.stat(binary).st_mode), 0o755)

    @unittest.skipUnless(HAS_TAR, "tar not installed")
    def test_extract_without_binary(self):
        archive_path = self.build_archive({'other-tool': b'x'})
        with self.assertRaises(ArchiveError):
            TarArchiveService().extract_binary(archive_path, os.path.join(self.temp_dir, 'bin'))

    @unittest.skipUnless(HAS_TAR, "tar not installed")
    def test_extract_corrupt_archive(self):
        archive_path = os.path.join(self.temp_dir, 'broken.tar.gz')
        Path(archive_path).write_bytes(b'not a tarball')
        with self.assertRaises(ToolError):
            TarArchiveService().extract_binary(archive_path, os.path.join(self.temp_dir, 'bin'))

    def test_missing_tar(self):
        service = TarArchiveService(tar_bin=os.path.join(self.temp_dir, 'no-tar'))
        with self.assertRaises(ToolError) as ctx:
            service.extract_binary('cli.tar.gz', os.path.join(self.temp_dir, 'bin'))
        self.assertIsNone(ctx.exception.returncode)

    def test_find_binary_ignores_directories(self):
        os.makedirs(os.path.join(self.temp_dir, 'a', 'rain-orderbook-cli'))
        self.assertIsNone(find_binary(self.temp_dir))


class TestCliRunner(unittest.TestCase):
    """Test indexer invocation and credential redaction"""

    def setUp(self):
        self.temp_dir = tempfile.mkdtemp()

    def tearDown(self):
        shutil.rmtree(self.temp_dir)

    def options(self, **overrides):
        values = dict(
            cli_binary='/opt/rain-orderbook-cli',
            db_path=os.path.join(self.temp_dir, 'data', '10.db'),
            chain_id=10,
            api_token='secret-token',
            settings_yaml='networks: {}',
            start_block=None,
            end_block=None,
        )
        values.update(overrides)
        return RunCliSyncOptions(**values)

    def test_build_args_without_blocks(self):
        args = build_cli_args(self.options())
        self.assertEqual(args[:2], ['local-db', 'sync'])
        self.assertNotIn('--start-block', args)
        self.assertNotIn('--end-block', args)
        self.assertEqual(args[args.index('--chain-id') + 1], '10')

    def test_build_args_with_blocks(self):
        args = build_cli_args(self.options(start_block=101, end_block=200))
        self.assertEqual(args[args.index('--start-block') + 1], '101')
        self.assertEqual(args[args.index('--end-block') + 1], '200')

    def test_missing_token(self):
        with self.assertRaises(ConfigurationError) as ctx:
            build_cli_args(self.options(api_token=None))
        self.assertIn('RAIN_API_TOKEN', str(ctx.exception))

    def test_redaction(self):
        args = build_cli_args(self.options())
        redacted = redact_args(args)
        self.assertNotIn('secret-token', redacted)
        self.assertEqual(redacted[redacted.index('--api-token') + 1], '***')
        self.assertIn('secret-token', args)

        described = describe_command('/opt/cli', args)
        self.assertNotIn('secret-token', described)
        self.assertNotIn('networks: {}', described)

    def test_repr_hides_token(self):
        self.assertNotIn('secret-token', repr(self.options()))

    def test_run_success(self):
        record = os.path.join(self.temp_dir, 'args.txt')
        binary = os.path.join(self.temp_dir, 'rain-orderbook-cli')
        with open(binary, 'w') as f:
            f.write(f'#!/bin/sh\necho "$@" > "{record}"\n')
        os.chmod(binary, stat.S_IRWXU)

        with patch.object(cli_runner_module.logger, 'info') as mock_info:
            SubprocessCliRunner().run(self.options(cli_binary=binary, start_block=5))

        recorded = Path(record).read_text()
        self.assertIn('--start-block 5', recorded)
        self.assertIn('--api-token secret-token', recorded)
        self.assertTrue(os.path.isdir(os.path.join(self.temp_dir, 'data')))

        logged = ' '.join(str(call) for call in mock_info.call_args_list)
        self.assertNotIn('secret-token', logged)

    def test_run_failure(self):
        binary = os.path.join(self.temp_dir, 'rain-orderbook-cli')
        with open(binary, 'w') as f:
            f.write('#!/bin/sh\nexit 3\n')
        os.chmod(binary, stat.S_IRWXU)

        with self.assertRaises(ToolError) as ctx:
            SubprocessCliRunner().run(self.options(cli_binary=binary))
        self.assertEqual(ctx.exception.returncode, 3)
        self.assertIn('chain 10', str(ctx.exception))

    def test_run_missing_binary(self):
        with self.assertRaises(ToolError) as ctx:
            SubprocessCliRunner().run(self.options(cli_binary=os.path.join(self.temp_dir, 'absent')))
        self.assertIsNone(ctx.exception.returncode)


if __name__ == '__main__':
    unittest.main()
