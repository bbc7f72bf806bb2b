"""
Subprocess runner for the external indexer (`local-db sync`)
"""

import logging
import subprocess
from pathlib import Path
from typing import List

from . import CliRunner
from ..constants import API_TOKEN_ENV_VARS
from ..errors import ConfigurationError, ToolError
from ..models import RunCliSyncOptions

logger = logging.getLogger(__name__)

REDACTED = "***"
SECRET_FLAGS = ("--api-token",)


def build_cli_args(options: RunCliSyncOptions) -> List[str]:
    """Argument list (without the binary) for one sync invocation."""
    if not options.api_token:
        raise ConfigurationError(
            f"no API token provided for chain {options.chain_id}. "
            f"Set one of: {', '.join(API_TOKEN_ENV_VARS)}"
        )

    args = [
        "local-db",
        "sync",
        "--db-path", options.db_path,
        "--chain-id", str(options.chain_id),
        "--api-token", options.api_token,
        "--settings-yaml", options.settings_yaml,
    ]
    if options.start_block is not None:
        args += ["--start-block", str(options.start_block)]
    if options.end_block is not None:
        args += ["--end-block", str(options.end_block)]
    return args


def redact_args(args: List[str]) -> List[str]:
    """Copy of args with secret flag values replaced."""
    redacted = list(args)
    for index, arg in enumerate(redacted[:-1]):
        if arg in SECRET_FLAGS:
            redacted[index + 1] = REDACTED
    return redacted


def describe_command(binary: str, args: List[str]) -> str:
    """Loggable command line; secrets redacted, settings payload summarized."""
    shown = redact_args(args)
    if "--settings-yaml" in shown:
        index = shown.index("--settings-yaml") + 1
        if index < len(shown):
            shown[index] = f"<{len(args[index])} bytes>"
    return " ".join([binary] + shown)


class SubprocessCliRunner(CliRunner):
    """Run the indexer as a child process, inheriting stdout/stderr."""

    def run(self, options: RunCliSyncOptions):
        args = build_cli_args(options)
        Path(options.db_path).parent.mkdir(parents=True, exist_ok=True)

        logger.info(f"Running: {describe_command(options.cli_binary, args)}")
        try:
            result = subprocess.run([options.cli_binary] + args)
        except OSError as e:
            raise ToolError(Path(options.cli_binary).name,
                            f"failed to spawn CLI for chain {options.chain_id}: {e}") from e

        if result.returncode != 0:
            raise ToolError(
                Path(options.cli_binary).name,
                f"CLI sync failed for chain {options.chain_id}",
                returncode=result.returncode,
            )
