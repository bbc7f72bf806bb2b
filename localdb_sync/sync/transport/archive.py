"""
CLI archive download and extraction
"""

import os
import stat
import logging
import subprocess
from pathlib import Path
from typing import Optional

from . import ArchiveService, HttpClient, PathLike
from ..constants import CLI_BINARY_NAME
from ..errors import ArchiveError, ToolError

logger = logging.getLogger(__name__)


def find_binary(root: PathLike, name: str = CLI_BINARY_NAME) -> Optional[Path]:
    """Locate a regular file called `name` anywhere under root."""
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames.sort()
        if name in filenames:
            candidate = Path(dirpath) / name
            if candidate.is_file():
                return candidate
    return None


def set_executable(path: PathLike):
    os.chmod(path, stat.S_IRWXU | stat.S_IRGRP | stat.S_IXGRP | stat.S_IROTH | stat.S_IXOTH)


class TarArchiveService(ArchiveService):
    """Fetch the indexer tarball and unpack it with tar."""

    def __init__(self, tar_bin: str = "tar", binary_name: str = CLI_BINARY_NAME):
        self.tar_bin = tar_bin
        self.binary_name = binary_name

    def download_archive(self, http: HttpClient, url: str, destination: PathLike) -> Path:
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)

        payload = http.fetch_binary(url)
        destination.write_bytes(payload)
        logger.info(f"Downloaded CLI archive to {destination} ({len(payload)} bytes)")
        return destination

    def extract_binary(self, archive_path: PathLike, output_dir: PathLike) -> Path:
        """
        Unpack the archive into output_dir and mark the indexer executable.

        Raises:
            ToolError: If tar cannot be spawned or exits non-zero
            ArchiveError: If the archive does not contain the binary
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        cmd = [self.tar_bin, "-xzf", str(archive_path), "-C", str(output_dir)]
        try:
            result = subprocess.run(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as e:
            raise ToolError(self.tar_bin, f"failed to extract CLI archive {archive_path}: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.decode(errors='replace').strip()
            raise ToolError(
                self.tar_bin,
                f"failed to extract CLI archive {archive_path}: {stderr}",
                returncode=result.returncode,
            )

        candidate = find_binary(output_dir, self.binary_name)
        if candidate is None:
            raise ArchiveError(f"unable to locate {self.binary_name} binary under {output_dir}")

        set_executable(candidate)
        logger.info(f"Extracted CLI binary to {candidate}")
        return candidate
