"""Host command execution for the storage tools (mkfs, mdadm, mount, blockdev)."""

import os
import shutil
import subprocess
from typing import Sequence

from batchdisk.config.constants import MOUNT_DIR_MODE
from batchdisk.logger import storage_logger


def run_command(args: Sequence[str]) -> subprocess.CompletedProcess:
  """
  Run a host command and capture its output.

  A missing executable is reported like a shell would (exit status 127)
  so callers only ever look at ``returncode`` and ``stderr``.
  """
  cmd = list(args)
  storage_logger.info(f"running: {' '.join(cmd)}")
  try:
    result = subprocess.run(cmd, capture_output=True, text=True, check=False)
  except FileNotFoundError:
    return subprocess.CompletedProcess(cmd, 127, "", f"{cmd[0]}: command not found")

  if result.returncode != 0:
    storage_logger.debug(
      f"{cmd[0]} exited with {result.returncode}: {result.stderr.strip()}"
    )
  return result


def command_available(name: str) -> bool:
  """Check whether an executable is on PATH."""
  return shutil.which(name) is not None


def make_dir(path: str) -> None:
  """Create a mount point directory if it doesn't exist."""
  os.makedirs(path, mode=MOUNT_DIR_MODE, exist_ok=True)
