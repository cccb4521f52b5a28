"""EFS mounting over NFSv4."""

from batchdisk.config.constants import EFS_MOUNT_OPTIONS
from batchdisk.exceptions import ConfigurationError, MountError
from batchdisk.logger import storage_logger

from .commands import make_dir, run_command


def mount_efs(target: str, mount_point: str, mount_options: str = "") -> None:
  """
  Mount an EFS file system.

  Args:
      target: EFS DNS name and path, e.g. ``fs-XXXX.efs.us-east-1.amazonaws.com:/``
      mount_point: Local directory to mount on; created if missing
      mount_options: Extra options appended to the recommended NFS options

  Raises:
      ConfigurationError: If ``target`` has no ``:path`` part
      MountError: If mount fails
  """
  if ":" not in target:
    raise ConfigurationError(
      "efs", "EFS string must end with path within the mount e.g. :/"
    )

  options = EFS_MOUNT_OPTIONS
  if mount_options:
    options += "," + mount_options

  make_dir(mount_point)
  storage_logger.info(f"mounting EFS {target} to {mount_point}")
  result = run_command(["mount", "-t", "nfs4", "-o", options, target, mount_point])
  if result.returncode != 0:
    raise MountError(
      target,
      "mount",
      result.stderr.strip() or f"exit status {result.returncode}",
      mount_point=mount_point,
    )
