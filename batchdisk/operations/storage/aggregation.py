"""
Local storage aggregation.

Turns a list of candidate block devices (freshly attached EBS volumes or
instance store drives) into mounted file systems:

1. Skip devices that are already mounted, partitions listed next to their
   parent disk, and everything after the first candidate that doesn't exist.
2. With a single device, or without mdadm on the host, format and mount each
   device on its own (``base``, ``base_1``, ``base_2``, ...).
3. Otherwise stripe all devices into one RAID-0 md array, format it once and
   mount it at ``base``.

The mount table is read once per run. Running two aggregations concurrently
over overlapping candidates is not supported.
"""

import os
from typing import Iterable, List, Set

from batchdisk.config.constants import (
  DEFAULT_FS_TYPE,
  HDD_READ_AHEAD_SECTORS,
  MOUNT_TABLE_PATH,
  RAID_DEVICE_RANGE,
  RAID_DEVICE_TEMPLATE,
)
from batchdisk.exceptions import (
  AlreadyMountedError,
  DeviceExhaustedError,
  MountError,
  NoStorageError,
)
from batchdisk.logger import performance_timer, storage_logger
from batchdisk.models.storage import LocalDeviceSet

from .commands import command_available, make_dir, run_command

_DIGITS = "0123456789"


def strip_partition(device: str) -> str:
  """``/dev/xvdb1`` -> ``/dev/xvdb``; devices without a number are unchanged."""
  base = device.rstrip(_DIGITS)
  return base if len(base) > 1 else device


def mounted_devices(mount_table: str = MOUNT_TABLE_PATH) -> Set[str]:
  """
  Devices in use according to the mount table.

  Both the mounted path and its partition-stripped parent are included, so a
  mounted ``/dev/xvda1`` also marks ``/dev/xvda`` as taken.
  """
  devices: Set[str] = set()
  try:
    with open(mount_table, "r") as f:
      lines = f.readlines()
  except FileNotFoundError:
    storage_logger.warning(f"mount table {mount_table} not found")
    return devices

  for line in lines:
    fields = line.split()
    if not fields:
      continue
    device = fields[0]
    devices.add(device)
    devices.add(strip_partition(device))
  return devices


def select_devices(candidates: List[str], in_use: Set[str]) -> List[str]:
  """Filter ``candidates`` down to the devices that can be formatted."""
  selected = []
  for device in candidates:
    # skip xvdb1 when xvdb itself is a candidate
    parent = strip_partition(device)
    if parent != device and parent in candidates:
      continue

    try:
      os.stat(device)
    except FileNotFoundError:
      # candidates are contiguous; the first gap ends the scan
      break

    if device in in_use:
      storage_logger.info(f"skipping {device}: already in use")
      continue
    selected.append(device)
  return selected


def make_filesystem(device: str, fs_type: str = DEFAULT_FS_TYPE) -> None:
  """
  Create a file system on ``device``.

  Raises:
      AlreadyMountedError: mkfs refused because the device is mounted
      MountError: Any other mkfs failure
  """
  storage_logger.info(f"making fs for {device}", extra={"device": device})
  result = run_command(["mkfs", "-t", fs_type, device])
  if result.returncode == 0:
    return
  if "is mounted" in result.stderr:
    raise AlreadyMountedError(device)
  storage_logger.error(result.stderr.strip())
  raise MountError(
    device, "mkfs", result.stderr.strip() or f"exit status {result.returncode}"
  )


def make_and_mount(device: str, mount_point: str) -> None:
  """
  Create ``mount_point`` if needed and mount ``device`` on it.

  Raises:
      MountError: If mount fails
  """
  make_dir(mount_point)
  storage_logger.info(
    f"mounting: {device} to {mount_point}", extra={"device": device}
  )
  result = run_command(["mount", "-o", "noatime", device, mount_point])
  if result.returncode != 0:
    raise MountError(
      device,
      "mount",
      result.stderr.strip() or f"exit status {result.returncode}",
      mount_point=mount_point,
    )


def next_raid_device() -> str:
  """
  First ``/dev/mdN`` that doesn't exist yet.

  Raises:
      DeviceExhaustedError: If /dev/md0 through /dev/md19 are all present
  """
  for index in range(RAID_DEVICE_RANGE):
    path = RAID_DEVICE_TEMPLATE.format(index=index)
    if not os.path.exists(path):
      return path
  raise DeviceExhaustedError(
    RAID_DEVICE_TEMPLATE.format(index=""), f"0-{RAID_DEVICE_RANGE - 1}"
  )


def _indexed_mount_point(base: str, index: int) -> str:
  if index == 0:
    return base
  return f"{base.rstrip('/') or '/'}_{index}"


def _mount_each(devices: List[str], mount_point: str, fs_type: str) -> LocalDeviceSet:
  mount_points = []
  for index, device in enumerate(devices):
    try:
      make_filesystem(device, fs_type)
    except AlreadyMountedError:
      # left behind by an earlier run of the same job
      storage_logger.info(f"{device} is already mounted, skipping")
      continue
    target = _indexed_mount_point(mount_point, index)
    make_and_mount(device, target)
    mount_points.append(target)
  return LocalDeviceSet(members=devices, fs_type=fs_type, mount_points=mount_points)


def _mount_striped(
  devices: List[str], mount_point: str, fs_type: str
) -> LocalDeviceSet:
  raid_device = next_raid_device()

  args = [
    "mdadm",
    "--create",
    "--verbose",
    raid_device,
    "-R",
    "--level=stripe",
    f"--raid-devices={len(devices)}",
    *devices,
  ]
  storage_logger.info(f"creating RAID0 array with: {' '.join(args)}")
  result = run_command(args)
  if result.returncode != 0:
    raise MountError(
      raid_device, "mdadm", result.stderr.strip() or f"exit status {result.returncode}"
    )

  make_filesystem(raid_device, fs_type)
  make_and_mount(raid_device, mount_point)
  return LocalDeviceSet(
    members=devices,
    fs_type=fs_type,
    mount_points=[mount_point],
    aggregate_device=raid_device,
  )


@performance_timer(storage_logger, "storage", "aggregate")
def aggregate(
  candidates: List[str],
  mount_point: str,
  fs_type: str = DEFAULT_FS_TYPE,
  mount_table: str = MOUNT_TABLE_PATH,
) -> LocalDeviceSet:
  """
  Format and mount the usable ``candidates`` under ``mount_point``.

  Args:
      candidates: Ordered device paths, e.g. the attached EBS devices or /dev/xvd*
      mount_point: Base mount directory
      fs_type: File system type accepted by ``mkfs -t``
      mount_table: Mount table to read in-use devices from

  Returns:
      The aggregated device set; ``used_devices`` are the mount-ready paths

  Raises:
      NoStorageError: If no candidate is usable
      MountError: If array creation, mkfs or mount fails. For a striped array
          the error's ``device`` is the md path.
  """
  in_use = mounted_devices(mount_table)
  devices = select_devices(candidates, in_use)
  if not devices:
    storage_logger.warning(f"no unused local storage found for {candidates}")
    raise NoStorageError(candidates)

  if len(devices) == 1 or not command_available("mdadm"):
    if len(devices) > 1:
      storage_logger.warning("mdadm not found mounting each device to its own path")
    return _mount_each(devices, mount_point, fs_type)

  return _mount_striped(devices, mount_point, fs_type)


def set_read_ahead(
  devices: Iterable[str], sectors: int = HDD_READ_AHEAD_SECTORS
) -> None:
  """Best effort read-ahead tuning; failures are logged and ignored."""
  for device in devices:
    result = run_command(["blockdev", "--setra", str(sectors), device])
    if result.returncode != 0:
      storage_logger.warning(
        f"error setting read-ahead on {device}: {result.stderr.strip()}",
        extra={"device": device},
      )
