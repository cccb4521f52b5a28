"""
Device node allocation.

Picks a free ``/dev/<prefix><letter>`` path to offer to AttachVolume. The
choice is advisory: another process on the same host may pick the same path
before our attach lands, and EC2 is the only authority on whether it is free.
The attach retry in ``operations.aws.ec2`` resolves those collisions; this
module only guarantees that, within this process, a path is never handed out
twice.
"""

import os
import time
from threading import Lock
from typing import Optional, Set

from batchdisk.config import env
from batchdisk.config.constants import DEVICE_LETTERS, DEVICE_WAIT_INTERVAL
from batchdisk.exceptions import DeviceExhaustedError
from batchdisk.logger import storage_logger


class DeviceNodeAllocator:
  """Hands out device paths absent from the host and not already claimed."""

  def __init__(self):
    self._claimed: Set[str] = set()
    self._lock = Lock()

  def next_device_node(self, prefix: str, search_space: str = DEVICE_LETTERS) -> str:
    """
    Return the first ``prefix + c`` for ``c`` in ``search_space`` that doesn't
    exist on the host and hasn't been handed out before.

    Raises:
        DeviceExhaustedError: If every candidate is taken
    """
    with self._lock:
      for suffix in search_space:
        path = prefix + suffix
        if path in self._claimed or os.path.exists(path):
          continue
        self._claimed.add(path)
        return path
    raise DeviceExhaustedError(prefix, search_space)

  def release(self, path: str) -> None:
    """Forget a claim so the path can be offered again."""
    with self._lock:
      self._claimed.discard(path)

  @property
  def claimed(self) -> Set[str]:
    with self._lock:
      return set(self._claimed)


default_allocator = DeviceNodeAllocator()


def next_device_node(prefix: str, search_space: str = DEVICE_LETTERS) -> str:
  """Allocate a device path from the process-wide allocator."""
  return default_allocator.next_device_node(prefix, search_space)


def wait_for_device(
  device: str,
  attempts: Optional[int] = None,
  interval: float = DEVICE_WAIT_INTERVAL,
) -> bool:
  """
  Wait for a device node to show up after EC2 reports the attach.

  Returns:
      True once the path exists, False if it never appeared
  """
  attempts = attempts if attempts is not None else env.DEVICE_WAIT_ATTEMPTS
  for _ in range(attempts):
    if os.path.exists(device):
      return True
    time.sleep(interval)
  storage_logger.warning(f"device {device} did not appear after {attempts} checks")
  return False
