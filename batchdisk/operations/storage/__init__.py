from .aggregation import aggregate, mounted_devices, select_devices, set_read_ahead
from .devices import DeviceNodeAllocator, next_device_node, wait_for_device
from .efs import mount_efs

__all__ = [
  "DeviceNodeAllocator",
  "aggregate",
  "mount_efs",
  "mounted_devices",
  "next_device_node",
  "select_devices",
  "set_read_ahead",
  "wait_for_device",
]
