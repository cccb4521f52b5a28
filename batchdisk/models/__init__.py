from .identity import InstanceIdentity
from .storage import LocalDeviceSet
from .volume import (
  Cold,
  DeviceAttachment,
  GeneralPurpose,
  Magnetic,
  ProvisionResult,
  ProvisionedIOPS,
  ThroughputOptimized,
  Volume,
  VolumeRequest,
  VolumeSpec,
  VolumeState,
  build_volume_spec,
  resolve_iops,
)

__all__ = [
  "Cold",
  "DeviceAttachment",
  "GeneralPurpose",
  "InstanceIdentity",
  "LocalDeviceSet",
  "Magnetic",
  "ProvisionResult",
  "ProvisionedIOPS",
  "ThroughputOptimized",
  "Volume",
  "VolumeRequest",
  "VolumeSpec",
  "VolumeState",
  "build_volume_spec",
  "resolve_iops",
]
