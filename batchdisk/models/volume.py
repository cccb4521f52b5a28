"""
Volume models.

- VolumeState: EC2 volume lifecycle states
- VolumeSpec: tagged variant over the EBS volume types; only ProvisionedIOPS
  carries an iops value
- VolumeRequest: a validated provisioning request
- Volume / DeviceAttachment / ProvisionResult: control plane results
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Type

from batchdisk.config.constants import (
  DEFAULT_FS_TYPE,
  DEFAULT_IOPS_PER_GIB,
  MAX_IOPS,
  MAX_IOPS_PER_GIB,
  MAX_VOLUME_COUNT,
  MIN_IOPS,
  MIN_VOLUME_COUNT,
)
from batchdisk.exceptions import ConfigurationError
from batchdisk.logger import logger


class VolumeState(str, Enum):
  """EC2 volume states as reported by DescribeVolumes."""

  CREATING = "creating"
  AVAILABLE = "available"
  IN_USE = "in-use"
  DELETING = "deleting"
  DELETED = "deleted"
  ERROR = "error"


# ============================================================================
# Volume type variants
# ============================================================================


@dataclass(frozen=True)
class VolumeSpec:
  """Base for the EBS volume type variants."""

  api_name: ClassVar[str] = ""
  # HDD backed types stream better with a larger read-ahead
  needs_read_ahead: ClassVar[bool] = False

  def create_args(self) -> Dict[str, Any]:
    """Type specific arguments for ec2.create_volume."""
    return {"VolumeType": self.api_name}


@dataclass(frozen=True)
class GeneralPurpose(VolumeSpec):
  """General Purpose SSD."""

  api_name: ClassVar[str] = "gp2"


@dataclass(frozen=True)
class ProvisionedIOPS(VolumeSpec):
  """Provisioned IOPS SSD."""

  api_name: ClassVar[str] = "io1"

  iops: int = 0

  def create_args(self) -> Dict[str, Any]:
    return {"VolumeType": self.api_name, "Iops": self.iops}


@dataclass(frozen=True)
class ThroughputOptimized(VolumeSpec):
  """Throughput Optimized HDD."""

  api_name: ClassVar[str] = "st1"
  needs_read_ahead: ClassVar[bool] = True


@dataclass(frozen=True)
class Cold(VolumeSpec):
  """Cold HDD."""

  api_name: ClassVar[str] = "sc1"
  needs_read_ahead: ClassVar[bool] = True


@dataclass(frozen=True)
class Magnetic(VolumeSpec):
  """Previous generation magnetic volumes."""

  api_name: ClassVar[str] = "standard"


VOLUME_SPECS: Dict[str, Type[VolumeSpec]] = {
  spec.api_name: spec
  for spec in (GeneralPurpose, ProvisionedIOPS, ThroughputOptimized, Cold, Magnetic)
}


def resolve_iops(size_gib: int, iops: int) -> int:
  """
  Work out the iops to request for an io1 volume of ``size_gib``.

  Zero means "pick for me" (45 per GiB). The requested value must lie in
  [100, 20000]; one that does but exceeds 50 per GiB is then lowered to 45
  per GiB.

  Raises:
      ConfigurationError: If the requested iops is out of range
  """
  if iops == 0:
    iops = DEFAULT_IOPS_PER_GIB * size_gib
  if iops < MIN_IOPS or iops > MAX_IOPS:
    raise ConfigurationError(
      "iops", f"iops must be between {MIN_IOPS} and {MAX_IOPS}, got {iops}"
    )
  if iops > MAX_IOPS_PER_GIB * size_gib:
    logger.warning(
      f"iops {iops} exceeds {MAX_IOPS_PER_GIB}x volume size {size_gib}GiB, lowering"
    )
    iops = min(DEFAULT_IOPS_PER_GIB * size_gib, MAX_IOPS)
  return iops


def build_volume_spec(volume_type: str, size_gib: int, iops: int = 0) -> VolumeSpec:
  """
  Build the VolumeSpec variant for an API volume type name.

  Raises:
      ConfigurationError: If the type is unknown or io1 iops are out of range
  """
  spec_cls = VOLUME_SPECS.get(volume_type)
  if spec_cls is None:
    raise ConfigurationError(
      "volume_type",
      f"volume type must be one of {'/'.join(VOLUME_SPECS)}, got {volume_type!r}",
    )
  if spec_cls is ProvisionedIOPS:
    return ProvisionedIOPS(iops=resolve_iops(size_gib, iops))
  if iops:
    logger.warning(f"iops only applies to io1 volumes, ignoring for {volume_type}")
  return spec_cls()


@dataclass(frozen=True)
class VolumeRequest:
  """
  A validated request for ``count`` volumes of ``size_gib`` each.

  Use ``VolumeRequest.build`` to construct one from user input; the total size
  is split evenly across the volumes that will be striped together.
  """

  size_gib: int
  spec: VolumeSpec
  count: int = 1
  keep_on_termination: bool = False
  fs_type: str = DEFAULT_FS_TYPE

  @classmethod
  def build(
    cls,
    total_size_gib: int,
    volume_type: str = GeneralPurpose.api_name,
    iops: int = 0,
    count: int = 1,
    keep_on_termination: bool = False,
    fs_type: str = DEFAULT_FS_TYPE,
  ) -> "VolumeRequest":
    """
    Validate user input and build a request.

    Raises:
        ConfigurationError: On any invalid field
    """
    if count < MIN_VOLUME_COUNT or count > MAX_VOLUME_COUNT:
      raise ConfigurationError(
        "count",
        f"number of volumes should be between {MIN_VOLUME_COUNT} and {MAX_VOLUME_COUNT}",
      )
    if total_size_gib < 1:
      raise ConfigurationError("size", "size must be at least 1 GiB")
    if not fs_type:
      raise ConfigurationError("fs_type", "file system type is required")

    size_gib = max(1, int(total_size_gib / count + 0.5))
    spec = build_volume_spec(volume_type, size_gib, iops)
    return cls(
      size_gib=size_gib,
      spec=spec,
      count=count,
      keep_on_termination=keep_on_termination,
      fs_type=fs_type,
    )


# ============================================================================
# Control plane results
# ============================================================================


@dataclass
class Volume:
  """An EBS volume as last observed through DescribeVolumes/CreateVolume."""

  id: str
  state: VolumeState
  availability_zone: str = ""

  @classmethod
  def from_api(cls, data: Dict[str, Any]) -> "Volume":
    return cls(
      id=data["VolumeId"],
      state=VolumeState(data["State"]),
      availability_zone=data.get("AvailabilityZone", ""),
    )


@dataclass(frozen=True)
class DeviceAttachment:
  """A volume attached to this instance at ``device``."""

  volume_id: str
  device: str
  instance_id: str


@dataclass
class ProvisionResult:
  """Volumes created and attached by one provisioning request."""

  volume_ids: List[str] = field(default_factory=list)
  attachments: List[DeviceAttachment] = field(default_factory=list)

  @property
  def devices(self) -> List[str]:
    return [attachment.device for attachment in self.attachments]
