"""Local storage aggregation result."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class LocalDeviceSet:
  """
  Devices made usable by one aggregation run.

  When the members were striped into an array, ``aggregate_device`` is the
  md device and it is the only mount-ready path; otherwise each member was
  formatted and mounted on its own.
  """

  members: List[str]
  fs_type: str
  mount_points: List[str] = field(default_factory=list)
  aggregate_device: Optional[str] = None

  @property
  def striped(self) -> bool:
    return self.aggregate_device is not None

  @property
  def used_devices(self) -> List[str]:
    if self.aggregate_device:
      return [self.aggregate_device]
    return list(self.members)
