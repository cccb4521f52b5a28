from .ec2 import EC2VolumeClient, create_ec2_client, jitter
from .identity import resolve_identity
from .teardown import detach_and_delete, locate_volume, teardown_volumes

__all__ = [
  "EC2VolumeClient",
  "create_ec2_client",
  "detach_and_delete",
  "jitter",
  "locate_volume",
  "resolve_identity",
  "teardown_volumes",
]
