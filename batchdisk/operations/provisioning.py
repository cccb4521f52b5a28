"""
EBS provisioning workflow.

Creates the volumes of a VolumeRequest one at a time in the instance's
availability zone, attaches each to this instance and, for ``mount_ebs``,
hands the attached devices to the aggregation engine.

Volumes created before a later step fails are not cleaned up here; their ids
are logged so the job wrapper (or an operator with ``ddv``) can remove them.
"""

import time
from typing import Callable, Optional, Tuple

from batchdisk.config.constants import INTER_CREATE_DELAY
from batchdisk.exceptions import BatchDiskError
from batchdisk.logger import log_metric, logger, performance_timer
from batchdisk.models.storage import LocalDeviceSet
from batchdisk.models.volume import ProvisionResult, VolumeRequest
from batchdisk.operations.aws.ec2 import EC2VolumeClient, create_ec2_client
from batchdisk.operations.aws.identity import resolve_identity
from batchdisk.operations.storage.aggregation import aggregate, set_read_ahead
from batchdisk.operations.storage.commands import make_dir


@performance_timer(logger, "provisioning", "provision")
def provision(
  request: VolumeRequest,
  mount_point: str,
  resolver: Callable = resolve_identity,
  client_factory: Callable = create_ec2_client,
  volume_client: Optional[EC2VolumeClient] = None,
) -> ProvisionResult:
  """
  Create, attach and (unless ``keep_on_termination``) mark for deletion on
  termination ``request.count`` volumes, then create ``mount_point``.

  Args:
      request: Validated volume request
      mount_point: Directory the volumes will be mounted on
      resolver: Returns the InstanceIdentity of this instance
      client_factory: Builds a boto3 EC2 client for a region
      volume_client: Prebuilt volume client; overrides ``client_factory``

  Returns:
      The created volume ids and their attachments, in creation order
  """
  identity = resolver()
  client = volume_client or EC2VolumeClient(client_factory(identity.region))
  result = ProvisionResult()

  try:
    for index in range(request.count):
      volume = client.create_volume(
        identity, request.spec, request.size_gib, tag_suffix=index
      )
      result.volume_ids.append(volume.id)
      time.sleep(INTER_CREATE_DELAY)

      attachment = client.attach_volume(identity, volume)
      result.attachments.append(attachment)

      if not request.keep_on_termination:
        client.mark_delete_on_termination(
          identity.instance_id, volume.id, attachment.device
        )
  except BatchDiskError:
    if result.volume_ids:
      logger.error(
        f"provisioning failed, volumes left behind: {' '.join(result.volume_ids)}"
      )
    raise

  make_dir(mount_point)
  logger.info(
    f"provisioned {len(result.volume_ids)} {request.spec.api_name} volume(s) "
    f"of {request.size_gib}GiB: {' '.join(result.volume_ids)}"
  )
  log_metric("volumes_provisioned", len(result.volume_ids), component="provisioning")
  log_metric(
    "storage_provisioned",
    request.size_gib * len(result.volume_ids),
    unit="GiB",
    component="provisioning",
  )
  return result


def mount_ebs(
  request: VolumeRequest, mount_point: str, **kwargs
) -> Tuple[ProvisionResult, LocalDeviceSet]:
  """
  Provision the request and mount the attached volumes at ``mount_point``,
  striped when there is more than one.

  Keyword arguments are passed through to ``provision``.
  """
  result = provision(request, mount_point, **kwargs)
  return result, mount_provisioned(request, result, mount_point)


def mount_provisioned(
  request: VolumeRequest, result: ProvisionResult, mount_point: str
) -> LocalDeviceSet:
  """Mount the devices of an already provisioned request at ``mount_point``."""
  device_set = aggregate(result.devices, mount_point, fs_type=request.fs_type)
  if request.spec.needs_read_ahead:
    set_read_ahead(device_set.used_devices)
  return device_set
