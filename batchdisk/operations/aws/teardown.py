"""
Volume teardown: find, force detach and delete EBS volumes by id.

Teardown usually runs from a job wrapper's exit trap with nothing but the
volume ids, so the region is discovered by probing a fixed list of regions in
order. Each volume is handled on its own worker thread and one volume's
failure never stops the others.
"""

from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Sequence

from botocore.exceptions import BotoCoreError, ClientError

from batchdisk.config import env
from batchdisk.exceptions import VolumeNotFoundError
from batchdisk.logger import ec2_logger, log_app_error, performance_timer
from batchdisk.models.volume import VolumeState

from .ec2 import EC2VolumeClient, create_ec2_client


def locate_volume(
  volume_id: str,
  regions: Optional[Sequence[str]] = None,
  client_factory: Callable = create_ec2_client,
) -> EC2VolumeClient:
  """
  Find the region ``volume_id`` lives in.

  Regions are probed in order and the first one whose DescribeVolumes returns
  the volume wins. Errors from a region (unknown volume, region not enabled,
  endpoint unreachable) just move on to the next one.

  Returns:
      A volume client bound to the volume's region

  Raises:
      VolumeNotFoundError: If no region knows the volume
  """
  regions = list(regions) if regions is not None else env.TEARDOWN_REGIONS
  for region in regions:
    ec2 = client_factory(region)
    try:
      response = ec2.describe_volumes(VolumeIds=[volume_id])
    except (ClientError, BotoCoreError) as e:
      ec2_logger.debug(f"{volume_id} not in {region}: {e}")
      continue
    if response.get("Volumes"):
      ec2_logger.info(
        f"found volume for deletion in region: {region}",
        extra={"volume_id": volume_id},
      )
      return EC2VolumeClient(ec2)

  raise VolumeNotFoundError(volume_id, regions)


def detach_and_delete(
  volume_id: str,
  regions: Optional[Sequence[str]] = None,
  client_factory: Callable = create_ec2_client,
) -> None:
  """
  Force detach ``volume_id`` from whatever it is attached to, wait until it is
  available and delete it.

  Raises:
      VolumeNotFoundError: If the volume can't be found in any probed region
      ProviderError: If detach or delete is rejected
      StateTimeoutError: If the volume never becomes available
  """
  client = locate_volume(volume_id, regions, client_factory)

  if client.detach_volume(volume_id, force=True):
    client.wait_for_status(volume_id, VolumeState.AVAILABLE)

  client.delete_volume(volume_id)
  ec2_logger.info(f"deleted volume {volume_id}", extra={"volume_id": volume_id})


@performance_timer(ec2_logger, "teardown", "teardown_volumes")
def teardown_volumes(
  volume_ids: List[str],
  regions: Optional[Sequence[str]] = None,
  client_factory: Callable = create_ec2_client,
) -> Dict[str, Optional[Exception]]:
  """
  Detach and delete many volumes concurrently, one worker per volume.

  Returns:
      Mapping of volume id to the exception that stopped it, or None when the
      volume was deleted
  """
  if not volume_ids:
    return {}

  results: Dict[str, Optional[Exception]] = {}
  with ThreadPoolExecutor(max_workers=len(volume_ids)) as executor:
    futures = {
      volume_id: executor.submit(
        detach_and_delete, volume_id, regions, client_factory
      )
      for volume_id in volume_ids
    }
    for volume_id, future in futures.items():
      try:
        future.result()
        results[volume_id] = None
      except Exception as e:
        log_app_error(
          e,
          component="teardown",
          action="detach_and_delete",
          error_category="provider",
          metadata={"volume_id": volume_id},
        )
        results[volume_id] = e

  return results
