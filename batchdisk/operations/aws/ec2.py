"""
EBS volume lifecycle against the EC2 control plane.

EC2 is asynchronous and eventually consistent: a volume returned by
CreateVolume is not usable until DescribeVolumes says ``available``, and an
AttachVolume that succeeds only means the attachment has started. Every call
here therefore follows up with polling, and the two failure modes that are
common under many concurrent job starts are retried locally:

- ``RequestLimitExceeded`` on create: one retry after a random 10-100s wait
- "device is already in use" on attach: another container on the same host
  grabbed the device name first; back off and retry with a fresh name
"""

import random
import time
from typing import Any, Callable, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from retrying import Retrying

from batchdisk.config import env
from batchdisk.config.constants import (
  ATTACH_ATTEMPTS_PER_PREFIX,
  ATTACH_BACKOFF_BASE,
  DEVICE_LETTERS,
  DEVICE_PREFIXES,
  RATE_LIMIT_MAX_ATTEMPTS,
  RATE_LIMIT_WAIT_MAX_MS,
  RATE_LIMIT_WAIT_MIN_MS,
  STATUS_POLL_ESCALATE_AFTER,
  STATUS_POLL_INITIAL_DELAY,
  VOLUME_NAME_PREFIX,
)
from batchdisk.exceptions import (
  AttachError,
  DeviceInUseError,
  ProviderError,
  RateLimitError,
  StateTimeoutError,
  VolumeNotFoundError,
)
from batchdisk.logger import ec2_logger
from batchdisk.models.identity import InstanceIdentity
from batchdisk.models.volume import DeviceAttachment, Volume, VolumeSpec, VolumeState
from batchdisk.operations.storage.devices import next_device_node, wait_for_device

RATE_LIMIT_CODE = "RequestLimitExceeded"
NOT_FOUND_CODE = "InvalidVolume.NotFound"
DEVICE_IN_USE_MARKER = "is already in use"
ALREADY_DETACHED_MARKER = "'available' state"

DeviceAllocator = Callable[[str, str], str]


def create_ec2_client(region: str):
  """
  Create an EC2 client for ``region``.

  A fresh session per client keeps this safe to call from teardown worker
  threads.
  """
  session = boto3.session.Session()
  return session.client(
    "ec2", region_name=region, endpoint_url=env.get_endpoint_url()
  )


def jitter(attempt: int, base: float, rng: random.Random) -> float:
  """Backoff of ``base * (attempt + r)`` seconds with ``r`` in ``[0, attempt)``."""
  if attempt < 1:
    return 0
  return base * (attempt + rng.randrange(attempt))


def volume_name(instance_id: str, suffix: Optional[int] = None) -> str:
  """Name tag for volumes created on behalf of ``instance_id``."""
  name = f"{VOLUME_NAME_PREFIX}-{instance_id}"
  if suffix is not None:
    name += f"-{suffix}"
  return name


def error_code(error: Exception) -> str:
  if isinstance(error, ClientError):
    return error.response.get("Error", {}).get("Code", "")
  return ""


def is_rate_limited(error: Exception) -> bool:
  return error_code(error) == RATE_LIMIT_CODE


def _provider_error(
  operation: str, error: Exception, volume_id: Optional[str] = None, **details
) -> ProviderError:
  return ProviderError(
    operation,
    str(error),
    volume_id=volume_id,
    provider_code=error_code(error) or None,
    **details,
  )


class EC2VolumeClient:
  """
  Create, attach, detach and delete EBS volumes in one region.

  Args:
      ec2: boto3 EC2 client for the region the volumes live in
      rng: Random source for backoff jitter; one per client so nothing depends
          on process-wide random state
      poll_max_attempts: DescribeVolumes attempts per wait_for_status call
      poll_interval: Seconds between DescribeVolumes attempts
  """

  def __init__(
    self,
    ec2,
    rng: Optional[random.Random] = None,
    poll_max_attempts: Optional[int] = None,
    poll_interval: Optional[float] = None,
  ):
    self.ec2 = ec2
    self._rng = rng or random.Random()
    self.poll_max_attempts = poll_max_attempts or env.VOLUME_POLL_MAX_ATTEMPTS
    self.poll_interval = (
      poll_interval if poll_interval is not None else env.VOLUME_POLL_INTERVAL
    )

  # ==========================================================================
  # Create
  # ==========================================================================

  def _rate_limit_wait(self, attempt_number: int, delay_ms: int) -> int:
    wait_ms = self._rng.randint(RATE_LIMIT_WAIT_MIN_MS, RATE_LIMIT_WAIT_MAX_MS)
    ec2_logger.warning(
      f"CreateVolume rate limited, retrying in {wait_ms / 1000:.0f}s"
    )
    return wait_ms

  def _request_volume(self, params: Dict[str, Any]) -> Dict[str, Any]:
    retryer = Retrying(
      stop_max_attempt_number=RATE_LIMIT_MAX_ATTEMPTS,
      wait_func=self._rate_limit_wait,
      retry_on_exception=is_rate_limited,
    )
    try:
      return retryer.call(self.ec2.create_volume, **params)
    except ClientError as e:
      if is_rate_limited(e):
        ec2_logger.warning(
          "WARNING: this usually means you need to space out job submissions"
        )
        raise RateLimitError("CreateVolume", str(e)) from e
      raise _provider_error("CreateVolume", e) from e
    except BotoCoreError as e:
      raise _provider_error("CreateVolume", e) from e

  def create_volume(
    self,
    identity: InstanceIdentity,
    spec: VolumeSpec,
    size_gib: int,
    tag_suffix: Optional[int] = None,
  ) -> Volume:
    """
    Create a volume in the instance's availability zone and wait until it is
    ``available``.

    Raises:
        RateLimitError: Still throttled after the single retry
        ProviderError: Any other control plane failure
        StateTimeoutError: The volume never became available
    """
    params = {
      "AvailabilityZone": identity.availability_zone,
      "Size": size_gib,
      **spec.create_args(),
      "TagSpecifications": [
        {
          "ResourceType": "volume",
          "Tags": [
            {"Key": "Name", "Value": volume_name(identity.instance_id, tag_suffix)}
          ],
        }
      ],
    }
    response = self._request_volume(params)
    volume_id = response["VolumeId"]
    ec2_logger.info(
      f"created {spec.api_name} volume {volume_id} ({size_gib}GiB) "
      f"in {identity.availability_zone}",
      extra={"volume_id": volume_id, "action": "create_volume"},
    )
    return self.wait_for_status(volume_id, VolumeState.AVAILABLE)

  # ==========================================================================
  # Status
  # ==========================================================================

  def describe_volume(self, volume_id: str) -> Volume:
    """
    Current view of a volume.

    Raises:
        VolumeNotFoundError: EC2 doesn't know the volume
        ProviderError: Any other control plane failure
    """
    try:
      response = self.ec2.describe_volumes(VolumeIds=[volume_id])
    except ClientError as e:
      if error_code(e) == NOT_FOUND_CODE:
        raise VolumeNotFoundError(volume_id) from e
      raise _provider_error("DescribeVolumes", e, volume_id) from e
    except BotoCoreError as e:
      raise _provider_error("DescribeVolumes", e, volume_id) from e

    volumes = response.get("Volumes", [])
    if not volumes:
      raise VolumeNotFoundError(volume_id)
    return Volume.from_api(volumes[0])

  def wait_for_status(
    self,
    volume_id: str,
    target: VolumeState | str,
    max_attempts: Optional[int] = None,
    poll_interval: Optional[float] = None,
    initial_delay: float = STATUS_POLL_INITIAL_DELAY,
    escalate_after: int = STATUS_POLL_ESCALATE_AFTER,
  ) -> Volume:
    """
    Poll DescribeVolumes until the volume reaches ``target``.

    After ``escalate_after`` attempts the wait between polls grows with the
    attempt number to go easy on the control plane during long waits.

    Raises:
        StateTimeoutError: ``max_attempts`` polls without reaching ``target``;
            carries the last observed state
        VolumeNotFoundError / ProviderError: From describe_volume
    """
    target = VolumeState(target)
    max_attempts = max_attempts or self.poll_max_attempts
    poll_interval = poll_interval if poll_interval is not None else self.poll_interval

    time.sleep(initial_delay)
    last_state: Optional[VolumeState] = None
    for attempt in range(max_attempts):
      volume = self.describe_volume(volume_id)
      last_state = volume.state
      if volume.state == target:
        return volume

      delay = poll_interval
      if attempt > escalate_after:
        delay += attempt
      ec2_logger.debug(
        f"volume {volume_id} is {volume.state.value}, waiting for {target.value}",
        extra={"volume_id": volume_id},
      )
      time.sleep(delay)

    raise StateTimeoutError(
      volume_id,
      target.value,
      last_state.value if last_state else None,
      max_attempts,
    )

  # ==========================================================================
  # Attach
  # ==========================================================================

  def _attach(self, volume_id: str, instance_id: str, device: str) -> None:
    try:
      self.ec2.attach_volume(
        InstanceId=instance_id, VolumeId=volume_id, Device=device
      )
    except ClientError as e:
      if DEVICE_IN_USE_MARKER in str(e):
        raise DeviceInUseError(volume_id, device, str(e)) from e
      raise _provider_error("AttachVolume", e, volume_id, device=device) from e
    except BotoCoreError as e:
      raise _provider_error("AttachVolume", e, volume_id, device=device) from e

  def attach_volume(
    self,
    identity: InstanceIdentity,
    volume: Volume,
    allocator: Optional[DeviceAllocator] = None,
  ) -> DeviceAttachment:
    """
    Attach ``volume`` to this instance and wait for the device node.

    Device names are picked locally and may collide with another attacher on
    the same host; EC2 rejects the loser with "already in use". Each prefix
    gets ATTACH_ATTEMPTS_PER_PREFIX tries with growing, jittered waits before
    falling over to the next prefix.

    Raises:
        AttachError: Every attempt collided, or the device never appeared
        DeviceExhaustedError: No free device name left under a prefix
        ProviderError: Any non-collision attach failure (not retried)
        StateTimeoutError: The volume never became ``in-use``
    """
    allocate = allocator or next_device_node

    for prefix in DEVICE_PREFIXES:
      for attempt in range(1, ATTACH_ATTEMPTS_PER_PREFIX + 1):
        device = allocate(prefix, DEVICE_LETTERS[attempt:])
        try:
          self._attach(volume.id, identity.instance_id, device)
        except DeviceInUseError as e:
          delay = jitter(attempt, ATTACH_BACKOFF_BASE, self._rng)
          ec2_logger.warning(
            f"retrying EBS attach of {volume.id} in {delay}s: {e.message}",
            extra={"volume_id": volume.id, "device": device},
          )
          time.sleep(delay)
          continue

        self.wait_for_status(volume.id, VolumeState.IN_USE)
        if not wait_for_device(device):
          raise AttachError(volume.id, "device never appeared on the host", device)

        ec2_logger.info(
          f"attached {volume.id} as {device}",
          extra={
            "volume_id": volume.id,
            "device": device,
            "instance_id": identity.instance_id,
          },
        )
        return DeviceAttachment(
          volume_id=volume.id, device=device, instance_id=identity.instance_id
        )

    raise AttachError(volume.id, "unable to attach device")

  def mark_delete_on_termination(
    self, instance_id: str, volume_id: str, device: str
  ) -> None:
    """
    Have EC2 delete the volume when the instance terminates.

    Raises:
        ProviderError: If the attribute update fails
    """
    ec2_logger.info(
      f"setting {volume_id} to delete on termination",
      extra={"volume_id": volume_id, "device": device},
    )
    try:
      self.ec2.modify_instance_attribute(
        InstanceId=instance_id,
        BlockDeviceMappings=[
          {
            "DeviceName": device,
            "Ebs": {"DeleteOnTermination": True, "VolumeId": volume_id},
          }
        ],
      )
    except (ClientError, BotoCoreError) as e:
      raise _provider_error("ModifyInstanceAttribute", e, volume_id) from e

  # ==========================================================================
  # Detach / delete
  # ==========================================================================

  def detach_volume(self, volume_id: str, force: bool = True) -> bool:
    """
    Detach a volume.

    Returns:
        False if the volume was already detached, True otherwise

    Raises:
        ProviderError: If the detach is rejected for any other reason
    """
    try:
      self.ec2.detach_volume(VolumeId=volume_id, Force=force)
    except ClientError as e:
      if ALREADY_DETACHED_MARKER in str(e):
        ec2_logger.info(
          f"volume {volume_id} is already detached", extra={"volume_id": volume_id}
        )
        return False
      raise _provider_error("DetachVolume", e, volume_id) from e
    except BotoCoreError as e:
      raise _provider_error("DetachVolume", e, volume_id) from e
    return True

  def delete_volume(self, volume_id: str) -> None:
    """
    Delete a volume.

    Raises:
        ProviderError: If the delete fails
    """
    try:
      self.ec2.delete_volume(VolumeId=volume_id)
    except (ClientError, BotoCoreError) as e:
      raise _provider_error("DeleteVolume", e, volume_id) from e
