"""Tests for the EBS provisioning workflow."""

import pytest
from unittest.mock import Mock, call, patch

from batchdisk.exceptions import AttachError
from batchdisk.models.storage import LocalDeviceSet
from batchdisk.models.volume import (
  DeviceAttachment,
  ProvisionResult,
  Volume,
  VolumeRequest,
  VolumeState,
)
from batchdisk.operations.provisioning import mount_ebs, mount_provisioned, provision

MODULE = "batchdisk.operations.provisioning"


@pytest.fixture
def volume_client():
  client = Mock()
  counter = iter(range(1, 100))

  def create(identity, spec, size_gib, tag_suffix=None):
    return Volume(f"vol-{next(counter)}", VolumeState.AVAILABLE, "us-east-1a")

  devices = iter("bcdefgh")

  def attach(identity, volume):
    return DeviceAttachment(volume.id, f"/dev/sd{next(devices)}", identity.instance_id)

  client.create_volume.side_effect = create
  client.attach_volume.side_effect = attach
  return client


@pytest.fixture
def make_dir():
  with patch(f"{MODULE}.make_dir") as mock:
    yield mock


class TestProvision:
  def test_creates_attaches_and_marks(self, identity, volume_client, make_dir, no_sleep):
    request = VolumeRequest.build(400, count=2)

    result = provision(
      request, "/mnt/scratch", resolver=lambda: identity, volume_client=volume_client
    )

    assert result.volume_ids == ["vol-1", "vol-2"]
    assert result.devices == ["/dev/sdb", "/dev/sdc"]
    assert volume_client.create_volume.call_args_list == [
      call(identity, request.spec, 200, tag_suffix=0),
      call(identity, request.spec, 200, tag_suffix=1),
    ]
    assert volume_client.mark_delete_on_termination.call_args_list == [
      call("i-0abc123", "vol-1", "/dev/sdb"),
      call("i-0abc123", "vol-2", "/dev/sdc"),
    ]
    assert no_sleep.call_args_list.count(call(3)) == 2
    make_dir.assert_called_once_with("/mnt/scratch")

  def test_keep_skips_delete_on_termination(self, identity, volume_client, make_dir):
    request = VolumeRequest.build(100, keep_on_termination=True)

    provision(
      request, "/mnt/scratch", resolver=lambda: identity, volume_client=volume_client
    )

    volume_client.mark_delete_on_termination.assert_not_called()

  def test_logs_volume_and_storage_metrics(self, identity, volume_client, make_dir):
    with patch(f"{MODULE}.log_metric") as log_metric:
      provision(
        VolumeRequest.build(400, count=2),
        "/mnt/scratch",
        resolver=lambda: identity,
        volume_client=volume_client,
      )

    assert log_metric.call_args_list == [
      call("volumes_provisioned", 2, component="provisioning"),
      call("storage_provisioned", 400, unit="GiB", component="provisioning"),
    ]

  def test_client_built_for_instance_region(self, identity, make_dir):
    factory = Mock()
    with patch(f"{MODULE}.EC2VolumeClient") as client_cls:
      client_cls.return_value.create_volume.return_value = Volume(
        "vol-1", VolumeState.AVAILABLE
      )
      client_cls.return_value.attach_volume.return_value = DeviceAttachment(
        "vol-1", "/dev/sdb", "i-0abc123"
      )

      provision(
        VolumeRequest.build(100),
        "/mnt/scratch",
        resolver=lambda: identity,
        client_factory=factory,
      )

    factory.assert_called_once_with("us-east-1")
    client_cls.assert_called_once_with(factory.return_value)

  def test_partial_failure_leaves_earlier_volumes(
    self, identity, volume_client, make_dir
  ):
    attach = volume_client.attach_volume.side_effect
    volume_client.attach_volume.side_effect = [
      attach(identity, Volume("vol-1", VolumeState.AVAILABLE)),
      AttachError("vol-2", "unable to attach device"),
    ]

    with pytest.raises(AttachError):
      provision(
        VolumeRequest.build(200, count=3),
        "/mnt/scratch",
        resolver=lambda: identity,
        volume_client=volume_client,
      )

    assert volume_client.create_volume.call_count == 2
    volume_client.delete_volume.assert_not_called()
    volume_client.detach_volume.assert_not_called()
    make_dir.assert_not_called()


class TestMountEbs:
  @pytest.fixture
  def storage(self):
    with patch(f"{MODULE}.aggregate") as aggregate, patch(
      f"{MODULE}.set_read_ahead"
    ) as read_ahead:
      aggregate.return_value = LocalDeviceSet(
        members=["/dev/sdb", "/dev/sdc"],
        fs_type="xfs",
        mount_points=["/mnt/scratch"],
        aggregate_device="/dev/md0",
      )
      yield aggregate, read_ahead

  def test_aggregates_attached_devices(self, identity, volume_client, make_dir, storage):
    aggregate, read_ahead = storage
    request = VolumeRequest.build(400, count=2, fs_type="xfs")

    result, device_set = mount_ebs(
      request, "/mnt/scratch", resolver=lambda: identity, volume_client=volume_client
    )

    aggregate.assert_called_once_with(
      ["/dev/sdb", "/dev/sdc"], "/mnt/scratch", fs_type="xfs"
    )
    assert result.volume_ids == ["vol-1", "vol-2"]
    assert device_set.used_devices == ["/dev/md0"]
    read_ahead.assert_not_called()

  def test_hdd_volumes_get_read_ahead(self, identity, volume_client, make_dir, storage):
    _, read_ahead = storage
    request = VolumeRequest.build(1000, volume_type="st1", count=2)

    mount_ebs(
      request, "/mnt/scratch", resolver=lambda: identity, volume_client=volume_client
    )

    read_ahead.assert_called_once_with(["/dev/md0"])

  def test_mount_provisioned_uses_existing_result(self, storage):
    aggregate, read_ahead = storage
    request = VolumeRequest.build(2000, volume_type="sc1", count=2)
    result = ProvisionResult(
      volume_ids=["vol-1", "vol-2"],
      attachments=[
        DeviceAttachment("vol-1", "/dev/sdb", "i-0abc123"),
        DeviceAttachment("vol-2", "/dev/sdc", "i-0abc123"),
      ],
    )

    device_set = mount_provisioned(request, result, "/mnt/scratch")

    aggregate.assert_called_once_with(
      ["/dev/sdb", "/dev/sdc"], "/mnt/scratch", fs_type="ext4"
    )
    read_ahead.assert_called_once_with(["/dev/md0"])
    assert device_set is aggregate.return_value
