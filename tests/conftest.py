import pytest
from unittest.mock import Mock, patch
from botocore.exceptions import ClientError

from batchdisk.models.identity import InstanceIdentity
from batchdisk.operations.storage.devices import default_allocator


@pytest.fixture(autouse=True)
def no_sleep():
  """Every poll and backoff in the package goes through time.sleep."""
  with patch("time.sleep") as mock_sleep:
    yield mock_sleep


@pytest.fixture(autouse=True)
def reset_device_claims():
  yield
  for path in default_allocator.claimed:
    default_allocator.release(path)


@pytest.fixture
def identity():
  return InstanceIdentity(
    availabilityZone="us-east-1a",
    instanceId="i-0abc123",
    instanceType="m5.large",
    imageId="ami-1234",
    region="us-east-1",
  )


@pytest.fixture
def mock_ec2():
  """Mock boto3 EC2 client."""
  return Mock()


@pytest.fixture
def client_error():
  """Build botocore ClientErrors the way EC2 returns them."""

  def _make(code: str, message: str, operation: str = "Operation") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": message}}, operation)

  return _make


def volume_response(volume_id: str, state: str, az: str = "us-east-1a") -> dict:
  return {
    "Volumes": [{"VolumeId": volume_id, "State": state, "AvailabilityZone": az}]
  }


@pytest.fixture
def describe():
  """DescribeVolumes response builder."""
  return volume_response
