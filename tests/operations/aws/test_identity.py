import httpx
import pytest
from unittest.mock import Mock, patch

from batchdisk.config.constants import METADATA_IDENTITY_URL
from batchdisk.exceptions import MetadataError
from batchdisk.operations.aws.identity import resolve_identity

IDENTITY_DOCUMENT = {
  "accountId": "123456789012",
  "availabilityZone": "eu-west-1b",
  "imageId": "ami-0abc",
  "instanceId": "i-0def",
  "instanceType": "r5.2xlarge",
  "region": "eu-west-1",
}


@pytest.fixture
def mock_get():
  with patch("batchdisk.operations.aws.identity.httpx.get") as mock:
    response = Mock()
    response.json.return_value = IDENTITY_DOCUMENT
    mock.return_value = response
    yield mock


class TestResolveIdentity:
  def test_parses_document(self, mock_get):
    identity = resolve_identity(url=METADATA_IDENTITY_URL, timeout=2)

    assert identity.instance_id == "i-0def"
    assert identity.availability_zone == "eu-west-1b"
    assert identity.region == "eu-west-1"
    assert identity.instance_type == "r5.2xlarge"
    mock_get.assert_called_once_with(METADATA_IDENTITY_URL, timeout=2)

  def test_single_attempt_on_network_error(self, mock_get):
    mock_get.side_effect = httpx.ConnectError("connection refused")

    with pytest.raises(MetadataError) as exc:
      resolve_identity(url="http://meta/doc")

    assert "connection refused" in exc.value.message
    assert mock_get.call_count == 1

  def test_http_status_error(self, mock_get):
    mock_get.return_value.raise_for_status.side_effect = httpx.HTTPStatusError(
      "404 Not Found", request=Mock(), response=Mock()
    )

    with pytest.raises(MetadataError):
      resolve_identity()

  def test_invalid_json(self, mock_get):
    mock_get.return_value.json.side_effect = ValueError("Expecting value")

    with pytest.raises(MetadataError) as exc:
      resolve_identity()

    assert "invalid identity document" in exc.value.message

  def test_missing_fields(self, mock_get):
    mock_get.return_value.json.return_value = {"instanceId": "i-1"}

    with pytest.raises(MetadataError):
      resolve_identity()
