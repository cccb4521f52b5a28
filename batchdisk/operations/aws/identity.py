"""Instance identity lookup through the EC2 metadata service."""

from typing import Optional

import httpx
from pydantic import ValidationError

from batchdisk.config import env
from batchdisk.exceptions import MetadataError
from batchdisk.logger import ec2_logger
from batchdisk.models.identity import InstanceIdentity


def resolve_identity(
  url: Optional[str] = None, timeout: Optional[float] = None
) -> InstanceIdentity:
  """
  Fetch the identity document of the instance we are running on.

  One GET, no retries: without the metadata service there is no instance to
  attach volumes to.

  Raises:
      MetadataError: If the document can't be fetched or parsed
  """
  url = url or env.METADATA_URL
  timeout = timeout if timeout is not None else env.METADATA_TIMEOUT

  try:
    response = httpx.get(url, timeout=timeout)
    response.raise_for_status()
    identity = InstanceIdentity.model_validate(response.json())
  except httpx.HTTPError as e:
    raise MetadataError(url, str(e)) from e
  except (ValueError, ValidationError) as e:
    raise MetadataError(url, f"invalid identity document: {e}") from e

  ec2_logger.debug(
    f"running on {identity.instance_id} ({identity.instance_type}) "
    f"in {identity.availability_zone}",
    extra={"instance_id": identity.instance_id},
  )
  return identity
