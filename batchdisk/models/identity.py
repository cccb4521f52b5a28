"""Instance identity document model."""

from pydantic import BaseModel, ConfigDict, Field


class InstanceIdentity(BaseModel):
  """
  Identity attributes of the calling EC2 instance.

  Parsed from the instance identity document served by the metadata service,
  which uses camelCase keys. Fetched once per process and never mutated.
  """

  model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

  availability_zone: str = Field(..., alias="availabilityZone")
  instance_id: str = Field(..., alias="instanceId")
  instance_type: str = Field("", alias="instanceType")
  image_id: str = Field("", alias="imageId")
  region: str = Field(..., alias="region")
