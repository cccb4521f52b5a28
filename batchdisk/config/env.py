"""
Centralized environment variable configuration.

This module provides a single source of truth for all environment variables,
with type conversions and default values.

Organization:
- Helper functions for type-safe env var access
- Core application settings
- AWS and instance metadata settings
- Polling and device wait budgets
"""

import os
import sys
from typing import List

from .constants import (
  DEVICE_WAIT_ATTEMPTS,
  METADATA_IDENTITY_URL,
  METADATA_TIMEOUT,
  PROBE_REGIONS,
  STATUS_POLL_INTERVAL,
  STATUS_POLL_MAX_ATTEMPTS,
)


# ==========================================================================
# HELPER FUNCTIONS FOR TYPE-SAFE ENVIRONMENT VARIABLE ACCESS
# ==========================================================================


def get_int_env(key: str, default: int) -> int:
  """
  Get an integer environment variable with safe type conversion.

  Args:
      key: Environment variable name
      default: Default value if not set or invalid

  Returns:
      Integer value from environment or default
  """
  try:
    return int(os.getenv(key, str(default)))
  except (ValueError, TypeError):
    # Use print instead of logger to avoid circular import; stdout is reserved
    print(f"Warning: Invalid {key} value, using default: {default}", file=sys.stderr)
    return default


def get_float_env(key: str, default: float) -> float:
  """
  Get a float environment variable with safe type conversion.

  Args:
      key: Environment variable name
      default: Default value if not set or invalid

  Returns:
      Float value from environment or default
  """
  try:
    return float(os.getenv(key, str(default)))
  except (ValueError, TypeError):
    # Use print instead of logger to avoid circular import; stdout is reserved
    print(f"Warning: Invalid {key} value, using default: {default}", file=sys.stderr)
    return default


def get_bool_env(key: str, default: bool = False) -> bool:
  """Get a boolean environment variable."""
  value = os.getenv(key, str(default)).lower()
  return value in ("true", "1", "yes", "on")


def get_str_env(key: str, default: str = "") -> str:
  """Get a string environment variable."""
  return os.getenv(key, default)


def get_list_env(key: str, default: str = "", separator: str = ",") -> List[str]:
  """
  Get a list environment variable (comma-separated by default).

  Args:
      key: Environment variable name
      default: Default value if not set
      separator: String separator for list items

  Returns:
      List of strings from environment or default
  """
  value = os.getenv(key, default)
  if not value:
    return []
  return [item.strip() for item in value.split(separator) if item.strip()]


# ==========================================================================
# MAIN CONFIGURATION CLASS
# ==========================================================================


class EnvConfig:
  """
  Centralized environment variable configuration.

  Variables are organized into logical groups for easier maintenance.
  All variables use type-safe helper functions for consistent behavior.
  """

  # ==========================================================================
  # CORE APPLICATION SETTINGS
  # ==========================================================================

  ENVIRONMENT = get_str_env("ENVIRONMENT", "dev")
  LOG_LEVEL = get_str_env("LOG_LEVEL", "INFO")

  # ==========================================================================
  # AWS CONFIGURATION
  # ==========================================================================

  AWS_ENDPOINT_URL = get_str_env("AWS_ENDPOINT_URL", "")  # For LocalStack

  # Instance metadata service
  METADATA_URL = get_str_env("METADATA_URL", METADATA_IDENTITY_URL)
  METADATA_TIMEOUT = get_float_env("METADATA_TIMEOUT", METADATA_TIMEOUT)

  # Regions probed by the teardown coordinator, in order
  TEARDOWN_REGIONS = get_list_env("TEARDOWN_REGIONS", ",".join(PROBE_REGIONS))

  # ==========================================================================
  # POLLING BUDGETS
  # ==========================================================================

  VOLUME_POLL_MAX_ATTEMPTS = get_int_env(
    "VOLUME_POLL_MAX_ATTEMPTS", STATUS_POLL_MAX_ATTEMPTS
  )
  VOLUME_POLL_INTERVAL = get_float_env("VOLUME_POLL_INTERVAL", STATUS_POLL_INTERVAL)
  DEVICE_WAIT_ATTEMPTS = get_int_env("DEVICE_WAIT_ATTEMPTS", DEVICE_WAIT_ATTEMPTS)

  # ==========================================================================
  # HELPER METHODS
  # ==========================================================================

  @classmethod
  def get_endpoint_url(cls) -> str | None:
    """Endpoint override for boto3 clients, or None to use the AWS default."""
    return cls.AWS_ENDPOINT_URL or None


env = EnvConfig()
