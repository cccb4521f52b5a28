"""
Custom Exception Types for batchdisk.

This module provides the hierarchy of exceptions raised by the provisioning,
aggregation and teardown code. Each exception carries the resource context
(volume id, device path, last observed state) needed to log and abort.
"""

from typing import Optional, Dict, Any, List
from datetime import datetime, timezone


class BatchDiskError(Exception):
  """
  Base exception for all batchdisk errors.

  Attributes:
      message: Human-readable error message
      error_code: Application-specific error code for categorization
      details: Additional error context and metadata
      timestamp: When the error occurred
  """

  def __init__(
    self,
    message: str,
    error_code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
  ):
    super().__init__(message)
    self.message = message
    self.error_code = error_code or self.__class__.__name__
    self.details = details or {}
    self.timestamp = datetime.now(timezone.utc).isoformat()

  def to_dict(self) -> Dict[str, Any]:
    """Convert exception to dictionary for structured logs."""
    return {
      "error": self.error_code,
      "message": self.message,
      "details": self.details,
      "timestamp": self.timestamp,
    }


# ============================================================================
# Control Plane Exceptions
# ============================================================================


class ProviderError(BatchDiskError):
  """Raised when an EC2 control plane call fails."""

  def __init__(
    self,
    operation: str,
    reason: str,
    volume_id: Optional[str] = None,
    provider_code: Optional[str] = None,
    **kwargs,
  ):
    details = {"operation": operation}
    if volume_id:
      details["volume_id"] = volume_id
    if provider_code:
      details["provider_code"] = provider_code
    details.update(kwargs)
    message = f"EC2 {operation} failed"
    if volume_id:
      message += f" for volume {volume_id}"
    message += f": {reason}"
    super().__init__(message, error_code="PROVIDER_ERROR", details=details)
    self.operation = operation
    self.volume_id = volume_id
    self.provider_code = provider_code


class TransientProviderError(ProviderError):
  """Base class for provider errors that are retried locally."""


class RateLimitError(TransientProviderError):
  """Raised when the provider keeps throttling after the local retry."""

  def __init__(self, operation: str, reason: str, **kwargs):
    super().__init__(operation, reason, provider_code="RequestLimitExceeded", **kwargs)
    self.error_code = "RATE_LIMITED"


class DeviceInUseError(TransientProviderError):
  """Raised when the provider rejects an attach because the device is taken."""

  def __init__(self, volume_id: str, device: str, reason: str):
    super().__init__("AttachVolume", reason, volume_id=volume_id, device=device)
    self.error_code = "DEVICE_IN_USE"
    self.device = device


class StateTimeoutError(BatchDiskError):
  """Raised when a volume never reaches the requested state."""

  def __init__(
    self,
    volume_id: str,
    target_state: str,
    last_state: Optional[str],
    attempts: int,
  ):
    super().__init__(
      f"never found volume: {volume_id} with status: {target_state}. "
      f"last was: {last_state}",
      error_code="STATE_TIMEOUT",
      details={
        "volume_id": volume_id,
        "target_state": target_state,
        "last_state": last_state,
        "attempts": attempts,
      },
    )
    self.volume_id = volume_id
    self.target_state = target_state
    self.last_state = last_state


class VolumeNotFoundError(BatchDiskError):
  """Raised when a volume id cannot be found."""

  def __init__(self, volume_id: str, regions: Optional[List[str]] = None):
    details: Dict[str, Any] = {"volume_id": volume_id}
    if regions is not None:
      details["regions"] = regions
    super().__init__(
      f"volume: {volume_id} not found",
      error_code="VOLUME_NOT_FOUND",
      details=details,
    )
    self.volume_id = volume_id


class AttachError(BatchDiskError):
  """Raised when a volume could not be attached or its device never appeared."""

  def __init__(self, volume_id: str, reason: str, device: Optional[str] = None):
    details = {"volume_id": volume_id, "reason": reason}
    if device:
      details["device"] = device
    super().__init__(
      f"unable to attach volume {volume_id}: {reason}",
      error_code="ATTACH_FAILED",
      details=details,
    )
    self.volume_id = volume_id
    self.device = device


class MetadataError(BatchDiskError):
  """Raised when the instance metadata service cannot be read."""

  def __init__(self, url: str, reason: str):
    super().__init__(
      f"unable to read instance identity from {url}: {reason}",
      error_code="METADATA_UNAVAILABLE",
      details={"url": url, "reason": reason},
    )


# ============================================================================
# Host Storage Exceptions
# ============================================================================


class ExhaustionError(BatchDiskError):
  """Base class for running out of devices or storage."""


class DeviceExhaustedError(ExhaustionError):
  """Raised when no free device path exists in the search space."""

  def __init__(self, prefix: str, search_space: str):
    super().__init__(
      f"no device found with prefix: {prefix}",
      error_code="DEVICE_EXHAUSTED",
      details={"prefix": prefix, "search_space": search_space},
    )
    self.prefix = prefix


class NoStorageError(ExhaustionError):
  """Raised when none of the candidate devices are usable."""

  def __init__(self, candidates: List[str]):
    super().__init__(
      "no unused local storage found",
      error_code="NO_STORAGE",
      details={"candidates": list(candidates)},
    )
    self.candidates = list(candidates)


class MountError(BatchDiskError):
  """
  Raised when formatting, array assembly or mounting fails.

  ``device`` is the device being worked on; for striped arrays it is the
  array path so the caller can still inspect or clean it up.
  """

  def __init__(
    self,
    device: str,
    operation: str,
    reason: str,
    mount_point: Optional[str] = None,
  ):
    details = {"device": device, "operation": operation, "reason": reason}
    if mount_point:
      details["mount_point"] = mount_point
    super().__init__(
      f"{operation} failed for {device}: {reason}",
      error_code="MOUNT_ERROR",
      details=details,
    )
    self.device = device
    self.operation = operation


class AlreadyMountedError(MountError):
  """Raised by mkfs when the device is already mounted."""

  def __init__(self, device: str):
    super().__init__(device, "mkfs", "drive is already mounted")
    self.error_code = "ALREADY_MOUNTED"


# ============================================================================
# Configuration Exceptions
# ============================================================================


class ConfigurationError(BatchDiskError):
  """Raised when a request is invalid; always before any side effect."""

  def __init__(self, config_key: str, reason: str):
    super().__init__(
      f"Configuration error for '{config_key}': {reason}",
      error_code="CONFIGURATION_ERROR",
      details={"config_key": config_key, "reason": reason},
    )
    self.config_key = config_key
