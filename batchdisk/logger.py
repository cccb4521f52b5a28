"""
batchdisk Logging

Single entry point for application loggers. Importing this module configures
logging once for the process (see ``batchdisk.config.logging``) and exposes:

- ``logger``: main application logger
- ``ec2_logger``: control plane calls (create/attach/detach/delete)
- ``storage_logger``: host side work (mdadm, mkfs, mount)
"""

from typing import Any, Dict, Optional, Union

from .config.logging import (
  get_logger,
  log_error,
  log_performance_metric,
  performance_timer,
  setup_logging,
)

setup_logging()

logger = get_logger("batchdisk")

ec2_logger = get_logger("batchdisk.ec2")
storage_logger = get_logger("batchdisk.storage")


def log_app_error(
  error: Exception,
  component: str,
  action: str,
  error_category: str = "application",
  metadata: Optional[Dict[str, Any]] = None,
) -> None:
  """Log application errors with context."""
  log_error(logger, error, component, action, error_category, metadata)


def log_metric(
  metric_name: str,
  value: Union[int, float],
  unit: str = "count",
  component: str = "system",
  metadata: Optional[Dict[str, Any]] = None,
) -> None:
  """Log performance metrics."""
  log_performance_metric(logger, metric_name, value, unit, component, metadata)


__all__ = [
  "logger",
  "ec2_logger",
  "storage_logger",
  "get_logger",
  "log_app_error",
  "log_metric",
  "performance_timer",
]
