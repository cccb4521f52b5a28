"""
Structured Logging Configuration for batchdisk

Jobs run on ephemeral Batch instances whose stdout/stderr end up in
CloudWatch, so non-dev environments emit one JSON document per line that can
be filtered with CloudWatch Insights or the AWS CLI.

Key Features:
- Tiered logging (Critical/Operational), all on stderr
- Structured JSON output for CloudWatch Insights queries
- Automatic log level management by environment
- Duration tracking and error categorization
"""

import json
import logging
import logging.config
import time
import traceback
from datetime import datetime, timezone
from functools import wraps
from typing import Any

from batchdisk.config.env import EnvConfig

APPLICATION_LOGGERS = [
  "batchdisk",
  "batchdisk.ec2",
  "batchdisk.storage",
]


class StructuredFormatter(logging.Formatter):
  """
  JSON formatter that creates AWS CLI-searchable structured logs.

  Output format optimized for CloudWatch Insights queries:
  - Timestamp in ISO format
  - Consistent field names for filtering
  - Hierarchical component/action structure
  - Volume and device context preserved as searchable fields
  """

  def format(self, record: logging.LogRecord) -> str:
    log_entry = {
      "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc)
      .isoformat()
      .replace("+00:00", "Z"),
      "level": record.levelname,
      "component": getattr(record, "component", record.name),
      "message": record.getMessage(),
    }

    if hasattr(record, "action"):
      log_entry["action"] = record.action

    # Resource context
    if hasattr(record, "volume_id"):
      log_entry["volume_id"] = record.volume_id
    if hasattr(record, "device"):
      log_entry["device"] = record.device
    if hasattr(record, "instance_id"):
      log_entry["instance_id"] = record.instance_id

    if hasattr(record, "duration_ms"):
      log_entry["duration_ms"] = record.duration_ms

    if record.levelno >= logging.ERROR:
      if record.exc_info:
        log_entry["error"] = {
          "type": record.exc_info[0].__name__ if record.exc_info[0] else "Unknown",
          "message": str(record.exc_info[1]) if record.exc_info[1] else "",
          "traceback": traceback.format_exception(*record.exc_info),
        }

      if hasattr(record, "error_category"):
        log_entry["error_category"] = record.error_category

    if hasattr(record, "metadata"):
      log_entry["metadata"] = record.metadata

    return json.dumps(log_entry, default=str, separators=(",", ":"))


class TieredLogFilter:
  """
  Filter logs by tier.

  Tier 1 (Critical): ERROR, CRITICAL
  Tier 2 (Operational): INFO, WARNING
  Tier 3 (Debug): DEBUG
  """

  def __init__(self, tier: str):
    self.tier = tier

  def filter(self, record: logging.LogRecord) -> bool:
    if self.tier == "critical":
      return record.levelno >= logging.ERROR
    elif self.tier == "operational":
      return logging.INFO <= record.levelno < logging.ERROR
    elif self.tier == "debug":
      return record.levelno == logging.DEBUG
    return True


def get_logging_config(environment: str | None = None) -> dict[str, Any]:
  """
  Generate logging configuration based on environment.

  - prod: INFO level, structured output, no debug logs
  - staging: INFO level, with debug logs enabled
  - test: WARNING level, minimal output for clean test runs
  - dev: DEBUG level unless LOG_LEVEL overrides, human readable
  """
  env = environment or EnvConfig.ENVIRONMENT

  log_level_override = getattr(EnvConfig, "LOG_LEVEL", None)

  if env == "prod":
    default_level = "INFO"
    enable_debug = False
  elif env == "staging":
    default_level = "INFO"
    enable_debug = True
  elif env == "test":
    default_level = "WARNING"
    enable_debug = False
  else:  # dev
    default_level = log_level_override or "DEBUG"
    enable_debug = default_level == "DEBUG"

  app_handlers = ["critical", "operational"] if env != "dev" else ["console"]

  config = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
      "structured": {
        "()": StructuredFormatter,
      },
      "simple": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"},
    },
    "filters": {
      "critical_filter": {"()": TieredLogFilter, "tier": "critical"},
      "operational_filter": {"()": TieredLogFilter, "tier": "operational"},
      "debug_filter": {"()": TieredLogFilter, "tier": "debug"},
    },
    "handlers": {
      "critical": {
        "class": "logging.StreamHandler",
        "level": "ERROR",
        "formatter": "structured",
        "filters": ["critical_filter"],
        "stream": "ext://sys.stderr",
      },
      "operational": {
        "class": "logging.StreamHandler",
        "level": "INFO",
        "formatter": "structured",
        "filters": ["operational_filter"],
        "stream": "ext://sys.stderr",
      },
      # stdout is reserved for volume ids consumed by the job wrapper
      "console": {
        "class": "logging.StreamHandler",
        "level": default_level,
        "formatter": "simple",
        "stream": "ext://sys.stderr",
      },
    },
    "loggers": {
      name: {
        "level": default_level,
        "handlers": list(app_handlers),
        "propagate": False,
      }
      for name in APPLICATION_LOGGERS
    },
    "root": {
      "level": "WARNING",
      "handlers": ["critical"] if env != "dev" else ["console"],
    },
  }

  # Third-party loggers (reduced verbosity)
  for name in ("boto3", "botocore", "urllib3", "httpx", "httpcore"):
    config["loggers"][name] = {
      "level": "WARNING",
      "handlers": ["critical"] if env != "dev" else ["console"],
      "propagate": False,
    }

  if enable_debug:
    config["handlers"]["debug"] = {
      "class": "logging.StreamHandler",
      "level": "DEBUG",
      "formatter": "structured",
      "filters": ["debug_filter"],
      "stream": "ext://sys.stderr",
    }

    if env != "dev":
      for logger_name in APPLICATION_LOGGERS:
        config["loggers"][logger_name]["handlers"].append("debug")

  return config


def setup_logging(environment: str | None = None) -> None:
  """Initialize structured logging configuration."""
  config = get_logging_config(environment)
  logging.config.dictConfig(config)


def get_logger(name: str) -> logging.Logger:
  """Get a logger with structured logging capabilities."""
  return logging.getLogger(name)


def log_error(
  logger: logging.Logger,
  error: Exception,
  component: str,
  action: str,
  error_category: str = "application",
  metadata: dict[str, Any] | None = None,
) -> None:
  """Log error with structured data for easy searching."""
  logger.error(
    f"Error in {component}.{action}: {error!s}",
    exc_info=True,
    extra={
      "component": component,
      "action": action,
      "error_category": error_category,
      "metadata": metadata or {},
    },
  )


def log_performance_metric(
  logger: logging.Logger,
  metric_name: str,
  value: int | float,
  unit: str = "count",
  component: str = "system",
  metadata: dict[str, Any] | None = None,
) -> None:
  """Log performance metrics for monitoring."""
  logger.info(
    f"Performance metric: {metric_name} = {value} {unit}",
    extra={
      "component": "performance",
      "action": "metric_recorded",
      "metric_name": metric_name,
      "metric_value": value,
      "unit": unit,
      "source_component": component,
      "metadata": metadata or {},
    },
  )


def performance_timer(logger: logging.Logger, component: str, action: str):
  """Decorator to automatically log function execution time."""

  def decorator(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
      start_time = time.time()
      try:
        result = func(*args, **kwargs)
        duration_ms = (time.time() - start_time) * 1000

        logger.info(
          f"{component}.{action} completed ({duration_ms:.2f}ms)",
          extra={
            "component": component,
            "action": action,
            "duration_ms": duration_ms,
            "success": True,
          },
        )
        return result
      except Exception as e:
        duration_ms = (time.time() - start_time) * 1000
        log_error(
          logger,
          e,
          component,
          action,
          metadata={"duration_ms": duration_ms},
        )
        raise

    return wrapper

  return decorator
