import json
import logging
from unittest.mock import Mock

import pytest

from batchdisk.config.logging import (
  StructuredFormatter,
  TieredLogFilter,
  get_logging_config,
  log_error,
  performance_timer,
)


def _make_record(level: int) -> logging.LogRecord:
  return logging.LogRecord(
    name="test",
    level=level,
    pathname=__file__,
    lineno=0,
    msg="message",
    args=(),
    exc_info=None,
  )


def test_structured_formatter_includes_resource_fields():
  formatter = StructuredFormatter()
  record = logging.LogRecord(
    name="batchdisk.ec2",
    level=logging.INFO,
    pathname=__file__,
    lineno=10,
    msg="attached %s",
    args=("vol-1",),
    exc_info=None,
  )
  record.action = "attach"
  record.volume_id = "vol-1"
  record.device = "/dev/xvdf"
  record.instance_id = "i-1"

  entry = json.loads(formatter.format(record))

  assert entry["message"] == "attached vol-1"
  assert entry["component"] == "batchdisk.ec2"
  assert entry["action"] == "attach"
  assert entry["volume_id"] == "vol-1"
  assert entry["device"] == "/dev/xvdf"
  assert entry["instance_id"] == "i-1"
  assert entry["timestamp"].endswith("Z")


def test_structured_formatter_error_details():
  formatter = StructuredFormatter()
  try:
    raise RuntimeError("boom")
  except RuntimeError:
    import sys

    record = logging.LogRecord(
      name="batchdisk",
      level=logging.ERROR,
      pathname=__file__,
      lineno=1,
      msg="failed",
      args=(),
      exc_info=sys.exc_info(),
    )
  record.error_category = "provider"

  entry = json.loads(formatter.format(record))

  assert entry["error"]["type"] == "RuntimeError"
  assert entry["error"]["message"] == "boom"
  assert entry["error_category"] == "provider"


@pytest.mark.parametrize(
  "tier,level,expected",
  [
    ("critical", logging.ERROR, True),
    ("critical", logging.WARNING, False),
    ("operational", logging.INFO, True),
    ("operational", logging.ERROR, False),
    ("debug", logging.DEBUG, True),
    ("debug", logging.INFO, False),
  ],
)
def test_tiered_log_filter(tier, level, expected):
  assert TieredLogFilter(tier).filter(_make_record(level)) is expected


def test_all_handlers_write_to_stderr():
  for environment in ("prod", "staging", "test", "dev"):
    config = get_logging_config(environment)
    for handler in config["handlers"].values():
      assert handler["stream"] == "ext://sys.stderr"


def test_prod_config_uses_tiered_handlers():
  config = get_logging_config("prod")

  assert config["loggers"]["batchdisk"]["handlers"] == ["critical", "operational"]
  assert config["loggers"]["batchdisk.ec2"]["level"] == "INFO"
  assert "debug" not in config["handlers"]
  assert config["loggers"]["botocore"]["level"] == "WARNING"


def test_staging_config_enables_debug_handler():
  config = get_logging_config("staging")

  assert "debug" in config["handlers"]
  assert "debug" in config["loggers"]["batchdisk.storage"]["handlers"]


def test_test_config_is_quiet():
  config = get_logging_config("test")

  assert config["loggers"]["batchdisk"]["level"] == "WARNING"


def test_dev_config_uses_console():
  config = get_logging_config("dev")

  assert config["loggers"]["batchdisk"]["handlers"] == ["console"]


def test_log_error_attaches_context():
  logger = Mock()

  log_error(logger, ValueError("bad"), "teardown", "detach", "provider", {"a": 1})

  args, kwargs = logger.error.call_args
  assert "teardown.detach" in args[0]
  assert kwargs["extra"]["error_category"] == "provider"
  assert kwargs["extra"]["metadata"] == {"a": 1}


def test_performance_timer_logs_and_returns():
  logger = Mock()

  @performance_timer(logger, "storage", "aggregate")
  def work(x):
    return x * 2

  assert work(21) == 42
  message = logger.info.call_args[0][0]
  assert message.startswith("storage.aggregate completed")
