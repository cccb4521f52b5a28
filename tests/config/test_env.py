import os

import pytest

from batchdisk.config import env
from batchdisk.config.constants import PROBE_REGIONS
from batchdisk.config.env import (
  EnvConfig,
  get_bool_env,
  get_float_env,
  get_int_env,
  get_list_env,
  get_str_env,
)


def test_get_int_env_returns_default_on_invalid(monkeypatch, capsys):
  monkeypatch.setenv("INVALID_INT", "not-a-number")

  value = get_int_env("INVALID_INT", 7)

  captured = capsys.readouterr()
  assert "Invalid INVALID_INT value" in captured.err
  assert captured.out == ""
  assert value == 7


def test_get_float_env_returns_default(monkeypatch, capsys):
  monkeypatch.setenv("INVALID_FLOAT", "oops")

  value = get_float_env("INVALID_FLOAT", 3.5)

  captured = capsys.readouterr()
  assert "Invalid INVALID_FLOAT value" in captured.err
  assert captured.out == ""
  assert value == pytest.approx(3.5)


@pytest.mark.parametrize(
  "raw,expected",
  [
    ("true", True),
    ("1", True),
    ("yes", True),
    ("on", True),
    ("false", False),
    ("0", False),
    ("off", False),
  ],
)
def test_get_bool_env_parses_truthy_values(monkeypatch, raw, expected):
  monkeypatch.setenv("BOOL_TEST", raw)

  assert get_bool_env("BOOL_TEST", default=not expected) is expected


def test_get_str_env_uses_default_when_missing(monkeypatch):
  monkeypatch.delenv("MISSING_STR", raising=False)

  assert get_str_env("MISSING_STR", "fallback") == "fallback"


def test_get_list_env_splits_and_strips(monkeypatch):
  monkeypatch.setenv("LIST_ENV", " us-east-1 , eu-west-1,,ap-south-1 ")

  assert get_list_env("LIST_ENV") == ["us-east-1", "eu-west-1", "ap-south-1"]


def test_get_list_env_empty(monkeypatch):
  monkeypatch.delenv("LIST_ENV", raising=False)

  assert get_list_env("LIST_ENV") == []


def test_teardown_regions_default_to_probe_list():
  if "TEARDOWN_REGIONS" in os.environ:
    pytest.skip("TEARDOWN_REGIONS overridden in the environment")

  assert EnvConfig.TEARDOWN_REGIONS == list(PROBE_REGIONS)
  assert EnvConfig.TEARDOWN_REGIONS[0] == "us-east-1"


def test_get_endpoint_url(monkeypatch):
  monkeypatch.setattr(EnvConfig, "AWS_ENDPOINT_URL", "")
  assert env.get_endpoint_url() is None

  monkeypatch.setattr(EnvConfig, "AWS_ENDPOINT_URL", "http://localhost:4566")
  assert env.get_endpoint_url() == "http://localhost:4566"

