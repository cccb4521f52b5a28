"""
Centralized configuration package for batchdisk.

This package provides a single source of truth for environment-driven
settings and the static provisioning policy constants.
"""

from .env import EnvConfig, env

__all__ = [
  "EnvConfig",
  "env",
]
