"""Scratch storage provisioning for batch jobs on EC2."""

__version__ = "0.1.0"
