"""Telemetry and observability helpers.

This package emits deterministic session events for auditing buffering behavior.
"""

from .logger import RunLogger

__all__ = ["RunLogger"]
