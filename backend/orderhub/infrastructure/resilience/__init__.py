"""Resilience utilities."""

from .retry import retry_after_failure

__all__ = ["retry_after_failure"]
