"""Shared telemetry: logging setup."""

from config_cache.shared.telemetry.logging import setup_logging

__all__ = ["setup_logging"]
