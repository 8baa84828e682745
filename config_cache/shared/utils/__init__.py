"""Utility helpers."""

from config_cache.shared.utils.datetime import utc_now, utc_now_ms

__all__ = ["utc_now", "utc_now_ms"]
