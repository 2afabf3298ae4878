"""Utility modules for the Ecclesia API."""

from ecclesia.utils.dates import ensure_utc_aware


__all__ = ["ensure_utc_aware"]
