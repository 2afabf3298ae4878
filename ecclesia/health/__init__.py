"""Health check endpoints."""

from ecclesia.health.router import router


__all__ = ["router"]
