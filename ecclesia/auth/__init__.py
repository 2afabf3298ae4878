"""Bearer-token authentication: resolves the caller for every request."""

from .dependencies import CurrentUser
from .schemas import CallerResponse


__all__ = ["CallerResponse", "CurrentUser"]
