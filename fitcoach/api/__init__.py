"""HTTP settings surface for the notification scheduler."""

from fitcoach.api.routes import router

__all__ = ["router"]
