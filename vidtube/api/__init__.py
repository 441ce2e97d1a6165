"""API package exports."""

from vidtube.api.middleware import CorrelationIdMiddleware
from vidtube.api.routes import router
from vidtube.api.users import router as users_router

__all__ = ["router", "users_router", "CorrelationIdMiddleware"]
