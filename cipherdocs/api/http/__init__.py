from cipherdocs.api.http.health import router as health_router
from cipherdocs.api.http.documents import router as documents_router
from cipherdocs.api.http.principals import router as principals_router
from cipherdocs.api.http.events import router as events_router

__all__ = [
    "health_router",
    "documents_router",
    "principals_router",
    "events_router"
]
