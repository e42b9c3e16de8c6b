"""
API Routers
"""
from .tokens import router as tokens_router
from .alerts import router as alerts_router
from .events import router as events_router
from .monitor import router as monitor_router

__all__ = ["tokens_router", "alerts_router", "events_router", "monitor_router"]
