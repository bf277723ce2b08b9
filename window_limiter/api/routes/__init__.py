from __future__ import annotations

from window_limiter.api.routes.health import router as health_router
from window_limiter.api.routes.limits import build_limits_router

__all__ = ["build_limits_router", "health_router"]
