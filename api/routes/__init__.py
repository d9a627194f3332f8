"""
Bridge API Routes Package.

This package contains all FastAPI route handlers organized by caller.
Use this module to import routers for registration with the FastAPI app.

Example:
    from api.routes import zoom_router, ghl_router

    app.include_router(zoom_router)
    app.include_router(ghl_router)
"""

# ============================================================================
# Inbound Webhooks
# ============================================================================

from api.routes.zoom import router as zoom_router
from api.routes.ghl import router as ghl_router

# ============================================================================
# Admin & System Routers
# ============================================================================

from api.routes.admin import router as admin_router


__all__ = [
    # Webhooks
    "zoom_router",
    "ghl_router",
    # Admin
    "admin_router",
]
