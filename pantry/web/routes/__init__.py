"""Pantry web route modules.

Each module exports a `router` object (APIRouter instance) that the main
app includes in pantry.web.app.

Usage:
    from pantry.web.routes import refresh
    app.include_router(refresh.router)
"""

from pantry.web.routes import catalog, health, refresh

__all__ = ["catalog", "health", "refresh"]
