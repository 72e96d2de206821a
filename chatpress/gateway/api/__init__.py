from chatpress.gateway.api.feeds import router as feeds_router
from chatpress.gateway.api.site import router as site_router

__all__ = ["routers"]
routers = [site_router, feeds_router]
