from .locations_api import router as locations_api_router
from .tools_api import router as tools_api_router
from .uploads import router as uploads_router

ALL_ROUTERS = (
    locations_api_router,
    tools_api_router,
    uploads_router,
)
