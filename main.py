from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from assets import AssetStore
from db import Settings, load_settings
from errors import InventoryError
from inventory import InventoryService
from routers import ALL_ROUTERS
from storage import open_backend

logger = logging.getLogger("app")


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        backend = open_backend(settings)
        app.state.inventory = InventoryService(backend, AssetStore(settings.upload_dir))
        try:
            yield
        finally:
            backend.close()

    app = FastAPI(title="Tool Inventory API", lifespan=lifespan)
    app.state.settings = settings

    @app.exception_handler(InventoryError)
    async def inventory_error_handler(request: Request, exc: InventoryError):
        if exc.status_code >= 500:
            logger.error("method=%s path=%s error=%s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = first.get("msg", "invalid request")
        return JSONResponse(
            status_code=400,
            content={"error": f"{field}: {message}" if field else message},
        )

    for router in ALL_ROUTERS:
        app.include_router(router)

    @app.get("/")
    def root():
        return {"message": "Tool Inventory API", "docs": "/docs"}

    return app


app = create_app()
