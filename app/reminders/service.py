import logging
import sys

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api import router as reminders_router
from .config import settings
from .errors import (
    AuthorizationError,
    ConfigurationError,
    DirectoryQueryError,
    GatewayError,
    MissingTokenError,
    ProfileNotFoundError,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)

# Exception type -> (status code, expose message)
ERROR_STATUS = (
    (AuthorizationError, 401, False),
    (ProfileNotFoundError, 404, True),
    (MissingTokenError, 412, True),
    (ConfigurationError, 500, True),
    (DirectoryQueryError, 500, True),
    (GatewayError, 500, True),
)


def _register_error_handlers(app: FastAPI) -> None:
    for exc_type, status_code, expose in ERROR_STATUS:
        async def handler(request: Request, exc: Exception, status_code=status_code, expose=expose):
            if status_code >= 500:
                logger.error("❌ [Trigger] %s %s failed: %r", request.method, request.url.path, exc)
            detail = str(exc) if expose else "Unauthorized"
            return JSONResponse(status_code=status_code, content={"error": detail})

        app.add_exception_handler(exc_type, handler)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        detail = "Method not allowed" if exc.status_code == 405 else exc.detail
        return JSONResponse(status_code=exc.status_code, content={"error": detail}, headers=getattr(exc, "headers", None))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("❌ [Trigger] %s %s crashed", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"error": str(exc) or exc.__class__.__name__})


def create_app() -> FastAPI:
    app = FastAPI(title="NutriTrack Reminder Service")
    app.include_router(reminders_router, prefix="/api", tags=["reminders"])
    _register_error_handlers(app)
    if settings.METRICS_ENABLED:
        Instrumentator().instrument(app).expose(app, endpoint="/metrics")
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=settings.SERVICE_HOST, port=settings.SERVICE_PORT)
