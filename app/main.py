import logging

from app.core.config import get_settings
from app.core.errors import FoodShareError
from app.core.logging import configure_logging
from app.core.middleware import RequestIdMiddleware
from app.api.v1.router import v1_router

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
    )

    # Middleware: CORS (the signup function is called cross-origin)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type", settings.request_id_header],
    )
    # Middleware: Request ID
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)

    # domain errors that escape a router
    @app.exception_handler(FoodShareError)
    async def _food_share_error(request: Request, exc: FoodShareError):
        logger.warning(
            "unhandled domain error",
            extra={"path": request.url.path, "error": exc.__class__.__name__},
        )
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    # API v1
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app


app = create_app()
