"""FastAPI application entry point for the SigmaGPT chat API."""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from sigmagpt import __version__
from sigmagpt.api.auth import router as auth_router
from sigmagpt.api.routes.chat import router as chat_router
from sigmagpt.api.routes.threads import router as threads_router
from sigmagpt.api.routes.voice import router as voice_router
from sigmagpt.config import settings
from sigmagpt.database import init_db
from sigmagpt.services.voice_service import upload_dir

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="[%(asctime)s] %(levelname)s %(name)s - %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables on startup; a failure is logged and the app still starts."""
    try:
        init_db()
    except SQLAlchemyError as e:
        logger.error(f"Database init skipped: {e}")

    yield


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title="SigmaGPT API",
        description="Authenticated chat threads backed by the OpenAI API",
        version=__version__,
        lifespan=lifespan,
    )

    # Cookies need credentials, so origins are listed explicitly
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    def health_check():
        """Health check endpoint."""
        return {"status": "ok"}

    app.include_router(auth_router)
    app.include_router(chat_router)
    app.include_router(threads_router)
    app.include_router(voice_router)

    # Synthesized speech for /api/voice
    app.mount("/uploads", StaticFiles(directory=upload_dir()), name="uploads")

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Malformed request bodies are client errors, reported as 400."""
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": "Invalid request", "errors": jsonable_errors(exc)},
        )

    @app.exception_handler(SQLAlchemyError)
    async def database_exception_handler(request: Request, exc: SQLAlchemyError):
        """Store failures never reach the client in detail."""
        logger.exception("Database error on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle unhandled exceptions with a generic error response."""
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Internal server error"},
        )

    return app


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


app = create_app()


def run() -> None:
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("sigmagpt.main:app", host="0.0.0.0", port=settings.PORT)
