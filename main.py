from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from typing import Optional
from loguru import logger
import os
import sys

from app.config import Settings, get_settings
from app.dependencies import bind_services
from app.services.database import MongoDB
from app.routes import auth, posts
from app.utils.auth import TokenService
from app.utils.errors import AppError

VERSION = "1.0.0"


def configure_logging(settings: Settings) -> None:
    logger.remove()
    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=settings.LOG_LEVEL
    )
    if settings.LOG_FILE:
        logger.add(
            settings.LOG_FILE,
            rotation="500 MB",
            retention="10 days",
            level=settings.LOG_LEVEL
        )


def error_body(message: str, **extra) -> dict:
    return {"success": False, "message": message, **extra}


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info("Starting NEED/HAVE board API...")

    mongo = MongoDB(settings.MONGODB_URL, settings.MONGODB_DB_NAME)
    try:
        await mongo.connect()
        logger.info("✓ MongoDB connected")
    except Exception as e:
        logger.error(f"❌ Startup failed: {e}")
        raise

    app.state.mongo = mongo
    bind_services(app, mongo.get_database(), settings)
    logger.info("✓ NEED/HAVE board API started successfully!")

    yield

    logger.info("Shutting down NEED/HAVE board API...")
    await mongo.disconnect()
    logger.info("✓ MongoDB disconnected")


def register_exception_handlers(app: FastAPI) -> None:

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            {
                "field": ".".join(str(part) for part in error["loc"] if part not in ("body", "query", "path")),
                "message": error["msg"]
            }
            for error in exc.errors()
        ]
        return JSONResponse(status_code=400, content=error_body("Validation failed", errors=errors))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        message = "Route not found" if exc.status_code == 404 else str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(message),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content=error_body("Rate limit exceeded. Try again later.")
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.opt(exception=exc).error(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(status_code=500, content=error_body("Internal server error"))


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="NEED/HAVE Board",
        description="Classifieds board for NEED and HAVE listings with JWT authentication",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc"
    )

    app.state.settings = settings
    # Built eagerly so a missing secret stops the process before it serves
    app.state.token_service = TokenService(
        secret_key=settings.JWT_SECRET_KEY,
        algorithm=settings.JWT_ALGORITHM,
        expire_minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES
    )
    app.state.limiter = Limiter(
        key_func=get_remote_address,
        enabled=settings.RATE_LIMIT_ENABLED
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_exception_handlers(app)

    app.include_router(auth.router)
    app.include_router(posts.build_router(app.state.limiter, settings))

    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    app.mount(
        settings.UPLOAD_URL_PREFIX,
        StaticFiles(directory=settings.UPLOAD_DIR),
        name="uploads"
    )

    @app.get("/")
    async def root():
        return {
            "name": "NEED/HAVE Board",
            "version": VERSION,
            "status": "running",
            "endpoints": {
                "auth": "/api/auth",
                "posts": "/api/posts",
                "uploads": settings.UPLOAD_URL_PREFIX,
                "docs": "/api/docs"
            }
        }

    @app.get("/health")
    async def health_check():
        health_status = {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": VERSION
        }

        mongo: Optional[MongoDB] = getattr(app.state, "mongo", None)
        try:
            if mongo is None or not await mongo.ping():
                raise RuntimeError("not connected")
            health_status["mongodb"] = "connected"
        except Exception as e:
            logger.warning(f"Health check: MongoDB unavailable: {e}")
            health_status["mongodb"] = "unavailable"
            health_status["status"] = "degraded"

        return health_status

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info"
    )
