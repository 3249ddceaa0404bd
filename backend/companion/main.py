"""
FastAPI entry point for the S3 multipart companion
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from companion.config.base import settings
from companion.exceptions import CompanionError, UpstreamError
from companion.routers.multipart import router as multipart_router
from companion.services.multipart_service import MultipartUploadService
from companion.services.s3_service import BaseObjectStore, S3ObjectStore
from companion.utils.logger import get_logger

logger = get_logger(__name__)

CORS_METHODS = ["GET", "HEAD", "PUT", "PATCH", "POST", "DELETE", "OPTIONS"]


def create_app(store: Optional[BaseObjectStore] = None) -> FastAPI:
    """
    Build the application

    Args:
        store: Object store to use. When omitted, an S3 store is built from
            settings at startup and closed at shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"🚀 Starting {settings.APP_NAME} v{settings.VERSION}")
        owned_store = None
        if getattr(app.state, "upload_service", None) is None:
            owned_store = S3ObjectStore(settings)
            await owned_store.start()
            app.state.upload_service = MultipartUploadService(owned_store)
        try:
            yield
        finally:
            if owned_store is not None:
                await owned_store.close()
                app.state.upload_service = None
            logger.info("🛑 Application shutting down")

    app = FastAPI(
        title=settings.APP_NAME,
        description="Coordinates direct-to-S3 multipart uploads",
        version=settings.VERSION,
        lifespan=lifespan
    )

    if store is not None:
        app.state.upload_service = MultipartUploadService(store)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=False,
        allow_methods=CORS_METHODS,
        allow_headers=["*"],
    )

    @app.exception_handler(CompanionError)
    async def companion_error_handler(request: Request, exc: CompanionError):
        if isinstance(exc, UpstreamError):
            logger.error(f"{request.method} {request.url.path} -> upstream error (code={exc.code})")
        else:
            logger.warning(f"{request.method} {request.url.path} -> {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        detail = errors[0].get("msg", "invalid request") if errors else "invalid request"
        logger.warning(f"{request.method} {request.url.path} -> invalid request: {detail}")
        return JSONResponse(status_code=400, content={"error": f"s3: {detail}"})

    app.include_router(multipart_router, tags=["S3 Multipart"])

    @app.get("/")
    async def root():
        return {"message": settings.APP_NAME, "version": settings.VERSION}

    @app.get("/health")
    async def health_check():
        attached = getattr(app.state, "upload_service", None) is not None
        return {
            "status": "healthy" if attached else "starting",
            "services": {"s3": "available" if attached else "unavailable"}
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.API_HOST, port=settings.API_PORT)
