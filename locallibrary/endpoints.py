import logging
import time
import traceback

from fastapi import FastAPI, Request, status
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from locallibrary import authors, bookinstances, books, catalog, genres
from locallibrary.config import Config
from locallibrary.database import Store
from locallibrary.rendering import PACKAGE_DIR, render


logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def create_app(config=Config) -> FastAPI:
    """
    Build the catalog application.

    Internal Working:
    1. One Store (engine + session factory) is created and its tables made
    2. The store is kept on app.state; get_store() hands it to handlers
    3. Middleware: gzip, security headers, request logging
    4. HTTP errors and unexpected exceptions render error.html

    Args:
        config: Config class (or subclass) to read settings from

    Returns:
        The configured FastAPI application
    """
    configure_logging(config.LOG_LEVEL)

    app = FastAPI(
        title="Local Library",
        description="Catalog of genres, authors, books and book copies",
        version="1.0.0",
    )
    app.state.config = config
    app.state.store = Store(config.DATABASE_URL)
    app.state.store.create_all()

    app.add_middleware(GZipMiddleware, minimum_size=500)

    content_security_policy = "script-src " + " ".join(config.SCRIPT_SOURCES)

    def add_security_headers(response):
        response.headers.setdefault("Content-Security-Policy", content_security_policy)
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "SAMEORIGIN")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        return response

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        return add_security_headers(await call_next(request))

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """
        Log one line per request.

        Unhandled exceptions are answered by unhandled_error outside this
        middleware, so they are logged here as 500 before being re-raised.
        """
        started = time.perf_counter()
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                "%s %s %d %.1fms",
                request.method,
                request.url.path,
                status_code,
                elapsed_ms,
            )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return render(
            request,
            "error.html",
            status_code=exc.status_code,
            title="Error",
            message=exc.detail,
            status=exc.status_code,
            error=None,
        )

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        """
        Last-resort handler for failures the controllers do not recover.

        The error is logged with its traceback. Its details reach the page
        only in development mode.
        """
        logger.error(
            "Unhandled error on %s %s",
            request.method,
            request.url.path,
            exc_info=(type(exc), exc, exc.__traceback__),
        )
        error = None
        if config.is_development():
            error = "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            )
        response = render(
            request,
            "error.html",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            title="Error",
            message="Internal Server Error",
            status=status.HTTP_500_INTERNAL_SERVER_ERROR,
            error=error,
        )
        # Rendered outside the middleware stack, so the headers are added here.
        return add_security_headers(response)

    @app.get("/health")
    async def health_check():
        """
        Health check endpoint for monitoring and load balancers.

        Returns:
            Simple status message indicating the service is running
        """
        return {"status": "healthy", "service": "locallibrary"}

    app.mount(
        "/static", StaticFiles(directory=str(PACKAGE_DIR / "static")), name="static"
    )

    app.include_router(catalog.router)
    app.include_router(genres.router)
    app.include_router(authors.router)
    app.include_router(books.router)
    app.include_router(bookinstances.router)

    return app


def main() -> None:
    import uvicorn

    uvicorn.run(
        "locallibrary.endpoints:create_app",
        factory=True,
        host=Config.HOST,
        port=Config.PORT,
    )


if __name__ == "__main__":
    main()
