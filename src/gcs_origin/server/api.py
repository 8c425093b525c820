from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from google.auth.exceptions import GoogleAuthError
from starlette.exceptions import HTTPException as StarletteHTTPException
import uvicorn

from gcs_origin.__about__ import __version__
from gcs_origin.core.errors import OriginError, handle_http_error, handle_origin_error, handle_unexpected_error
from gcs_origin.server.middleware import AccessLogMiddleware, SecurityHeadersMiddleware
from gcs_origin.server.spec import OriginSpec
from gcs_origin.store.base import BlobStoreClient
from gcs_origin.utils import logging
from gcs_origin.utils.config import Settings

logger = logging.get_logger(__name__)


def build_store(settings: Settings) -> BlobStoreClient | None:
    """Connect to the configured bucket.

    Returns ``None`` when the bucket is not configured or the client cannot be
    built; the app still starts and object requests answer with a
    configuration error.
    """
    if not settings.bucket_name:
        logger.error("GCS_BUCKET_NAME environment variable not set")
        return None

    from gcs_origin.store.gcs import GCSBlobStore

    try:
        return GCSBlobStore.connect(settings.bucket_name, project_id=settings.project_id, key_file=settings.key_file)
    except (GoogleAuthError, OSError, ValueError) as exc:
        logger.error("Failed to create storage client", exc_info=exc, extra={"bucket": settings.bucket_name})
        return None


def create_app(settings: Settings | None = None, store: BlobStoreClient | None = None) -> FastAPI:
    """Build the ASGI app.

    ``store`` is injected as-is when given (tests pass a ``MockBlobStore``);
    otherwise a Google Cloud Storage client is built from ``settings``. The
    app owns the store from here on and closes it on shutdown.
    """
    settings = settings or Settings.from_env()
    if store is None:
        store = build_store(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        logger.info(
            "GCS Proxy server starting",
            extra={"environment": settings.environment, "bucket": settings.bucket_name or "NOT_SET"},
        )
        yield
        logger.info("Shutting down server...")
        if store is not None:
            await run_in_threadpool(store.close)
        logger.info("Server shutdown complete")

    app = FastAPI(title="gcs-origin", version=__version__, lifespan=lifespan, docs_url=None, redoc_url=None)
    app.state.settings = settings

    spec = OriginSpec(settings, store)
    spec.setup(app)
    app.state.spec = spec

    app.add_exception_handler(OriginError, handle_origin_error)
    app.add_exception_handler(StarletteHTTPException, handle_http_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=False,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Origin", "Content-Type", "Accept", "Authorization", "If-None-Match", "If-Modified-Since"],
        expose_headers=["ETag", "Last-Modified", "X-GCS-Object", "X-Response-Time"],
    )
    app.add_middleware(AccessLogMiddleware)
    return app


class OriginServer:
    def __init__(self, settings: Settings | None = None, store: BlobStoreClient | None = None) -> None:
        self.settings = settings or Settings.from_env()
        self.app = create_app(self.settings, store=store)
        self._server: uvicorn.Server | None = None

    def config(self) -> uvicorn.Config:
        return uvicorn.Config(
            self.app,
            host=self.settings.host,
            port=self.settings.port,
            log_config=None,
            log_level=self.settings.log_level.lower(),
            access_log=False,
            # In-flight streams get this long after SIGTERM before they are cut off.
            timeout_graceful_shutdown=self.settings.shutdown_grace_period,
        )

    def run(self) -> None:
        self._server = uvicorn.Server(self.config())
        self._server.run()

    def shutdown(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
