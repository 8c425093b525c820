from collections.abc import Callable

from fastapi import FastAPI

from gcs_origin.server.origin import OriginApi
from gcs_origin.store.base import BlobStoreClient
from gcs_origin.utils import logging
from gcs_origin.utils.config import Settings

logger = logging.get_logger(__name__)


class OriginSpec(OriginApi):
    def __init__(self, settings: Settings, store: BlobStoreClient | None) -> None:
        super().__init__(settings, store)
        self._endpoints: list[tuple[str, Callable, list[str]]] = []
        self.add_endpoint("/health", self.health, ["GET"])
        # Catch-all last: an object literally named "health" is shadowed by the health endpoint.
        self.add_endpoint("/{path:path}", self.proxy, ["GET"])

    def add_endpoint(self, path: str, endpoint: Callable, methods: list[str]) -> None:
        """Register an endpoint in the spec."""
        self._endpoints.append((path, endpoint, methods))

    @property
    def endpoints(self) -> list[tuple[str, Callable, list[str]]]:
        return self._endpoints.copy()

    def setup(self, app: FastAPI) -> None:
        for path, endpoint, methods in self.endpoints:
            logger.debug("Registering %s %s", methods, path)
            app.add_api_route(path, endpoint, methods=methods)
