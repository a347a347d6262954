"""Item API server guarded by the signed-request gate."""

import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from itemgate.common.auth import AuthGateMiddleware, build_gates
from itemgate.common.errors import (
    ErrorCode,
    FatalConfigError,
    ItemNotFoundError,
    ItemValidationError,
    error_response,
)
from itemgate.common.http import RequestContextMiddleware, parse_request_body
from itemgate.common.logging import get_logger, setup_logging
from itemgate.common.metrics import MetricsMiddleware, metrics_endpoint, record_item_operation
from itemgate.common.settings import Settings, get_settings
from itemgate.items.repository import ItemRepository, create_repository, validate_name

logger = get_logger(__name__)


def _not_found() -> JSONResponse:
    return error_response(ErrorCode.NOT_FOUND, "Item not found", status_code=404)


def _not_ready() -> JSONResponse:
    return error_response(
        ErrorCode.SERVER_NOT_READY,
        "Repository not initialized",
        status_code=503,
    )


class ItemServer:
    """HTTP handlers for the item resource."""

    def __init__(self, settings: Settings, repository: ItemRepository | None = None):
        """Initialize server."""
        self._settings = settings
        self._repo = repository

    async def startup(self) -> None:
        """Open the item store."""
        if self._repo is None:
            self._repo = create_repository(self._settings)
        logger.info(
            "Item server ready",
            storage=self._settings.item_storage,
            auth_mode=self._settings.auth_mode,
            signature_scheme=self._settings.signature_scheme,
            method_policy=self._settings.method_policy,
        )

    async def shutdown(self) -> None:
        """Close the item store."""
        close = getattr(self._repo, "close", None)
        if close is not None:
            close()

    @staticmethod
    def _item_id(request: Request) -> int | None:
        value = request.path_params["item_id"]
        if not (value.isascii() and value.isdigit()):
            return None
        return int(value)

    @staticmethod
    async def _payload(request: Request) -> dict[str, Any] | None:
        try:
            payload = await parse_request_body(request)
        except ValueError:
            return None
        return payload if isinstance(payload, dict) else {}

    # === HTTP Handlers ===

    async def handle_list_items(self, _request: Request) -> JSONResponse:
        """GET /items"""
        repo = self._repo
        if repo is None:
            return _not_ready()
        items = await repo.find_all()
        record_item_operation("find_all", "ok")
        return JSONResponse(items)

    async def handle_get_item(self, request: Request) -> JSONResponse:
        """GET /items/{id}"""
        repo = self._repo
        if repo is None:
            return _not_ready()
        item_id = self._item_id(request)
        if item_id is None:
            return _not_found()
        try:
            item = await repo.find_by_id(item_id)
        except ItemNotFoundError:
            record_item_operation("find_by_id", "not_found")
            return _not_found()
        record_item_operation("find_by_id", "ok")
        return JSONResponse(item)

    async def handle_create_item(self, request: Request) -> JSONResponse:
        """POST /items"""
        repo = self._repo
        if repo is None:
            return _not_ready()
        payload = await self._payload(request)
        if payload is None:
            return error_response(ErrorCode.BAD_REQUEST, "Invalid request body", status_code=400)
        try:
            item = await repo.create(payload.get("name"))
        except ItemValidationError as exc:
            record_item_operation("create", "invalid")
            return error_response(ErrorCode.VALIDATION_FAILED, str(exc), status_code=400)
        record_item_operation("create", "ok")
        logger.info("Item created", item_id=item["id"])
        return JSONResponse(item, status_code=201)

    async def handle_update_item(self, request: Request) -> JSONResponse:
        """PUT /items/{id}"""
        repo = self._repo
        if repo is None:
            return _not_ready()
        payload = await self._payload(request)
        if payload is None:
            return error_response(ErrorCode.BAD_REQUEST, "Invalid request body", status_code=400)
        item_id = self._item_id(request)
        try:
            # Name is validated before the id lookup.
            name = validate_name(payload.get("name"), "Item name is required for update")
            if item_id is None:
                raise ItemNotFoundError(request.path_params["item_id"])
            item = await repo.update(item_id, name)
        except ItemValidationError as exc:
            record_item_operation("update", "invalid")
            return error_response(ErrorCode.VALIDATION_FAILED, str(exc), status_code=400)
        except ItemNotFoundError:
            record_item_operation("update", "not_found")
            return _not_found()
        record_item_operation("update", "ok")
        logger.info("Item updated", item_id=item_id)
        return JSONResponse(item)

    async def handle_delete_item(self, request: Request) -> JSONResponse:
        """DELETE /items/{id}"""
        repo = self._repo
        if repo is None:
            return _not_ready()
        item_id = self._item_id(request)
        if item_id is None:
            return _not_found()
        try:
            item = await repo.delete(item_id)
        except ItemNotFoundError:
            record_item_operation("delete", "not_found")
            return _not_found()
        record_item_operation("delete", "ok")
        logger.info("Item deleted", item_id=item_id)
        return JSONResponse(
            {
                "message": f"Item with ID {item_id} deleted successfully",
                "deletedItem": item,
            }
        )

    async def handle_health(self, _request: Request) -> JSONResponse:
        """Health check."""
        return JSONResponse({"status": "healthy"})


def create_app(
    settings: Settings | None = None,
    repository: ItemRepository | None = None,
) -> Starlette:
    """Create the Starlette application.

    Raises:
        FatalConfigError: If the configured auth mode has no credentials.
    """
    settings = settings or get_settings()
    gates = build_gates(settings)
    server = ItemServer(settings, repository)

    @asynccontextmanager
    async def lifespan(_app: Starlette) -> AsyncIterator[None]:
        await server.startup()
        yield
        await server.shutdown()

    base = settings.protected_path
    routes = [
        Route(base, server.handle_list_items, methods=["GET"]),
        Route(f"{base}/", server.handle_list_items, methods=["GET"]),
        Route(base, server.handle_create_item, methods=["POST"]),
        Route(f"{base}/{{item_id}}", server.handle_get_item, methods=["GET"]),
        Route(f"{base}/{{item_id}}", server.handle_update_item, methods=["PUT"]),
        Route(f"{base}/{{item_id}}", server.handle_delete_item, methods=["DELETE"]),
        Route("/health", server.handle_health, methods=["GET"]),
        Route("/metrics", metrics_endpoint, methods=["GET"]),
    ]

    app = Starlette(routes=routes, lifespan=lifespan)

    app.add_middleware(AuthGateMiddleware, settings=settings, gates=gates)
    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        MetricsMiddleware,
        exclude_paths=["/health", "/metrics"],
    )

    return app


def main() -> None:
    """Entry point for the item server."""
    settings = get_settings()
    setup_logging(settings.log_level, json_logs=settings.log_json)
    try:
        app = create_app(settings)
    except FatalConfigError as exc:
        logger.error("Refusing to start", error=str(exc))
        sys.exit(1)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
