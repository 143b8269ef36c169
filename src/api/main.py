#!/usr/bin/env python3
"""
HTTP API for shared clipboard collections.

Routes map 1:1 onto ``CollectionManager`` / ``CollectionRepository`` calls;
every domain error becomes a status code and an ``{"error", "details"}`` body.
"""

import argparse
import json
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from database.base import KeyValueStore
from database.exceptions import (
    ClipShareError,
    CollectionNotFound,
    ConflictError,
    CorruptedCollection,
    InvalidInput,
    ItemNotFound,
    StoreUnavailable,
)
from models.clipboarditem import NewClipboardItem
from services.collection_service import CollectionManager, CollectionRepository
from services.config import AppConfig

logger = logging.getLogger(__name__)

# status code and summary for each domain error
_ERROR_RESPONSES = {
    InvalidInput: (400, "Invalid request body"),
    CollectionNotFound: (404, "Collection not found"),
    ItemNotFound: (404, "Item not found or already deleted"),
    ConflictError: (409, "Conflict: Collection updated concurrently. Please retry."),
    CorruptedCollection: (500, "Failed to read collection data"),
    StoreUnavailable: (500, "Storage unavailable"),
}


def error_response(exc: ClipShareError) -> JSONResponse:
    status, summary = next(
        (_ERROR_RESPONSES[cls] for cls in type(exc).__mro__ if cls in _ERROR_RESPONSES),
        (500, "Internal server error"),
    )
    return JSONResponse(status_code=status, content={"error": summary, "details": str(exc)})


def get_manager(request: Request) -> CollectionManager:
    return request.app.state.manager


def get_repository(request: Request) -> CollectionRepository:
    return request.app.state.repository


async def parse_new_item(request: Request) -> NewClipboardItem:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidInput(f"Could not parse JSON: {e}") from e
    if not isinstance(payload, dict):
        raise InvalidInput("Request body must be a JSON object")
    try:
        return NewClipboardItem.model_validate(payload)
    except ValidationError as e:
        raise InvalidInput(f"Invalid item data format: {e}") from e


router = APIRouter()


@router.get("/")
def root():
    return "running"


@router.get("/health")
def health(request: Request):
    store: KeyValueStore = request.app.state.store
    try:
        store.ping()
    except StoreUnavailable as e:
        return JSONResponse(status_code=503, content={"status": "unavailable", "details": str(e)})
    return {"status": "healthy"}


@router.post("/collections", status_code=201)
def create_collection(manager: CollectionManager = Depends(get_manager)):
    collection, url = manager.create()
    return {"id": collection.id, "url": url}


@router.get("/collections/{collection_id}")
def get_collection(collection_id: str, manager: CollectionManager = Depends(get_manager)):
    return manager.read(collection_id).to_json_dict()


@router.post("/collections/{collection_id}/items", status_code=201)
def add_item(
    collection_id: str,
    data: NewClipboardItem = Depends(parse_new_item),
    repository: CollectionRepository = Depends(get_repository),
):
    return repository.add_item(collection_id, data).to_json_dict()


@router.delete("/collections/{collection_id}/items/{item_id}")
def delete_item(
    collection_id: str,
    item_id: str,
    repository: CollectionRepository = Depends(get_repository),
):
    repository.delete_item(collection_id, item_id)
    return {"message": "Item deleted successfully"}


# Paths used by the Next.js web front end.
legacy_router = APIRouter(prefix="/api/clip", include_in_schema=False)
legacy_router.add_api_route("/create", create_collection, methods=["POST"], status_code=201)
legacy_router.add_api_route("/{collection_id}", get_collection, methods=["GET"])
legacy_router.add_api_route("/add/{collection_id}", add_item, methods=["POST"], status_code=201)
legacy_router.add_api_route(
    "/delete/{collection_id}/{item_id}", delete_item, methods=["DELETE"])


def create_app(store: Optional[KeyValueStore] = None, config: Optional[AppConfig] = None) -> FastAPI:
    config = config or AppConfig.from_env()
    store = store or config.redis.create_store()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            store.ping()
            logger.info("Store connection established successfully")
        except StoreUnavailable as e:
            logger.error(f"Initial connection test to the store failed: {e}")
        yield
        store.close()

    app = FastAPI(title="ClipShare", lifespan=lifespan)
    app.state.config = config
    app.state.store = store
    app.state.manager = CollectionManager(
        store, base_url=config.base_url, ttl_seconds=config.collection_ttl)
    app.state.repository = CollectionRepository(store)

    @app.exception_handler(ClipShareError)
    async def handle_clipshare_error(request: Request, exc: ClipShareError):
        return error_response(exc)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": str(exc)},
        )

    app.include_router(router)
    app.include_router(legacy_router)
    return app


def parse_args():
    parser = argparse.ArgumentParser(
        description="ClipShare - shared clipboard collections over HTTP"
    )

    parser.add_argument(
        "--host",
        type=str,
        default="0.0.0.0",
        help="Interface to bind (default: 0.0.0.0)"
    )

    parser.add_argument(
        "-p", "--port",
        type=int,
        default=9002,
        help="Port to listen on (default: 9002)"
    )

    parser.add_argument(
        "--reload",
        action="store_true",
        help="Reload on code changes (development)"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose debug logging"
    )

    return parser.parse_args()


def main():
    args = parse_args()
    config = AppConfig.from_env()

    level = logging.DEBUG if args.verbose else getattr(logging, config.log_level, logging.INFO)
    logging.basicConfig(level=level, format='%(levelname)s: %(message)s')

    if args.reload:
        uvicorn.run("api.main:create_app", factory=True, host=args.host,
                    port=args.port, reload=True)
    else:
        uvicorn.run(create_app(config=config), host=args.host, port=args.port)


if __name__ == "__main__":
    main()
