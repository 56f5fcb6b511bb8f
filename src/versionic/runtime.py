"""
versionic.runtime  ──  HTTP surface for the versioned ``Books`` entity.

Usage pattern
-------------
    from versionic.runtime import create_app

    app = create_app()          # settings from VERSIONIC_* / .env
    uvicorn.run(app)

Routes map one-to-one onto CatalogService methods; ``validFrom``,
``validTo`` and ``version`` are published as read-only in the OpenAPI
schema.
"""

from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.engine import Engine

from .bootstrap import init_versionic, make_engine
from .clock import Clock
from .config import Settings
from .core.record import Book
from .errors import VersioningError
from .service import CatalogService

logger = logging.getLogger(__name__)

STATUS_BY_CODE = {
    "DUPLICATE_KEY": 409,
    "NOT_FOUND": 404,
    "CONCURRENT_MODIFICATION": 409,
    "CLOCK_SKEW": 503,
    "PROTECTED_FIELD": 400,
    "UNKNOWN_FIELD": 400,
}


def create_app(
    settings: Settings | None = None,
    *,
    engine: Engine | None = None,
    clock: Clock | None = None,
    service: CatalogService | None = None,
    **fastapi_kwargs: Any,
) -> FastAPI:
    """
    One-liner for web apps:
        app = create_app(Settings(database_url=URL))
    """
    settings = settings or Settings()
    if service is None:
        service = init_versionic(engine or make_engine(settings), settings, clock=clock)

    fastapi_kwargs.setdefault("title", "versionic")
    app = FastAPI(**fastapi_kwargs)
    app.state.service = service

    # ---- error mapping ---------------------------------------------------
    @app.exception_handler(VersioningError)
    async def versioning_error(request: Request, exc: VersioningError) -> JSONResponse:
        status = STATUS_BY_CODE.get(exc.code, 400)
        logger.info("%s %s -> %d %s", request.method, request.url.path, status, exc.code)
        return JSONResponse(status_code=status, content={"error": jsonable_encoder(exc.to_dict())})

    @app.exception_handler(ValidationError)
    async def validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        body = {
            "code": "INVALID_PAYLOAD",
            "message": f"{exc.error_count()} invalid field(s)",
            "retryable": False,
            "errors": exc.errors(include_url=False),
        }
        return JSONResponse(status_code=422, content={"error": jsonable_encoder(body)})

    # ---- routes ----------------------------------------------------------
    @app.get("/health")
    def health() -> Dict[str, str]:
        return {"status": "running"}

    @app.get("/Books", response_model=List[Book])
    def list_books(title: Optional[str] = None, stock: Optional[int] = None):
        filters = {k: v for k, v in (("title", title), ("stock", stock)) if v is not None}
        return service.list(**filters)

    @app.post("/Books", response_model=Book, status_code=201)
    def create_book(payload: Dict[str, Any] = Body(...)):
        return service.handle_create(payload)

    @app.get("/Books/{book_id}", response_model=Book)
    def read_book(book_id: int):
        return service.read(book_id)

    @app.patch("/Books/{book_id}", response_model=Book)
    def update_book(book_id: int, payload: Dict[str, Any] = Body(...)):
        return service.handle_update(book_id, payload)

    @app.delete("/Books/{book_id}", status_code=204)
    def delete_book(book_id: int) -> Response:
        service.handle_delete(book_id)
        return Response(status_code=204)

    @app.get("/Books/{book_id}/asOf", response_model=Book)
    def book_as_of(book_id: int, at: dt.datetime):
        return service.as_of(book_id, at)

    # ---- audit (read-only) -----------------------------------------------
    @app.get("/Books/{book_id}/history", response_model=List[Book])
    def book_history(book_id: int):
        return service.history(book_id)

    @app.get("/history/Books", response_model=List[Book])
    def all_history():
        return service.history()

    return app
