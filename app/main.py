from __future__ import annotations
from contextlib import asynccontextmanager
from typing import AsyncIterator

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.api import router
from datastore.reading_store import build_default_store
from logging_config import configure_logging
from services.ingestion import build_default_service
from services.notifier import build_default_notifier
from settings import get_settings


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    service = build_default_service()
    try:
        yield
    finally:
        service.shutdown()
        build_default_service.cache_clear()
        build_default_store.cache_clear()
        build_default_notifier.cache_clear()


async def invalid_body_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if any(error.get("type") == "json_invalid" for error in errors):
        detail = "Invalid JSON"
    else:
        detail = "; ".join(str(error.get("msg", "invalid value")) for error in errors) or "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": detail})


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Level Monitor",
        description="Level reading ingestion with threshold-based SMS alerting.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(RequestValidationError, invalid_body_handler)
    app.include_router(router)
    return app


def run() -> None:
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


app = create_app()
