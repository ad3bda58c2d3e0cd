"""HTTP route definitions for the service."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from app.schemas import ErrorResponse, IngestResponse, LevelPayload
from datastore.reading_store import StoreEmptyError, StoreError, StoreInvalidError
from services.ingestion import IngestionService, build_default_service

logger = logging.getLogger(__name__)

router = APIRouter()


def get_service() -> IngestionService:
    return build_default_service()


@router.post(
    "/api",
    response_model=IngestResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Store a level reading and trigger threshold alerting.",
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": LevelPayload.model_json_schema()}},
        }
    },
)
async def save_level(
    request: Request,
    service: IngestionService = Depends(get_service),
) -> IngestResponse:
    # The body is decoded as JSON whatever Content-Type the client sent.
    body = await request.body()
    try:
        payload = LevelPayload.model_validate_json(body)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(), body=body) from exc

    try:
        reading = await run_in_threadpool(service.ingest, payload.level)
    except StoreInvalidError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except StoreError as exc:
        logger.error(
            "Error saving to database: %s", exc, extra={"error_kind": exc.kind}
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to save data",
        ) from exc
    return IngestResponse(message=f"Received and saved: {reading.level:f}")


@router.get(
    "/api/level",
    response_model=float,
    responses={500: {"model": ErrorResponse}},
    summary="Return the most recently stored level.",
)
def get_level(service: IngestionService = Depends(get_service)) -> float:
    try:
        return service.latest_level()
    except StoreEmptyError as exc:
        logger.warning("Error getting level data: %s", exc, extra={"error_kind": exc.kind})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get level data",
        ) from exc
    except StoreError as exc:
        logger.error("Error getting level data: %s", exc, extra={"error_kind": exc.kind})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to get level data",
        ) from exc


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
