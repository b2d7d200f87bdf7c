"""HTTP route definitions for the service."""

from __future__ import annotations

import logging
from typing import List, Union

from fastapi import APIRouter, Body, Depends, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from app.schemas import DispatchItem, DispatchOutcome
from services.dispatcher import DispatchEngine, build_default_engine, new_cancel_token
from services.sinks import HttpSink

LOGGER = logging.getLogger(__name__)

router = APIRouter()


def get_engine() -> DispatchEngine:
    return build_default_engine()


@router.post(
    "/dispatch",
    response_model=List[DispatchOutcome],
    summary="Push a config payload to one device or a batch of devices.",
    responses={
        status.HTTP_207_MULTI_STATUS: {"description": "Some devices failed."},
        status.HTTP_400_BAD_REQUEST: {"description": "Every device failed on caller input."},
        status.HTTP_500_INTERNAL_SERVER_ERROR: {"description": "Every device failed."},
    },
)
async def dispatch_config(
    body: Union[List[DispatchItem], DispatchItem] = Body(
        ..., description="A single dispatch item or an array of them."
    ),
    engine: DispatchEngine = Depends(get_engine),
) -> JSONResponse:
    items = body if isinstance(body, list) else [body]
    requests = [item.to_domain() for item in items]
    token = new_cancel_token()
    results = await run_in_threadpool(engine.dispatch_many, requests, token)
    report = HttpSink().emit(results)
    LOGGER.info(
        "Handled dispatch request",
        extra={"request_count": len(requests), "status": report.status_code},
    )
    return JSONResponse(status_code=report.status_code, content=report.body)


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "POST /dispatch to push device configs."}
