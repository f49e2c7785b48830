"""HTTP surface: a server-sent event stream per search brief."""

from __future__ import annotations

import logging
import uuid
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, StreamingResponse
from starlette.concurrency import run_in_threadpool

from .config import CascadeConfig
from .errors import BriefError
from .events import RunHandle, format_sse
from .logging_utils import get_logger
from .orchestrator import TierScheduler
from .pipeline import build_scheduler, start_run
from .validation import brief_from_params

STREAM_POLL_SECONDS = 0.25
PRINCIPAL_HEADER = "X-Principal-Id"
ANONYMOUS_PRINCIPAL = "anonymous"


def create_app(
    config: CascadeConfig | None = None,
    *,
    scheduler: TierScheduler | None = None,
    logger: logging.Logger | None = None,
) -> FastAPI:
    """Build the app. Directory files are loaded here, before serving starts."""
    config = config or CascadeConfig.from_env()
    logger = logger or get_logger()
    if scheduler is None:
        scheduler = build_scheduler(config, logger=logger)
    app = FastAPI(title="lead-cascade")

    @app.get("/api/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/agent/lead-stream")
    async def lead_stream(request: Request):
        params = dict(request.query_params)
        try:
            brief = brief_from_params(params)
        except BriefError as exc:
            logger.info("Rejected lead-stream request: %s", exc)
            return JSONResponse(status_code=400, content={"message": str(exc)})

        correlation_id = params.get("correlationId") or uuid.uuid4().hex
        principal = request.headers.get(PRINCIPAL_HEADER) or ANONYMOUS_PRINCIPAL
        logger.info(
            "[LeadStream] %s start: principal=%s types=%s markets=%s depth=%s target=%d",
            correlation_id,
            principal,
            ",".join(brief.contact_types),
            ",".join(brief.markets),
            brief.search_depth.value,
            brief.target_count,
        )
        handle = start_run(scheduler, brief, config=config, principal=principal, logger=logger)

        return StreamingResponse(
            _event_stream(request, handle, correlation_id=correlation_id, logger=logger),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Correlation-Id": correlation_id,
            },
        )

    return app


async def _event_stream(
    request: Request,
    handle: RunHandle,
    *,
    correlation_id: str,
    logger: logging.Logger,
) -> AsyncIterator[str]:
    finished = False
    try:
        while True:
            if await request.is_disconnected():
                logger.info("[LeadStream] %s client disconnected; cancelling run", correlation_id)
                return
            event = await run_in_threadpool(handle.channel.get, STREAM_POLL_SECONDS)
            if event is None:
                continue
            yield format_sse(event)
            if event.terminal:
                finished = True
                logger.info("[LeadStream] %s finished: %s", correlation_id, event.to_payload()["type"])
                return
    finally:
        if not finished:
            handle.cancel()
