"""FastAPI app.

Thin transport over the services in the container built by
`lifespan_manager()`. Domain errors map to HTTP status codes here and nowhere
else.
"""

from __future__ import annotations

import asyncio
import json
from dataclasses import asdict
from typing import AsyncIterator

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse

from .domain.errors import (
    AggregateDiscoveryFailure,
    AllSourcesFailedError,
    InvalidCredentialError,
    NetworkError,
    PipelineDomainError,
    PublishError,
    RateLimitError,
    StagingConflictError,
    ValidationError,
)
from .domain.models import (
    AuditProgress,
    DetectionResult,
    PlacementPlan,
    ProductCandidate,
    node_from_dict,
    node_to_dict,
)
from .lifespan import ServiceContainer, app_state
from .models.requests import DetectRequest, DiscoverRequest, PlacementRequest
from .observability.logger import get_logger, log_context
from .utils.validators import validate_manual_url

logger = get_logger(__name__)

app = FastAPI(title="Content Intelligence Service", version="0.1.0")


def status_for(exc: PipelineDomainError) -> int:
    if isinstance(exc, StagingConflictError):
        return 409
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, AllSourcesFailedError):
        return 502
    if isinstance(exc, AggregateDiscoveryFailure):
        return 404
    if isinstance(exc, (PublishError, NetworkError)):
        return 502
    if isinstance(exc, RateLimitError):
        return 429
    if isinstance(exc, InvalidCredentialError):
        return 401
    return 500


def error_body(exc: PipelineDomainError) -> dict:
    body = {"code": exc.info.code, "message": exc.info.message, "detail": exc.info.detail}
    if isinstance(exc, AggregateDiscoveryFailure):
        body["guidance"] = exc.guidance
    return body


@app.exception_handler(PipelineDomainError)
async def domain_error_handler(request: Request, exc: PipelineDomainError) -> JSONResponse:
    logger.warning("request_failed", path=request.url.path, error_code=exc.info.code)
    return JSONResponse(status_code=status_for(exc), content={"error": error_body(exc)})


def _container() -> ServiceContainer:
    container = app_state.get("container")
    if container is None:
        raise HTTPException(status_code=503, detail="service_unavailable")
    return container


def _serialize_event(payload: dict) -> bytes:
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n\n".encode("utf-8")


def detection_to_dict(result: DetectionResult) -> dict:
    return {
        "products": [p.to_dict() for p in result.products],
        "comparison": result.comparison.to_dict() if result.comparison else None,
        "candidateCount": result.candidate_count,
        "verifiedCount": result.verified_count,
        "path": result.path.value,
        "fallbackUsed": result.fallback_used,
        "reason": result.reason.value,
        "message": result.summary(),
    }


def plan_to_dict(plan: PlacementPlan) -> dict:
    return {
        "decisions": [
            {
                "productId": d.product_id,
                "nodeId": d.node_id,
                "position": d.position,
                "score": d.score,
                "hinted": d.hinted,
            }
            for d in plan.decisions
        ],
        "unplaced": list(plan.unplaced),
        "placed": plan.placed,
        "total": plan.total,
        "message": plan.summary(),
    }


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.post("/api/v1/discover")
async def discover_stream(payload: DiscoverRequest) -> StreamingResponse:
    validation = validate_manual_url(payload.url)
    if not validation.is_valid:
        raise ValidationError(validation.error or "Invalid URL", detail=payload.url)

    container = _container()
    scanner = container.new_scanner(payload.concurrency_limit)
    queue: asyncio.Queue = asyncio.Queue()

    def on_progress(p: AuditProgress) -> None:
        queue.put_nowait(
            {"type": "progress", "completed": p.completed, "total": p.total, "percentage": p.percentage}
        )

    async def run() -> None:
        try:
            with log_context(scan_source=validation.normalized_url):
                await scanner.scan(validation.normalized_url, on_progress=on_progress)
            queue.put_nowait(
                {
                    "type": "complete",
                    "status": scanner.status.value,
                    "reason": scanner.reason,
                    "stats": asdict(scanner.stats()),
                    "pages": [p.to_dict() for p in scanner.pages],
                }
            )
        except PipelineDomainError as exc:
            queue.put_nowait(
                {"type": "error", "status": scanner.status.value, "reason": scanner.reason, "error": error_body(exc)}
            )
        finally:
            queue.put_nowait(None)

    async def event_stream() -> AsyncIterator[bytes]:
        task = asyncio.create_task(run())
        try:
            while True:
                item = await queue.get()
                if item is None:
                    break
                yield _serialize_event(item)
            yield b"data: [DONE]\n\n"
        finally:
            if not task.done():
                scanner.cancel()
                task.cancel()

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "X-Accel-Buffering": "no",
        },
    )


@app.post("/api/v1/detect")
async def detect(payload: DetectRequest):
    result = await _container().pipeline.detect(payload.title, payload.html)
    return detection_to_dict(result)


@app.post("/api/v1/placement/plan")
async def placement_plan(payload: PlacementRequest):
    container = _container()
    try:
        nodes = tuple(node_from_dict(n.model_dump()) for n in payload.nodes)
    except (KeyError, ValueError) as e:
        raise ValidationError("Invalid document node", detail=str(e)) from e
    products = [ProductCandidate(**p.model_dump()) for p in payload.products]
    plan = container.placement.plan_auto_populate(nodes, products)
    applied = container.placement.apply_plan(nodes, plan)
    out = plan_to_dict(plan)
    out["nodes"] = [node_to_dict(n) for n in applied]
    return out

