from contextlib import asynccontextmanager
from typing import Optional
import json
import logging

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from nebula.database import Base, engine, get_db
import nebula.models  # noqa: F401  # registers every table on Base.metadata
from nebula.data.context import PARTICIPANT_HEADER
from nebula.routers import (
    boards,
    export,
    marketplace,
    notes,
    pairwise,
    realtime,
    results,
    stack_ranking,
    survey,
    workspaces,
)
from nebula.services.llm_client import close_llm_client
from nebula.utils.logging_config import setup_logging

logger = logging.getLogger("app")
audit_logger = logging.getLogger("audit")

_WRITE_METHODS = {"POST", "PUT", "PATCH", "DELETE"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    Base.metadata.create_all(bind=engine)
    logger.info("Workshop server ready (tables checked on %s)", engine.url.render_as_string())
    yield
    await close_llm_client()
    logger.info("Workshop server stopping")


app = FastAPI(
    title="Nebula Workshops",
    description="Envisioning workshops: idea capture, prioritization modules and AI results",
    lifespan=lifespan,
)


def _summarize_payload(body: bytes) -> Optional[str]:
    """Flatten a JSON body for the audit log; nested values become type names, keys are masked."""
    if not body:
        return None
    parsed = json.loads(body.decode("utf-8"))
    if not isinstance(parsed, dict):
        return type(parsed).__name__
    summary = {}
    for key, value in parsed.items():
        if "key" in str(key).lower():
            summary[key] = "***"
        elif isinstance(value, (str, int, float, bool, type(None))):
            summary[key] = value
        else:
            summary[key] = type(value).__name__
    return json.dumps(summary, ensure_ascii=True)


async def facilitator_audit_middleware(
    request: Request, call_next: RequestResponseEndpoint
) -> Response:
    """Audit API writes that carry no participant identity, i.e. facilitator actions."""
    path = request.url.path
    is_facilitator_write = (
        request.method.upper() in _WRITE_METHODS
        and path.startswith("/api/")
        and not request.headers.get(PARTICIPANT_HEADER)
    )
    if not is_facilitator_write:
        return await call_next(request)

    payload_summary: Optional[str] = None
    if request.headers.get("content-type", "").lower().startswith("application/json"):
        try:
            payload_summary = _summarize_payload(await request.body())
        except (UnicodeDecodeError, json.JSONDecodeError):
            payload_summary = "unparseable"

    response = await call_next(request)
    audit_logger.info(
        "Facilitator %s %s -> %s payload=%s",
        request.method.upper(),
        path,
        response.status_code,
        payload_summary,
    )
    return response


app.add_middleware(BaseHTTPMiddleware, dispatch=facilitator_audit_middleware)

for module in (
    workspaces,
    notes,
    pairwise,
    stack_ranking,
    marketplace,
    boards,
    survey,
    results,
    export,
    realtime,
):
    app.include_router(module.router)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error. Please check logs."},
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    level = logging.ERROR if exc.status_code >= 500 else logging.INFO
    logger.log(level, "HTTP %s on %s: %s", exc.status_code, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # Only the messages: raw error entries may carry values JSON cannot encode.
    messages = [error["msg"] for error in exc.errors()]
    logger.warning("Validation error on %s: %s", request.url.path, messages)
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": messages},
    )


@app.get("/health", tags=["healthcheck"])
def health_check(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.error("Health check could not reach the database: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Database connection failed: {exc}",
        ) from exc
    return {"status": "ok", "database": "connected"}
