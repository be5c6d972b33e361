# deposit_escrow/main.py
from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError

from .config import settings
from .errors import EscrowError, ServiceUnavailable
from .logging_config import configure_logging

from .middleware.request_id import RequestIdMiddleware
from .middleware.structured_logging import StructuredLoggingMiddleware

from .routers.health import router as health_router
from .routers.deposits import router as deposits_router
from .routers.inspections import router as inspections_router
from .routers.deductions import router as deductions_router

API_PREFIX = "/api"

log = logging.getLogger("escrow.app")


def _cors_origins() -> list[str]:
    val = getattr(settings, "cors_allow_origins", ["*"])
    if isinstance(val, str):
        v = val.strip()
        return ["*"] if v == "*" else [x.strip() for x in v.split(",") if x.strip()]
    if isinstance(val, list) and val:
        return val
    return ["*"]


async def _escrow_error_handler(request: Request, exc: EscrowError) -> JSONResponse:
    if exc.status_code >= 500:
        log.warning("escrow operation unavailable", extra={"code": exc.code})
    return JSONResponse(status_code=exc.status_code, content=exc.as_dict())


async def _storage_error_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    # OperationalError (locked db, lost connection) is a DBAPIError subclass
    log.error("storage error", extra={"code": "storage_unavailable"}, exc_info=exc)
    err = ServiceUnavailable("storage_unavailable", "Storage is temporarily unavailable; retry later")
    return JSONResponse(status_code=err.status_code, content=err.as_dict())


def create_app() -> FastAPI:
    configure_logging()

    app = FastAPI(
        title="Deposit Escrow",
        version=settings.app_version,
    )

    # Request-ID first (observability baseline)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(StructuredLoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(EscrowError, _escrow_error_handler)
    app.add_exception_handler(DBAPIError, _storage_error_handler)

    app.include_router(health_router, prefix=API_PREFIX)
    app.include_router(deposits_router, prefix=API_PREFIX)
    app.include_router(inspections_router, prefix=API_PREFIX)
    app.include_router(deductions_router, prefix=API_PREFIX)
    return app


app = create_app()
