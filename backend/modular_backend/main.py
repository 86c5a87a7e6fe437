"""FastAPI application entrypoint.

`create_app` discovers and initialises every module package (see
`bootstrap`), then builds the FastAPI application around the resulting
service provider:

- a request middleware opens a request scope carrying the database
  session, the caller's claims and tenant, tags every response with an
  ``X-Request-ID`` and records operations against the session named by
  ``X-Session-Id``;
- the routers contributed by module controllers are mounted;
- unhandled errors return 500, with details only where the environment
  allows detailed errors.
"""

import json
import logging
import time
import uuid
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from . import database
from .auth import claims_from_request
from .bootstrap import build_host, request_scope
from .config import Settings, settings
from .modules.base.claims import TENANT
from .modules.sys.application import SESSION_ID_ITEM, SessionService
from .modules.sys.services import EnvironmentService

logger = logging.getLogger("modular_backend.api")


def _parse_uuid(value) -> Optional[uuid.UUID]:
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def _tenant_id(request: Request, claims: Optional[dict]) -> Optional[uuid.UUID]:
    from_claims = _parse_uuid((claims or {}).get(TENANT))
    if from_claims is not None:
        return from_claims
    return _parse_uuid(request.headers.get("X-Tenant-Id"))


def create_app(app_settings: Settings = settings) -> FastAPI:
    """Build the host and the FastAPI application serving it."""
    logging.basicConfig(level=app_settings.LOG_LEVEL)
    host = build_host(app_settings)
    environment = host.provider.resolve(EnvironmentService)
    docs = environment.should_enable_docs()

    app = FastAPI(
        title=app_settings.APP_NAME,
        version=app_settings.APP_VERSION,
        docs_url="/docs" if docs else None,
        redoc_url="/redoc" if docs else None,
        openapi_url="/openapi.json" if docs else None,
    )
    app.state.host = host

    if app_settings.ALLOW_DEV_CORS:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    for router in host.bag.routers:
        app.include_router(router)

    def track_session(session_id: uuid.UUID, request: Request, status_code: int, elapsed_ms: float) -> None:
        try:
            tracked = host.provider.resolve(SessionService).track(
                session_id, request.method, request.url.path, status_code, elapsed_ms
            )
        except SQLAlchemyError:
            logger.exception("session_tracking_failed session=%s", session_id)
            return
        if not tracked:
            logger.debug("session_unknown session=%s", session_id)

    @app.middleware("http")
    async def request_context_middleware(request: Request, call_next):
        req_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
        request.state.request_id = req_id
        started = time.perf_counter()
        claims = claims_from_request(request)
        session_id = _parse_uuid(request.headers.get("X-Session-Id"))
        response: Response
        with Session(database.engine) as db_session, request_scope(
            request=request,
            db_session=db_session,
            claims=claims,
            tenant_id=_tenant_id(request, claims),
        ) as scope:
            scope.items["request_id"] = req_id
            if session_id is not None:
                scope.items[SESSION_ID_ITEM] = session_id
            try:
                response = await call_next(request)
            except Exception:
                elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
                logger.exception(
                    "request_failed %s",
                    json.dumps(
                        {
                            "request_id": req_id,
                            "path": request.url.path,
                            "method": request.method,
                            "duration_ms": elapsed_ms,
                            "client": request.client.host if request.client else "unknown",
                        },
                        ensure_ascii=True,
                    ),
                )
                raise
            elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
            if session_id is not None:
                await run_in_threadpool(track_session, session_id, request, response.status_code, elapsed_ms)
        response.headers["X-Request-ID"] = req_id
        logger.info(
            "request_done %s",
            json.dumps(
                {
                    "request_id": req_id,
                    "path": request.url.path,
                    "method": request.method,
                    "status_code": response.status_code,
                    "duration_ms": elapsed_ms,
                    "client": request.client.host if request.client else "unknown",
                },
                ensure_ascii=True,
            ),
        )
        return response

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        content = {"detail": "internal server error"}
        if environment.should_expose_detailed_errors():
            content["error"] = f"{type(exc).__name__}: {exc}"
        return JSONResponse(status_code=500, content=content)

    return app


app = create_app()
