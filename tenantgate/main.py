from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

from tenantgate.api.dependencies import to_http_exception
from tenantgate.api.health import router as health_router
from tenantgate.api.me import router as me_router
from tenantgate.api.members import router as members_router
from tenantgate.api.metrics_endpoint import router as metrics_router
from tenantgate.api.orgs import router as orgs_router
from tenantgate.api.super_admin import router as super_admin_router
from tenantgate.core.config import SETTINGS
from tenantgate.core.logging import setup_logging
from tenantgate.db.engine import lifespan_db
from tenantgate.db.redis import lifespan_redis
from tenantgate.middleware.metrics import MetricsMiddleware
from tenantgate.middleware.request_context import RequestContextMiddleware
from tenantgate.services.errors import TenantGateError

setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    async with lifespan_db():
        async with lifespan_redis():
            yield


app = FastAPI(
    title="tenantgate",
    lifespan=lifespan,
    docs_url="/docs" if SETTINGS.is_dev else None,
    redoc_url="/redoc" if SETTINGS.is_dev else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[SETTINGS.app_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Last added runs first: RequestContext -> Metrics -> CORS -> route.
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestContextMiddleware)


@app.exception_handler(TenantGateError)
async def tenantgate_error_handler(request: Request, exc: TenantGateError) -> Response:
    return await http_exception_handler(request, to_http_exception(exc))


app.include_router(metrics_router)
app.include_router(health_router)
app.include_router(me_router)
app.include_router(orgs_router)
app.include_router(members_router)
app.include_router(super_admin_router)

logger.info(
    "tenantgate started  env=%s log_level=%s port=%d docs=%s",
    SETTINGS.app_env,
    SETTINGS.log_level,
    SETTINGS.port,
    "on" if SETTINGS.is_dev else "off",
)
