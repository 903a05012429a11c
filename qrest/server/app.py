# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""FastAPI application factory for the qrest HTTP gateway."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from qrest import __version__
from qrest.catalog.gateway import QueryGateway
from qrest.core.config import Config
from qrest.server.models import HealthResponse
from qrest.server.routes import catalog_router, queries_router

logger = logging.getLogger(__name__)


def create_app(config: Config, gateway: Optional[QueryGateway] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        config: Main qrest configuration
        gateway: Pre-built gateway; one is created from config if omitted

    Returns:
        Configured FastAPI application
    """
    if gateway is None:
        gateway = QueryGateway(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Discover all APIs at startup, release HTTP clients at shutdown."""
        gateway.load()
        logger.info(f"qrest server started with {len(gateway.capabilities)} tables")
        for name, reason in gateway.failures.items():
            logger.warning(f"API '{name}' unavailable: {reason}")

        yield

        gateway.close()
        logger.info("qrest server stopped")

    app = FastAPI(
        title="qrest",
        description="SQL gateway over REST APIs described by OpenAPI documents",
        version=__version__,
        lifespan=lifespan,
    )

    app.state.config = config
    app.state.gateway = gateway

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.server.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """Report malformed request bodies in the query response shape."""
        logger.warning(f"Invalid request to {request.url.path}: {exc.errors()}")
        return JSONResponse(
            status_code=400,
            content={"data": [], "total": 0, "error": f"Invalid request: {exc.errors()}"},
        )

    @app.get("/health", response_model=HealthResponse)
    def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            status="ok" if not gateway.failures else "degraded",
            tables=len(gateway.capabilities),
            failed_apis=dict(gateway.failures),
        )

    app.include_router(queries_router, tags=["queries"])
    app.include_router(catalog_router, tags=["catalog"])

    return app
