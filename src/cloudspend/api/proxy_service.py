#!/usr/bin/env python3
"""
Local proxy and data API - FastAPI Backend

Forwards logical Google Cloud API paths to the matching upstream API with the
proxy's own credentials, and serves normalized dashboard data.
"""

import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any

import httpx
import uvicorn
from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..config.settings import CloudConfig, load_config
from ..providers.base import (
    AuthenticationError,
    ProviderName,
    TransportError,
    UnknownEndpointError,
    UnsupportedDataTypeError,
    UnsupportedProviderError,
    UpstreamError,
)
from .models import HealthCheck, ProxyErrorResponse
from .services.cloud_data_service import CloudDataService, create_client

logger = logging.getLogger(__name__)

CREDENTIALS_HINT = (
    "Set clouds.gcp.api_key, clouds.gcp.access_token or clouds.gcp.service_account_key "
    "(e.g. CLOUDSPEND_CLOUDS__GCP__API_KEY) and restart the proxy"
)


def _error_response(status_code: int, error: str, details: str | None = None, hint: str | None = None):
    body = ProxyErrorResponse(error=error, details=details, hint=hint)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


def _error_details(body: Any) -> str | None:
    """Best-effort message from an upstream error body."""
    if body is None:
        return None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return error["message"]
        if isinstance(error, str):
            return error
        return json.dumps(body)
    return str(body)


def create_app(config: CloudConfig | None = None, transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    """
    Create the proxy application.

    The authentication strategy is chosen once here; a malformed service
    account key is logged and leaves the proxy without that credential.

    Args:
        config: Configuration, loaded from the default files when omitted
        transport: Optional httpx transport for upstream requests

    Returns:
        FastAPI application
    """
    config = config or load_config()

    # The proxy always talks to Google directly
    data_service = CloudDataService.from_config(config, transport=transport, direct=True)
    gcp_client = data_service.clients.get(ProviderName.GCP)
    owns_gcp_client = gcp_client is None
    if owns_gcp_client:
        gcp_config = {**config.get_provider_config("gcp"), "proxy_url": None}
        gcp_client = create_client(ProviderName.GCP, gcp_config, transport)

    if gcp_client.auth is None:
        logger.warning("⚠️ GCP: Proxy started without credentials; /api/gcp requests will fail")
    else:
        logger.info(f"🟢 GCP: Proxy authenticating with {gcp_client.auth_method}")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan management"""
        logger.info("Starting cloudspend proxy...")
        yield
        logger.info("Shutting down cloudspend proxy...")
        await data_service.aclose()
        if owns_gcp_client:
            await gcp_client.aclose()

    app = FastAPI(
        title="cloudspend proxy",
        version=__version__,
        description="Google Cloud proxy and normalized spend data API",
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.data_service = data_service
    app.state.gcp_client = gcp_client

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", response_model=HealthCheck)
    async def health():
        """Liveness check"""
        return HealthCheck(
            status="ok",
            timestamp=datetime.now(),
            version=__version__,
            auth_method=gcp_client.auth_method,
        )

    @app.get("/api/gcp/{path:path}")
    async def proxy_gcp(path: str, request: Request):
        """Forward a logical GCP API path upstream and relay the JSON body."""
        if gcp_client.auth is None:
            return _error_response(400, "GCP credentials not configured", hint=CREDENTIALS_HINT)

        # Credentials come from the proxy, never from the caller
        params = {key: value for key, value in request.query_params.items() if key != "key"}

        try:
            data = await gcp_client.fetch(path, params)
        except AuthenticationError as e:
            logger.error(f"❌ GCP: Token exchange failed: {e}")
            return _error_response(401, "GCP authentication failed", details=str(e), hint=CREDENTIALS_HINT)
        except UnknownEndpointError as e:
            logger.warning(f"Rejected unknown GCP endpoint: {path}")
            return _error_response(400, "Unknown API endpoint", details=str(e))
        except UpstreamError as e:
            logger.warning(f"❌ GCP: {path} returned {e.status_code}")
            return _error_response(
                e.status_code,
                f"Upstream request failed with status {e.status_code}",
                details=_error_details(e.body),
            )
        except TransportError as e:
            logger.error(f"❌ GCP: {path} unreachable: {e}")
            return _error_response(502, "Upstream request failed", details=str(e))

        return JSONResponse(content=data)

    @app.get("/api/data/{provider}/{data_type}")
    async def provider_data(
        provider: str,
        data_type: str,
        project_id: str | None = Query(None, description="Project or resource group"),
        resource_type: str | None = Query(None, description="compute, storage or database"),
        resource_id: str | None = Query(None),
        zone: str | None = Query(None),
    ):
        """Normalized data for the dashboard, tagged with its source."""
        params = {
            "project_id": project_id,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "zone": zone,
        }
        params = {key: value for key, value in params.items() if value is not None}

        try:
            result = await data_service.fetch_provider_data(provider, data_type, params)
        except (UnsupportedProviderError, UnsupportedDataTypeError) as e:
            raise HTTPException(status_code=404, detail=str(e)) from e

        return result.to_dict()

    @app.get("/")
    async def root():
        """Root endpoint"""
        return {
            "service": "cloudspend proxy",
            "version": __version__,
            "status": "running",
            "endpoints": {
                "health": "/health",
                "gcp": "/api/gcp/{path}",
                "data": "/api/data/{provider}/{data_type}",
                "docs": "/docs",
            },
        }

    return app


def main(host: str | None = None, port: int | None = None, config: CloudConfig | None = None):
    """Run the proxy with uvicorn."""
    logging.basicConfig(
        level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    config = config or load_config()
    app = create_app(config)
    uvicorn.run(app, host=host or config.proxy_host, port=port or config.proxy_port, log_level="info")


if __name__ == "__main__":
    main()
