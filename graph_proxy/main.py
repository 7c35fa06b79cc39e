"""
FastAPI Graph Proxy Application Factory
=======================================

Entry point for the pass-through service that sits between browser/mobile
clients and Microsoft Graph.

Architecture:
    Client → Graph Proxy (this service) → Microsoft Graph

Routers:
    - /api/Proxy/*  : Authenticated pass-through to Graph
    - /health       : Health check endpoint

Environment Variables Required:
    - AZURE_TENANT_ID: Microsoft Entra ID tenant ID
    - AZURE_CLIENT_ID: Application (client) ID of this web API
    - AZURE_CLIENT_SECRET: Client secret used for the on-behalf-of exchange
    - GRAPH_BASE_URL: Graph base URL (default: https://graph.microsoft.com/v1.0)
    - GRAPH_SCOPES: Space-separated Graph scopes
    - ALLOWED_ORIGINS: Comma-separated CORS origins
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn graph_proxy.main:create_app --factory --reload --host 0.0.0.0 --port 8080

    Production:
        uvicorn graph_proxy.main:create_app --factory --host 0.0.0.0 --port 8080 --workers 4
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from graph_proxy import __version__
from graph_proxy.auth.tokens import MsalTokenProvider, TokenAcquisitionError
from graph_proxy.config import Settings, get_settings, validate_configuration
from graph_proxy.proxy.forwarder import ForwardingHandler
from graph_proxy.proxy.routes import proxy_router
from graph_proxy.proxy.upstream import GraphClient

SERVICE_NAME = "graph-proxy"
SERVICE_VERSION = __version__


# Configure structured JSON logging
def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging for the application.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format='{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "function": "%(funcName)s"}',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


class AppState:
    """
    Application state container.

    Holds the collaborators shared by all requests: the upstream client and
    the forwarding handler built around it.
    """
    def __init__(self):
        self.settings: Optional[Settings] = None
        self.graph_client: Optional[GraphClient] = None
        self.forwarding_handler: Optional[ForwardingHandler] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup tasks:
        - Load and validate configuration
        - Create the MSAL token provider and the Graph HTTP client
        - Build the forwarding handler

    Shutdown tasks:
        - Close the Graph HTTP client
    """
    app_state: AppState = app.state.app_state
    settings = app_state.settings or get_settings()
    app_state.settings = settings

    setup_logging(settings.LOG_LEVEL)
    logger = logging.getLogger("graph_proxy.main")

    report = validate_configuration(settings)
    for warning in report["warnings"]:
        logger.warning(warning)
    for error in report["errors"]:
        logger.error(error)

    logger.info(
        "Starting graph proxy service",
        extra={
            "graph_base_url": settings.graph_base_url_str,
            "log_level": settings.LOG_LEVEL
        }
    )

    app_state.graph_client = GraphClient.from_settings(settings)
    app_state.forwarding_handler = ForwardingHandler(
        token_provider=MsalTokenProvider.from_settings(settings),
        upstream=app_state.graph_client,
        scopes=settings.graph_scopes_list,
    )
    logger.info("Initialized Graph client and forwarding handler")

    yield

    logger.info("Shutting down graph proxy service")

    if app_state.graph_client:
        await app_state.graph_client.aclose()
        logger.info("Closed Graph HTTP client")

    app_state.forwarding_handler = None
    app_state.graph_client = None

    logger.info("Graph proxy service shutdown complete")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application instance with:
        - Lifespan management
        - CORS middleware
        - Route handlers
        - Exception handlers

    Args:
        settings: Explicit settings (defaults to environment-loaded settings)

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Graph Proxy",
        description="Authenticated pass-through proxy to Microsoft Graph",
        version=SERVICE_VERSION,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app_state = AppState()
    app_state.settings = settings
    app.state.app_state = app_state

    origins = settings.allowed_origins_list
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
            allow_headers=["*"],
            expose_headers=["*"]
        )

    app.include_router(proxy_router, tags=["Graph Proxy"])

    @app.get("/health", tags=["System"])
    async def health_check() -> Dict[str, str]:
        """Service status and basic metadata."""
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION
        }

    @app.get("/", tags=["System"])
    async def root() -> Dict[str, Any]:
        return {
            "service": SERVICE_NAME,
            "version": SERVICE_VERSION,
            "description": "Authenticated pass-through proxy to Microsoft Graph",
            "endpoints": {
                "health": "/health",
                "docs": "/docs",
                "proxy": "/api/Proxy/{path}"
            }
        }

    @app.exception_handler(TokenAcquisitionError)
    async def token_acquisition_exception_handler(
        request: Request, exc: TokenAcquisitionError
    ) -> JSONResponse:
        """
        Token acquisition failures surface as a 500 with the MSAL error code.
        """
        logger = logging.getLogger("graph_proxy.main")
        logger.error(
            f"Token acquisition failed: {exc.error}",
            extra={
                "path": request.url.path,
                "method": request.method,
            }
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": "token_acquisition_failed",
                "message": "Could not acquire an access token for the upstream API",
                "detail": exc.error
            }
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a standardized error response.
        """
        logger = logging.getLogger("graph_proxy.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )

        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred",
                "detail": str(exc) if settings.LOG_LEVEL == "DEBUG" else None
            }
        )

    return app


if __name__ == "__main__":
    settings = get_settings()

    uvicorn.run(
        "graph_proxy.main:create_app",
        factory=True,
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level=settings.LOG_LEVEL.lower()
    )
