"""
FastAPI Front Door Application Factory
======================================

Entry point for the authentication front door that sits between browsers
and organization-scoped applications.

Architecture:
    Browser → Front door (this service) → Identity Authority (Stytch B2B)

Routers:
    - /, /magic-links/*, /authenticate, /organizations/*, /orgs/*, /logout
                    : Authentication flows (see frontdoor.auth.routes)
    - /health       : Health check endpoint

Environment Variables Required:
    - STYTCH_PROJECT_ID: Authority project identifier
    - STYTCH_SECRET: Authority project secret
    - SESSION_COOKIE_SECRET: Secret for signing the browser session cookie
    - PORT: Listening port (default: 3000)
    - LOG_LEVEL: Logging level (default: INFO)

Running the Service:
    Development:
        uvicorn frontdoor.main:create_app --factory --reload --port 3000

    Installed script:
        frontdoor
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from . import __version__
from .auth import auth_router
from .auth.flow import AuthFlowController
from .auth.routes import set_browser_cookie
from .auth.store import InMemorySessionStore, SessionStore
from .authority import AuthorityClient
from .config import Settings, get_settings, log_configuration
from .errors import FrontDoorError
from .models import ErrorResponse, HealthResponse


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

    Holds the shared authority client, session store and flow controller.
    """
    def __init__(
        self,
        settings: Settings,
        authority: AuthorityClient,
        store: SessionStore,
        owns_authority: bool,
    ):
        self.settings = settings
        self.authority = authority
        self.store = store
        self.controller = AuthFlowController(authority)
        self.owns_authority = owns_authority


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup: configure logging and report configuration.
    Shutdown: close the authority HTTP client if this app created it.
    """
    app_state: AppState = app.state.app_state
    setup_logging(app_state.settings.LOG_LEVEL)
    logger = logging.getLogger("frontdoor.main")

    log_configuration(app_state.settings, logger)
    logger.info(
        "Front door service started",
        extra={"service": "frontdoor", "version": __version__}
    )

    yield

    logger.info("Shutting down front door service")
    if app_state.owns_authority:
        await app_state.authority.aclose()
        logger.info("Closed identity authority client")


def create_app(
    settings: Optional[Settings] = None,
    authority: Optional[AuthorityClient] = None,
    store: Optional[SessionStore] = None,
) -> FastAPI:
    """
    Application factory function.

    Missing collaborators are built from settings; settings are read from
    the environment when not given, which fails fast without project
    credentials.

    Returns:
        FastAPI: Configured application instance
    """
    settings = settings or get_settings()
    owns_authority = authority is None
    if authority is None:
        authority = AuthorityClient.from_settings(settings)
    if store is None:
        store = InMemorySessionStore(settings.SESSION_INACTIVITY_SECONDS)

    app = FastAPI(
        title="Front Door",
        description="Multi-tenant authentication front door",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.app_state = AppState(settings, authority, store, owns_authority)

    app.include_router(auth_router)

    @app.get("/health", tags=["System"], response_model=HealthResponse)
    async def health_check() -> HealthResponse:
        return HealthResponse(status="ok", service="frontdoor")

    @app.exception_handler(FrontDoorError)
    async def front_door_error_handler(request: Request, exc: FrontDoorError) -> JSONResponse:
        """
        Render flow errors.

        Authority failures were already logged with the authority's payload;
        the client only sees the opaque message.
        """
        logger = logging.getLogger("frontdoor.main")
        logger.info(
            f"Request failed: {exc.error}",
            extra={"path": request.url.path, "status_code": exc.status_code}
        )
        body = ErrorResponse(error=exc.error, message=exc.message)
        response = JSONResponse(status_code=exc.status_code, content=body.model_dump(mode="json"))

        browser_id = getattr(request.state, "browser_id", None)
        if browser_id is not None:
            set_browser_cookie(response, browser_id, app.state.app_state.settings)
        return response

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """
        Global exception handler for unhandled errors.

        Logs the error and returns a standardized error response.
        """
        logger = logging.getLogger("frontdoor.main")
        logger.error(
            f"Unhandled exception: {str(exc)}",
            extra={
                "path": request.url.path,
                "method": request.method,
                "exception_type": type(exc).__name__
            },
            exc_info=True
        )
        body = ErrorResponse(error="internal_server_error", message="An unexpected error occurred")
        return JSONResponse(status_code=500, content=body.model_dump(mode="json"))

    return app


def run() -> None:
    """
    Direct execution entry point.

    Loads settings (failing fast when credentials are missing) and serves
    the app with uvicorn.
    """
    settings = get_settings()
    setup_logging(settings.LOG_LEVEL)
    logging.getLogger("frontdoor.main").warning(
        "Using the in-memory session store: sessions are per-process and lost on restart"
    )

    uvicorn.run(
        create_app(settings),
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower()
    )


if __name__ == "__main__":
    run()
