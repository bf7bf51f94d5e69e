"""FastAPI application creation and configuration.

Registers exception handlers, auth middleware, and routes, and owns the
lifecycle of the push machinery.

Collaborators (built once in create_app, stored on app.state):
- session_factory: per-request sessions and dispatch-pass sessions
- token_service: session access/refresh JWTs
- apple_verifier / google_verifier: provider identity token verification
- push_gateway, dispatch_job: scheduled and on-demand sends

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST (add_request_id_middleware) so it runs
  FIRST and every response, including auth failures, gets X-Request-ID

Scheduler Lifecycle:
- When SCHEDULER_ENABLED is true the lifespan starts the push scheduler
  on startup and stops it on shutdown
- Shutdown waits (bounded) for an in-flight dispatch pass before closing
  the push gateway's HTTP client
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException as StarletteHTTPException

from precious.api.routes import create_api_router
from precious.auth.identity import IdentityVerifier, apple_verifier, google_verifier
from precious.auth.middleware import AuthMiddleware
from precious.auth.tokens import SessionTokenService
from precious.config import get_settings
from precious.db.session import get_session_factory
from precious.errors import ApiError
from precious.logging import configure_logging, get_logger
from precious.middleware.request_id import RequestIDMiddleware
from precious.responses import (
    api_error_handler,
    http_exception_handler,
    unhandled_exception_handler,
    validation_exception_handler,
)
from precious.services.dispatch import DispatchJob
from precious.services.messages import MessageBank, default_message_bank
from precious.services.push import PushGateway, build_push_gateway
from precious.services.scheduler import PushScheduler

# Configure structured logging at import time
configure_logging()

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Start the push scheduler (if enabled) and release push resources on exit."""
    settings = get_settings()

    scheduler = None
    if settings.scheduler_enabled:
        scheduler = PushScheduler(app.state.dispatch_job, settings.push_schedule_times)
        scheduler.start()
    else:
        logger.info("push_scheduler_disabled")
    app.state.scheduler = scheduler

    yield

    if scheduler is not None:
        scheduler.stop()
    if not await run_in_threadpool(app.state.dispatch_job.wait_for_idle):
        logger.warning("dispatch_pass_still_running_at_shutdown")
    app.state.push_gateway.close()
    logger.info("push_gateway_closed")


def create_app(
    skip_auth_middleware: bool = False,
    session_factory: sessionmaker[Session] | None = None,
    token_service: SessionTokenService | None = None,
    apple_identity_verifier: IdentityVerifier | None = None,
    google_identity_verifier: IdentityVerifier | None = None,
    push_gateway: PushGateway | None = None,
    message_bank: MessageBank | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Every collaborator can be injected (tests do); omitted ones are built
    from settings.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        session_factory: Session factory for routes and dispatch passes.
        token_service: Session token minting/verification.
        apple_identity_verifier: Verifier for Apple identity tokens.
        google_identity_verifier: Verifier for Google ID tokens.
        push_gateway: Push delivery; FCM or disabled depending on settings.
        message_bank: Message catalog; the shipped catalog by default.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="precious.you API",
        description="Backend API for precious.you - daily motivational push notifications",
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.state.session_factory = session_factory or get_session_factory()
    app.state.token_service = token_service or SessionTokenService.from_settings(settings)
    app.state.apple_verifier = apple_identity_verifier or apple_verifier(
        settings.apple_audience_list
    )
    app.state.google_verifier = google_identity_verifier or google_verifier(
        settings.google_audience_list
    )
    app.state.push_gateway = push_gateway or build_push_gateway(settings)
    app.state.dispatch_job = DispatchJob(
        session_factory=app.state.session_factory,
        message_bank=message_bank or default_message_bank(),
        push_gateway=app.state.push_gateway,
        push_title=settings.push_title,
    )
    app.state.scheduler = None

    app.include_router(create_api_router())

    if not skip_auth_middleware:
        app.add_middleware(AuthMiddleware, verifier=app.state.token_service)
        logger.info("auth_middleware_enabled", env=settings.precious_env.value)

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    This should be called AFTER all other middleware is added, so it runs FIRST.

    Args:
        app: The FastAPI application.
        log_requests: Whether to log access entries for each request.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
    logger.info("request_id_middleware_enabled")
