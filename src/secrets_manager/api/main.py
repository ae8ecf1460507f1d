# Secrets Manager - FastAPI Backend
#
# Local REST API over the vault. Binds to localhost only; every route except
# /api/session and /api/vault/status requires the per-process session token.

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
import structlog
import uvicorn

from .. import __version__
from ..core.exceptions import (
    AlreadyExists,
    InvalidFormat,
    InvalidPassword,
    NoVaultFound,
    NotFound,
    VaultClosed,
    VaultError,
    WrongPassword,
)
from .attachment_routes import router as attachment_router
from .project_routes import router as project_router
from .secret_routes import router as secret_router, trash_router
from .security import get_session_token, initialize_session_token
from . import vault_routes
from .vault_routes import router as vault_router

logger = structlog.get_logger(__name__)

app = FastAPI(
    title="Secrets Manager API",
    description="Local encrypted credential vault",
    version=__version__,
)

app.include_router(vault_router)
app.include_router(secret_router)
app.include_router(trash_router)
app.include_router(project_router)
app.include_router(attachment_router)


# ── Error mapping ────────────────────────────────────────────────────

# Checked in order; subclasses inherit their parent's status
# (AuthenticationFailed -> 401, InvalidSalt -> 400)
_STATUS_BY_ERROR = (
    (AlreadyExists, status.HTTP_409_CONFLICT),
    (NoVaultFound, status.HTTP_404_NOT_FOUND),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (WrongPassword, status.HTTP_401_UNAUTHORIZED),
    (VaultClosed, status.HTTP_423_LOCKED),
    (InvalidFormat, status.HTTP_400_BAD_REQUEST),
    (InvalidPassword, status.HTTP_400_BAD_REQUEST),
)


def status_for_error(exc: VaultError) -> int:
    for error_cls, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            return code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(VaultError)
async def vault_error_handler(request: Request, exc: VaultError):
    code = status_for_error(exc)
    if code >= 500:
        logger.error("request_failed", path=request.url.path, error=type(exc).__name__)
    return JSONResponse({"detail": str(exc)}, status_code=code)


# ── Startup/shutdown ─────────────────────────────────────────────────


@app.on_event("startup")
async def startup_event():
    """Generate the session token for this server instance."""
    initialize_session_token()
    logger.info("api_started", version=__version__)


@app.on_event("shutdown")
async def shutdown_event():
    """Lock the vault so the key does not outlive the server."""
    if vault_routes._vault_manager is not None:
        vault_routes._vault_manager.lock()
    logger.info("api_stopped")


@app.get("/api/session")
async def get_session():
    """
    Return the session token for this server instance.

    Unprotected: the local frontend calls it once on load and sends the
    token in X-Session-Token afterwards. The token changes on every restart
    and on every setup, unlock and lock.
    """
    return {"session_token": get_session_token()}


@app.get("/api")
async def api_info():
    return {"name": "Secrets Manager API", "version": __version__}


def start_api_server(host: str = "127.0.0.1", port: int = 8000, log_level: str = "info"):
    """
    Start FastAPI server.

    Args:
        host: Host to bind to (default: localhost only)
        port: Port to listen on
    """
    uvicorn.run(app, host=host, port=port, log_level=log_level.lower())
