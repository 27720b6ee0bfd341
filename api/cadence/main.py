from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging
import traceback
from cadence import __version__
from cadence.core.config import settings
from cadence.core.database import init_db
from cadence.core.exceptions import (
    CadenceException,
    ValidationError,
    NotFoundError,
    ConflictError,
    AuthorizationError,
    StatsInvariantError,
)

# Import models to register them with SQLModel
from cadence import models  # noqa: F401

# Import API router
from cadence.api.v1 import api_router

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

logger = logging.getLogger(__name__)

# Checked in order; the first matching class decides the status code
EXCEPTION_STATUS_CODES = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
)


def status_code_for(exc: CadenceException) -> int:
    for exc_type, status_code in EXCEPTION_STATUS_CODES:
        if isinstance(exc, exc_type):
            return status_code
    return status.HTTP_500_INTERNAL_SERVER_ERROR


app = FastAPI(title="Cadence API", version=__version__)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Reject malformed requests with the field errors."""
    errors = exc.errors()
    logger.warning(f"Rejected {request.method} {request.url.path}: {len(errors)} validation error(s)")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": errors},
    )


@app.exception_handler(CadenceException)
async def cadence_exception_handler(request: Request, exc: CadenceException):
    """Map service-layer errors to HTTP responses."""
    status_code = status_code_for(exc)
    message = f"{type(exc).__name__} on {request.method} {request.url.path}: {exc}"
    if isinstance(exc, StatsInvariantError):
        # Counters drifted: a bug, not a client error
        logger.error(message)
    else:
        logger.warning(message)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "type": type(exc).__name__},
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.method} {request.url.path}", exc_info=exc)

    content = {
        "detail": "An internal server error occurred. Please try again later.",
        "type": "InternalServerError",
    }
    if settings.is_development:
        content = {
            "detail": str(exc),
            "type": type(exc).__name__,
            "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__)),
        }
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def startup_event():
    init_db()
    logger.info(f"Cadence API {__version__} started ({settings.environment})")


@app.get("/")
async def root():
    return {
        "message": "Cadence API",
        "version": __version__,
        "status": "running",
        "api": settings.api_v1_prefix,
    }


@app.get("/health")
async def health():
    return {"status": "healthy"}


app.include_router(api_router, prefix=settings.api_v1_prefix)
