import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from .api import auth, catalog, client, owner, profile
from .api.dependencies import close_http_client
from .core.config import settings
from .core.observability import setup_logging, setup_tracer
from .middleware.security_headers import SecurityHeadersMiddleware
from .services.availability import BookingBlockedError
from .services.booking_lifecycle import BookingActionError
from .services.rpc_client import RpcError
from .services.session_client import AuthError
from .services.upload import UploadError
from .utils.errors import recovery_link, rpc_error_response
from .utils.redis_cache import close_redis_client

setup_logging()
logger = logging.getLogger(__name__)

# Always use ORJSONResponse for JSON payloads
app = FastAPI(title="Booktractor Portal", default_response_class=ORJSONResponse)
setup_tracer(app)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    # Browsers reject a wildcard origin on credentialed requests
    allow_credentials="*" not in settings.CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)
logger.info("CORS origins set to: %s", settings.CORS_ORIGINS)
app.add_middleware(SecurityHeadersMiddleware)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return validation errors as ``{"message", "field_errors"}`` and log them."""
    errors = exc.errors()
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    field_errors = {}
    for err in errors:
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        field_errors[".".join(loc) or "body"] = err.get("msg", "invalid")
    return ORJSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": {"message": "Invalid request", "field_errors": field_errors}},
    )


@app.exception_handler(RpcError)
async def rpc_exception_handler(request: Request, exc: RpcError):
    err = rpc_error_response(exc, recovery_link(request.url.path))
    return ORJSONResponse(status_code=err.status_code, content={"detail": err.detail})


@app.exception_handler(AuthError)
async def auth_exception_handler(request: Request, exc: AuthError):
    logger.error("Auth error at %s: %s", request.url.path, exc.message)
    code = exc.status_code if exc.status_code in (400, 401, 403) else status.HTTP_502_BAD_GATEWAY
    return ORJSONResponse(status_code=code, content={"detail": {"message": exc.message}})


@app.exception_handler(BookingActionError)
async def booking_action_exception_handler(request: Request, exc: BookingActionError):
    logger.warning("Booking action refused at %s: %s", request.url.path, exc.message)
    return ORJSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": {"message": exc.message, "field_errors": {exc.field or "status": "invalid"}}},
    )


@app.exception_handler(BookingBlockedError)
async def booking_blocked_exception_handler(request: Request, exc: BookingBlockedError):
    return ORJSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": {"message": exc.message, "field_errors": {"availability": "unavailable"}}},
    )


@app.exception_handler(UploadError)
async def upload_exception_handler(request: Request, exc: UploadError):
    return ORJSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": {"message": exc.message, "field_errors": {"file": "upload_failed"}}},
    )


@app.get("/healthz", tags=["health"])
async def healthz():
    return ORJSONResponse(content={"status": "ok"}, headers={"Cache-Control": "no-store"})


@app.get("/", tags=["health"])
async def root():
    return {"name": "booktractor-portal", "login": settings.LOGIN_ROUTE}


app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(catalog.router, prefix="/catalog", tags=["catalog"])
app.include_router(client.router, prefix="/client", tags=["client"])
app.include_router(owner.router, prefix="/owner", tags=["owner"])
app.include_router(profile.router, prefix="/profile", tags=["profile"])


@app.on_event("shutdown")
async def shutdown_clients() -> None:
    """Close Redis and HTTP connections when the application shuts down."""
    logger.info("Closing Redis client")
    close_redis_client()
    await close_http_client()
