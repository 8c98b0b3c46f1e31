from typing import Dict, Optional
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


def error_response(
    message: str,
    field_errors: Dict[str, str],
    code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
) -> HTTPException:
    """Return an HTTPException with a consistent structure and log details."""
    logger.error("%s %s", message, field_errors)
    detail = {"message": message, "field_errors": field_errors}
    return HTTPException(status_code=code, detail=detail)


def validation_field_errors(exc, default: str = "body") -> Dict[str, str]:
    """Map a pydantic ``ValidationError`` to ``{field: message}``.

    Errors raised by model-level validators have an empty location and are
    reported under ``default``.
    """
    return {
        ".".join(str(p) for p in err["loc"]) or default: err["msg"] for err in exc.errors()
    }


_RPC_STATUS = {
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "UNAUTHORIZED": status.HTTP_401_UNAUTHORIZED,
    "FORBIDDEN": status.HTTP_403_FORBIDDEN,
    "BAD_REQUEST": status.HTTP_400_BAD_REQUEST,
    "CONFLICT": status.HTTP_409_CONFLICT,
}


def rpc_error_response(exc, recovery: Optional[str] = None) -> HTTPException:
    """Translate an ``RpcError`` into the portal's HTTP error shape.

    NOT_FOUND carries a ``recovery`` link back to a listing the user can reach.
    Anything unmapped (including transport failures) is a 502.
    """
    code = _RPC_STATUS.get(exc.code, status.HTTP_502_BAD_GATEWAY)
    logger.warning("RPC %s failed: %s %s", exc.path, exc.code, exc.message)
    detail: Dict[str, object] = {"message": exc.message, "code": exc.code}
    if code == status.HTTP_404_NOT_FOUND and recovery:
        detail["recovery"] = recovery
    return HTTPException(status_code=code, detail=detail)


# Listing a user can go back to when a detail page's record is gone
_RECOVERY_LINKS = (
    ("/owner/bookings", "/owner/bookings"),
    ("/owner/machines", "/owner/machines"),
    ("/owner/instances", "/owner/machines"),
    ("/owner", "/owner"),
    ("/client/bookings", "/client/bookings"),
    ("/client/machines", "/client/machines"),
    ("/client", "/client"),
    ("/catalog", "/catalog"),
)


def recovery_link(path: str) -> str:
    for prefix, link in _RECOVERY_LINKS:
        if path == prefix or path.startswith(prefix + "/"):
            return link
    return "/"
