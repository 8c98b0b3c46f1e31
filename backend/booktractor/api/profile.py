import logging
import os

from fastapi import APIRouter, Depends, File, UploadFile, status
from pydantic import ValidationError

from ..schemas.user import AccountDelete, Profile, ProfileUpdate, Session
from ..services.query_cache import QueryCache
from ..services.session_client import SessionContext
from ..services.upload import UploadError, upload_to_presigned_url
from ..utils import error_response, validation_field_errors
from .dependencies import get_http_client, get_query_cache, get_session_context, require_session

logger = logging.getLogger(__name__)

router = APIRouter(tags=["profile"])

_DEFAULT_MAX_BYTES = 2_000_000  # 2 MB
MAX_AVATAR_BYTES = int(os.getenv("USER_AVATAR_MAX_BYTES", str(_DEFAULT_MAX_BYTES)) or _DEFAULT_MAX_BYTES)
ALLOWED_IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}


async def _load_profile(cache: QueryCache, user_id: str) -> Profile:
    data = await cache.fetch("profile.getProfile", {"userId": user_id})
    return Profile.model_validate(data)


@router.get("")
async def read_profile(
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    profile = await _load_profile(cache, session.user.id)
    return profile.model_dump(mode="json")


@router.patch("")
async def update_profile(
    body: dict,
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    """Update editable profile fields. The email address cannot be changed here."""
    if "email" in body:
        raise error_response("Email cannot be changed", {"email": "read_only"})
    try:
        update = ProfileUpdate.model_validate(body)
    except ValidationError as exc:
        raise error_response(
            "Invalid profile update",
            validation_field_errors(exc),
        )
    payload = update.to_rpc()
    if not payload:
        raise error_response("No fields to update", {})
    payload["userId"] = session.user.id
    await cache.mutate("profile.updateProfile", payload)
    profile = await _load_profile(cache, session.user.id)
    return profile.model_dump(mode="json")


@router.post("/picture")
async def upload_profile_picture(
    file: UploadFile = File(...),
    session: Session = Depends(require_session),
    cache: QueryCache = Depends(get_query_cache),
):
    content_type = file.content_type or ""
    if content_type not in ALLOWED_IMAGE_TYPES:
        raise error_response("Unsupported image type", {"file": "invalid_type"})
    data = await file.read()
    if not data:
        raise error_response("No file provided", {"file": "required"})
    if len(data) > MAX_AVATAR_BYTES:
        raise error_response(
            "Image too large",
            {"file": f"max_{MAX_AVATAR_BYTES}_bytes"},
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )

    target = await cache.rpc.mutate(
        "storage.getUploadUrl",
        {"entity": "profile", "entityId": session.user.id, "contentType": content_type},
    )
    try:
        await upload_to_presigned_url(
            target["uploadUrl"], data, content_type, http=get_http_client()
        )
    except UploadError as exc:
        raise error_response(exc.message, {"file": "upload_failed"}, status.HTTP_502_BAD_GATEWAY)

    await cache.mutate(
        "profile.updateProfilePicture",
        {"userId": session.user.id, "imageUrl": target["publicUrl"]},
    )
    logger.info("profile picture updated for user %s", session.user.id)
    return {"image": target["publicUrl"]}


@router.delete("")
async def delete_account(
    body: AccountDelete,
    session: Session = Depends(require_session),
    ctx: SessionContext = Depends(get_session_context),
    cache: QueryCache = Depends(get_query_cache),
):
    if session.user.email and body.confirm_email.lower() != session.user.email.lower():
        raise error_response("Email does not match your account", {"confirm_email": "mismatch"})
    await cache.mutate(
        "profile.deleteAccount", {"userId": session.user.id, "confirmEmail": body.confirm_email}
    )
    ctx.invalidate()
    return {"message": "Account deleted", "redirect_to": "/"}
