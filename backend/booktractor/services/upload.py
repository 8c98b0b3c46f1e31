import logging
from typing import Optional

import httpx

from ..core.config import settings

logger = logging.getLogger(__name__)


class UploadError(Exception):
    """Direct-to-storage upload was rejected or failed."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


async def upload_to_presigned_url(
    upload_url: str,
    data: bytes,
    content_type: str,
    *,
    http: Optional[httpx.AsyncClient] = None,
) -> None:
    """PUT ``data`` to a pre-signed storage URL. Any non-2xx status fails.

    There is no retry or resume; the caller starts over on failure.
    """
    client = http or httpx.AsyncClient(timeout=settings.HTTP_TIMEOUT_SECONDS)
    try:
        resp = await client.put(upload_url, content=data, headers={"Content-Type": content_type})
    except httpx.HTTPError as exc:
        logger.error("Upload request failed: %s", exc)
        raise UploadError("Upload failed: storage unreachable") from exc
    finally:
        if http is None:
            await client.aclose()
    if not 200 <= resp.status_code < 300:
        logger.error("Upload rejected with status %s", resp.status_code)
        raise UploadError(f"Upload failed with status {resp.status_code}", resp.status_code)
