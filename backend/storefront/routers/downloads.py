"""
Download Router

GET /secure-download?productId=  buyers with a completed purchase
GET /admin-download?productId=   admins, no ownership check
"""
import logging
from urllib.parse import quote

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse, StreamingResponse

from storefront.configuration import get_settings
from storefront.constants import DOWNLOAD_RATE_LIMIT
from storefront.dependencies import (
    AuthenticatedUser,
    get_current_user,
    get_drive_client,
    get_privileged_store,
    require_admin,
)
from storefront.rate_limit import limiter
from storefront.services.delivery import DeliveryService, DownloadResult, FallbackLink
from storefront.services.drive import DriveClient
from storefront.stores import PrivilegedStore

logger = logging.getLogger(__name__)
settings = get_settings()

router = APIRouter(tags=["downloads"])

FALLBACK_HEADER = "X-Download-Fallback"


def content_disposition(filename: str) -> str:
    """attachment header that survives non-ASCII product names"""
    ascii_name = filename.encode("ascii", "ignore").decode("ascii").replace('"', "").strip() or "download"
    return f"attachment; filename=\"{ascii_name}\"; filename*=UTF-8''{quote(filename)}"


def _to_response(result: DownloadResult):
    if isinstance(result, FallbackLink):
        return JSONResponse(
            status_code=200,
            content={"fallback_url": result.url},
            headers={FALLBACK_HEADER: "1"},
        )

    headers = {"Content-Disposition": content_disposition(result.filename)}
    if result.content_length:
        headers["Content-Length"] = result.content_length
    return StreamingResponse(result.chunks, media_type=result.content_type, headers=headers)


@router.get("/secure-download")
@limiter.limit(DOWNLOAD_RATE_LIMIT)
def secure_download(
    request: Request,
    product_id: str = Query(..., alias="productId", min_length=1, max_length=64),
    user: AuthenticatedUser = Depends(get_current_user),
    store: PrivilegedStore = Depends(get_privileged_store),
    drive: DriveClient = Depends(get_drive_client),
):
    service = DeliveryService(store, drive, timeout=settings.OUTBOUND_TIMEOUT_SECONDS)
    return _to_response(service.download(user.id, product_id))


@router.get("/admin-download")
@limiter.limit(DOWNLOAD_RATE_LIMIT)
def admin_download(
    request: Request,
    product_id: str = Query(..., alias="productId", min_length=1, max_length=64),
    admin: AuthenticatedUser = Depends(require_admin),
    store: PrivilegedStore = Depends(get_privileged_store),
    drive: DriveClient = Depends(get_drive_client),
):
    service = DeliveryService(store, drive, timeout=settings.OUTBOUND_TIMEOUT_SECONDS)
    return _to_response(service.admin_download(admin.id, product_id))
