"""
Download Gate

Ownership (a completed purchase row) is the only admission criterion for
buyers; the admin variant skips it. The Drive-hosted file wins over a
directly hosted download_file_url when both are set, and the direct URL is
offered as a fallback link when Drive streaming fails.
"""
import logging
import re
from dataclasses import dataclass
from typing import Iterator, Optional, Union

import requests as http_requests

from storefront.constants import DOWNLOAD_CHUNK_SIZE, EXTENSION_TO_MIME, MIME_TO_EXTENSION
from storefront.errors import Errors
from storefront.models.catalog import Product
from storefront.services.drive import DriveClient, DriveError, extract_drive_file_id
from storefront.stores import PrivilegedStore

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
_EXTENSION_RE = re.compile(r"(\.[a-zA-Z0-9]+)$")


@dataclass
class FileDownload:
    filename: str
    content_type: str
    content_length: Optional[str]
    chunks: Iterator[bytes]


@dataclass
class FallbackLink:
    url: str


DownloadResult = Union[FileDownload, FallbackLink]


def _base_type(content_type: Optional[str]) -> str:
    return (content_type or "").split(";")[0].strip().lower()


def build_filename(product_name: str, drive_name: Optional[str], content_type: Optional[str]) -> str:
    """Product name + extension from the Drive file name, else from the content type."""
    name = (product_name or "download").strip()
    match = _EXTENSION_RE.search(drive_name or "")
    if match:
        return name + match.group(1)
    return name + MIME_TO_EXTENSION.get(_base_type(content_type), "")


def admin_file_type(product_name: str, drive_name: Optional[str], content_type: Optional[str]):
    """
    Admin re-downloads: a known Drive extension also fixes the content type,
    otherwise the extension is derived from the served type.
    """
    content_type = content_type or DEFAULT_CONTENT_TYPE
    extension = ""
    match = _EXTENSION_RE.search(drive_name or "")
    if match:
        extension = match.group(1).lower()
        content_type = EXTENSION_TO_MIME.get(extension, content_type)
    if not extension:
        mapped = MIME_TO_EXTENSION.get(_base_type(content_type), "")
        if EXTENSION_TO_MIME.get(mapped):
            extension = mapped
    return (product_name or "download").strip() + extension, content_type


def _iter_response(response: http_requests.Response) -> Iterator[bytes]:
    try:
        for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
            if chunk:
                yield chunk
    finally:
        response.close()


class DeliveryService:
    def __init__(self, store: PrivilegedStore, drive: DriveClient, timeout: int = 30) -> None:
        self.store = store
        self.drive = drive
        self.timeout = timeout

    def download(self, user_id: str, product_id: str) -> DownloadResult:
        if not self.store.has_completed_purchase(user_id, product_id):
            logger.warning(f"[Download] Denied: user={user_id} product={product_id}")
            raise Errors.forbidden({"reason": "Purchase not found"})

        product = self.store.get_product(product_id)
        if product is None:
            raise Errors.not_found("product")
        return self._deliver(product, admin=False)

    def admin_download(self, admin_id: str, product_id: str) -> DownloadResult:
        product = self.store.get_product(product_id)
        if product is None:
            raise Errors.not_found("product")
        logger.info(f"[Download] Admin {admin_id} downloading product={product_id}")
        return self._deliver(product, admin=True)

    def _deliver(self, product: Product, admin: bool) -> DownloadResult:
        file_id = extract_drive_file_id(product.google_drive_file_id)
        if file_id:
            try:
                return self._from_drive(product, file_id, admin)
            except DriveError as e:
                logger.error(f"[Download] Drive delivery failed: product={product.id} error={e}")
                if product.download_file_url:
                    return FallbackLink(product.download_file_url)
                raise Errors.upstream("drive", {"status": e.status_code})

        if product.download_file_url:
            return self._from_url(product)

        raise Errors.not_found("download")

    def _from_drive(self, product: Product, file_id: str, admin: bool) -> FileDownload:
        metadata = self.drive.get_metadata(file_id) or {}
        response = self.drive.open_media(file_id)
        served_type = response.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE

        if admin:
            filename, content_type = admin_file_type(product.name, metadata.get("name"), served_type)
        else:
            filename = build_filename(product.name, metadata.get("name"), served_type)
            content_type = served_type

        logger.info(f"[Download] Streaming product={product.id} file={filename}")
        return FileDownload(
            filename=filename,
            content_type=content_type,
            content_length=response.headers.get("Content-Length"),
            chunks=_iter_response(response),
        )

    def _from_url(self, product: Product) -> DownloadResult:
        url = product.download_file_url
        try:
            response = http_requests.get(url, stream=True, timeout=self.timeout)
        except http_requests.exceptions.RequestException as e:
            logger.error(f"[Download] Direct file fetch failed: product={product.id} error={type(e).__name__}")
            return FallbackLink(url)
        if not response.ok:
            logger.error(f"[Download] Direct file fetch failed: product={product.id} status={response.status_code}")
            response.close()
            return FallbackLink(url)

        content_type = response.headers.get("Content-Type") or DEFAULT_CONTENT_TYPE
        url_name = url.split("?")[0].rstrip("/").rsplit("/", 1)[-1]
        return FileDownload(
            filename=build_filename(product.name, url_name, content_type),
            content_type=content_type,
            content_length=response.headers.get("Content-Length"),
            chunks=_iter_response(response),
        )
