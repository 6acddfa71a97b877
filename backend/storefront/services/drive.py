"""
Google Drive client (service account)

Credentials come from google-auth and are refreshed once when the client
first needs them. A client is built per request, so the access token never
outlives the request.
"""
import json
import logging
import re
from typing import Optional

import requests as http_requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession, Request as GoogleAuthRequest
from google.oauth2 import service_account

from storefront.constants import DRIVE_SCOPE

logger = logging.getLogger(__name__)

_DRIVE_URL_RE = re.compile(r"/d/([a-zA-Z0-9_-]+)|/files/([a-zA-Z0-9_-]+)")


class DriveError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        self.status_code = status_code
        super().__init__(message)


def extract_drive_file_id(value) -> Optional[str]:
    """
    Bare id or share URL -> file id.

    https://drive.google.com/file/d/<id>/view?usp=sharing -> <id>
    <id>?usp=sharing -> <id>
    """
    if not value or not str(value).strip():
        return None
    value = str(value).strip()
    match = _DRIVE_URL_RE.search(value)
    if match:
        return match.group(1) or match.group(2)
    file_id = value.split("/")[0].split("?")[0]
    return file_id or None


class DriveClient:
    def __init__(self, service_account_json: str, token_url: str, api_url: str, timeout: int = 30):
        self._service_account_json = service_account_json
        self.token_url = token_url
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._session: Optional[AuthorizedSession] = None

    def credentials(self) -> service_account.Credentials:
        """Read-only Drive credentials from the configured service-account JSON."""
        if not self._service_account_json:
            raise DriveError("GOOGLE_SERVICE_ACCOUNT_JSON not configured")
        try:
            info = json.loads(self._service_account_json)
        except ValueError:
            raise DriveError("GOOGLE_SERVICE_ACCOUNT_JSON is not valid JSON")
        if not isinstance(info, dict):
            raise DriveError("GOOGLE_SERVICE_ACCOUNT_JSON is not a JSON object")

        # Trimmed key files omit token_uri
        info.setdefault("token_uri", self.token_url)
        try:
            return service_account.Credentials.from_service_account_info(info, scopes=[DRIVE_SCOPE])
        except (ValueError, KeyError) as e:
            raise DriveError(f"Invalid service account: {type(e).__name__}")

    def session(self) -> AuthorizedSession:
        if self._session is not None:
            return self._session

        credentials = self.credentials()
        try:
            credentials.refresh(GoogleAuthRequest())
        except GoogleAuthError as e:
            logger.error(f"[Drive] Token refresh failed: {type(e).__name__}")
            raise DriveError("Failed to get Google access token")

        self._session = AuthorizedSession(credentials)
        return self._session

    def get_metadata(self, file_id: str) -> Optional[dict]:
        """name/mimeType of a file; None when the lookup fails (non-fatal)."""
        session = self.session()
        try:
            response = session.get(
                f"{self.api_url}/files/{file_id}",
                params={"fields": "name,mimeType", "supportsAllDrives": "true"},
                timeout=self.timeout,
            )
        except (http_requests.exceptions.RequestException, GoogleAuthError) as e:
            logger.warning(f"[Drive] Metadata lookup failed for {file_id}: {type(e).__name__}")
            return None
        if not response.ok:
            logger.warning(f"[Drive] Metadata lookup for {file_id} returned {response.status_code}")
            return None
        try:
            return response.json()
        except ValueError:
            return None

    def open_media(self, file_id: str) -> http_requests.Response:
        """Open a streaming download; the caller closes the response."""
        session = self.session()
        try:
            response = session.get(
                f"{self.api_url}/files/{file_id}",
                params={"alt": "media", "supportsAllDrives": "true"},
                headers={"Accept-Encoding": "identity"},
                stream=True,
                timeout=self.timeout,
            )
        except (http_requests.exceptions.RequestException, GoogleAuthError) as e:
            raise DriveError(f"Drive download failed: {type(e).__name__}")
        if not response.ok:
            body = response.text[:500] if response.text else ""
            response.close()
            logger.error(f"[Drive] Download of {file_id} failed: status={response.status_code} body={body}")
            raise DriveError("Google Drive error", response.status_code)
        return response
