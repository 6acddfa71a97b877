# -*- coding: utf-8 -*-
"""
Download Gate tests (/secure-download, /admin-download) and the Drive client
"""

import json

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from google.auth.exceptions import RefreshError
from google.oauth2 import service_account

from storefront.constants import DRIVE_SCOPE
from storefront.dependencies import get_drive_client
from storefront.models.purchase import PurchaseStatus
from storefront.services import delivery as delivery_module
from storefront.services import drive as drive_module
from storefront.services.delivery import admin_file_type, build_filename
from storefront.services.drive import DriveClient, DriveError, extract_drive_file_id


class FakeMediaResponse:
    def __init__(self, body=b"video-bytes", content_type="video/mp4", status_code=200, content_length=True):
        self.status_code = status_code
        self.headers = {"Content-Type": content_type}
        if content_length:
            self.headers["Content-Length"] = str(len(body))
        self._body = body
        self.closed = False
        self.text = ""

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self._body), 4):
            yield self._body[start:start + 4]

    def close(self):
        self.closed = True


class FakeDrive:
    def __init__(self, name="clip.webm", content_type="video/webm", fail=False):
        self.metadata = {"name": name, "mimeType": content_type} if name else None
        self.media = FakeMediaResponse(content_type=content_type)
        self.fail = fail
        self.opened = []

    def get_metadata(self, file_id):
        return self.metadata

    def open_media(self, file_id):
        self.opened.append(file_id)
        if self.fail:
            raise DriveError("Google Drive error", 500)
        return self.media


@pytest.fixture
def drive(app):
    fake = FakeDrive()
    app.dependency_overrides[get_drive_client] = lambda: fake
    return fake


class TestOwnershipGate:
    @pytest.mark.parametrize("status", [PurchaseStatus.PENDING, PurchaseStatus.FAILED, PurchaseStatus.REFUNDED])
    def test_not_completed_is_forbidden(
        self, client, drive, make_user, make_product, make_purchase, auth_headers, status
    ):
        user = make_user()
        product = make_product(google_drive_file_id="abc123")
        make_purchase(user, product, status)

        response = client.get(f"/secure-download?productId={product.id}", headers=auth_headers(user))

        assert response.status_code == 403
        assert drive.opened == []

    def test_no_purchase_is_forbidden(self, client, drive, make_user, make_product, auth_headers):
        user = make_user()
        product = make_product(google_drive_file_id="abc123")

        response = client.get(f"/secure-download?productId={product.id}", headers=auth_headers(user))

        assert response.status_code == 403

    def test_other_users_purchase_does_not_count(
        self, client, drive, make_user, make_product, make_purchase, auth_headers
    ):
        owner, other = make_user("owner@example.com"), make_user("other@example.com")
        product = make_product(google_drive_file_id="abc123")
        make_purchase(owner, product)

        response = client.get(f"/secure-download?productId={product.id}", headers=auth_headers(other))

        assert response.status_code == 403

    def test_unauthenticated_is_401(self, client, drive, make_product):
        product = make_product(google_drive_file_id="abc123")

        assert client.get(f"/secure-download?productId={product.id}").status_code == 401

    def test_completed_purchase_streams_file(
        self, client, drive, make_user, make_product, make_purchase, auth_headers
    ):
        user = make_user()
        product = make_product(name="Neon Glow", google_drive_file_id="https://drive.google.com/file/d/abc123/view?usp=sharing")
        make_purchase(user, product)

        response = client.get(f"/secure-download?productId={product.id}", headers=auth_headers(user))

        assert response.status_code == 200
        assert response.content == b"video-bytes"
        assert response.headers["content-type"].startswith("video/webm")
        assert 'filename="Neon Glow.webm"' in response.headers["content-disposition"]
        assert response.headers["content-length"] == str(len(b"video-bytes"))
        assert drive.opened == ["abc123"]
        assert drive.media.closed is True


class TestAssetSources:
    def test_drive_wins_over_direct_url(
        self, client, drive, make_user, make_product, make_purchase, auth_headers, monkeypatch
    ):
        def _unexpected(*args, **kwargs):
            raise AssertionError("direct URL must not be fetched")

        monkeypatch.setattr(delivery_module.http_requests, "get", _unexpected)
        user = make_user()
        product = make_product(google_drive_file_id="abc123", download_file_url="https://cdn.example.com/fx.zip")
        make_purchase(user, product)

        response = client.get(f"/secure-download?productId={product.id}", headers=auth_headers(user))

        assert response.status_code == 200
        assert drive.opened == ["abc123"]

    def test_drive_failure_offers_fallback_link(
        self, client, drive, make_user, make_product, make_purchase, auth_headers
    ):
        drive.fail = True
        user = make_user()
        product = make_product(google_drive_file_id="abc123", download_file_url="https://cdn.example.com/fx.zip")
        make_purchase(user, product)

        response = client.get(f"/secure-download?productId={product.id}", headers=auth_headers(user))

        assert response.status_code == 200
        assert response.json() == {"fallback_url": "https://cdn.example.com/fx.zip"}
        assert response.headers["x-download-fallback"] == "1"

    def test_drive_failure_without_fallback_is_500(
        self, client, drive, make_user, make_product, make_purchase, auth_headers
    ):
        drive.fail = True
        user = make_user()
        product = make_product(google_drive_file_id="abc123")
        make_purchase(user, product)

        response = client.get(f"/secure-download?productId={product.id}", headers=auth_headers(user))

        assert response.status_code == 500

    def test_direct_url_streamed_when_no_drive_file(
        self, client, drive, make_user, make_product, make_purchase, auth_headers, monkeypatch
    ):
        media = FakeMediaResponse(body=b"zip-bytes", content_type="application/zip")
        monkeypatch.setattr(delivery_module.http_requests, "get", lambda url, **kwargs: media)
        user = make_user()
        product = make_product(name="Pack", download_file_url="https://cdn.example.com/files/pack.zip?sig=1")
        make_purchase(user, product)

        response = client.get(f"/secure-download?productId={product.id}", headers=auth_headers(user))

        assert response.status_code == 200
        assert response.content == b"zip-bytes"
        assert 'filename="Pack.zip"' in response.headers["content-disposition"]

    def test_no_asset_configured_is_404(self, client, drive, make_user, make_product, make_purchase, auth_headers):
        user = make_user()
        product = make_product()
        make_purchase(user, product)

        response = client.get(f"/secure-download?productId={product.id}", headers=auth_headers(user))

        assert response.status_code == 404


class TestAdminDownload:
    def test_admin_downloads_without_purchase(self, client, drive, make_user, make_product, auth_headers):
        admin = make_user("admin@example.com", admin=True)
        drive.metadata = {"name": "master.MOV"}
        drive.media = FakeMediaResponse(content_type="application/octet-stream")
        product = make_product(name="Raw Clip", google_drive_file_id="xyz")

        response = client.get(f"/admin-download?productId={product.id}", headers=auth_headers(admin))

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("video/quicktime")
        assert 'filename="Raw Clip.mov"' in response.headers["content-disposition"]

    def test_non_admin_forbidden(self, client, drive, make_user, make_product, make_purchase, auth_headers):
        user = make_user()
        product = make_product(google_drive_file_id="xyz")
        make_purchase(user, product)

        response = client.get(f"/admin-download?productId={product.id}", headers=auth_headers(user))

        assert response.status_code == 403
        assert drive.opened == []

    def test_role_claim_alone_is_not_admin(self, client, drive, make_user, make_product):
        from storefront.utils.jwt_handler import create_access_token

        user = make_user()
        product = make_product(google_drive_file_id="xyz")
        token = create_access_token(user.id, email=user.email, role="admin")

        response = client.get(f"/admin-download?productId={product.id}", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 403


class TestFileNaming:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("abc123", "abc123"),
            ("https://drive.google.com/file/d/abc-123_X/view?usp=sharing", "abc-123_X"),
            ("https://www.googleapis.com/drive/v3/files/FILEID?alt=media", "FILEID"),
            ("abc123?usp=sharing", "abc123"),
            ("abc123/view", "abc123"),
            ("  ", None),
            (None, None),
        ],
    )
    def test_extract_drive_file_id(self, value, expected):
        assert extract_drive_file_id(value) == expected

    def test_extension_from_drive_name(self):
        assert build_filename("Neon", "export_final.mp4", "application/octet-stream") == "Neon.mp4"

    def test_extension_from_content_type(self):
        assert build_filename("Neon", "no-extension", "video/webm; codecs=vp9") == "Neon.webm"

    def test_unknown_type_has_no_extension(self):
        assert build_filename("Neon", None, "application/x-unknown") == "Neon"

    def test_admin_extension_fixes_content_type(self):
        assert admin_file_type("Clip", "a.zip", "application/octet-stream") == ("Clip.zip", "application/zip")

    def test_admin_content_type_gives_extension(self):
        assert admin_file_type("Clip", None, "video/mp4") == ("Clip.mp4", "video/mp4")


class FakeAuthorizedSession:
    def __init__(self, credentials):
        self.credentials = credentials
        self.calls = []
        self.metadata = FakeMediaResponse()
        self.metadata.json = lambda: {"name": "clip.webm", "mimeType": "video/webm"}

    def get(self, url, params=None, **kwargs):
        self.calls.append((url, params))
        if params.get("alt") == "media":
            return FakeMediaResponse()
        return self.metadata


class TestDriveClient:
    TOKEN_URL = "https://oauth2.example.com/token"
    API_URL = "https://drive.example.com/v3"

    @pytest.fixture
    def service_account_json(self):
        key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
        pem = key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        ).decode()
        return json.dumps({
            "type": "service_account",
            "client_email": "svc@project.iam.gserviceaccount.com",
            "private_key": pem,
        })

    @pytest.fixture
    def refreshes(self, monkeypatch):
        calls = []

        def fake_refresh(credentials, request):
            calls.append(request)
            credentials.token = "drive-token"

        monkeypatch.setattr(service_account.Credentials, "refresh", fake_refresh)
        monkeypatch.setattr(drive_module, "AuthorizedSession", FakeAuthorizedSession)
        return calls

    def test_credentials_are_read_only_drive(self, service_account_json):
        client = DriveClient(service_account_json, self.TOKEN_URL, self.API_URL)

        credentials = client.credentials()

        assert credentials.service_account_email == "svc@project.iam.gserviceaccount.com"
        assert credentials.has_scopes([DRIVE_SCOPE])

    def test_token_refreshed_once_per_client(self, service_account_json, refreshes):
        client = DriveClient(service_account_json, self.TOKEN_URL, self.API_URL)

        assert client.get_metadata("abc123") == {"name": "clip.webm", "mimeType": "video/webm"}
        media = client.open_media("abc123")

        assert media.ok
        assert len(refreshes) == 1
        session = client.session()
        assert session.credentials.token == "drive-token"
        assert session.calls[1] == (
            "https://drive.example.com/v3/files/abc123",
            {"alt": "media", "supportsAllDrives": "true"},
        )

    def test_failed_media_raises_with_status(self, service_account_json, refreshes):
        client = DriveClient(service_account_json, self.TOKEN_URL, self.API_URL)
        session = client.session()
        session.get = lambda url, params=None, **kwargs: FakeMediaResponse(status_code=404)

        with pytest.raises(DriveError) as exc_info:
            client.open_media("abc123")

        assert exc_info.value.status_code == 404

    def test_refresh_failure_is_drive_error(self, service_account_json, monkeypatch):
        def failing_refresh(credentials, request):
            raise RefreshError("invalid_grant")

        monkeypatch.setattr(service_account.Credentials, "refresh", failing_refresh)
        client = DriveClient(service_account_json, self.TOKEN_URL, self.API_URL)

        with pytest.raises(DriveError):
            client.open_media("abc123")

    @pytest.mark.parametrize("account_json", ["", "not json", "[1, 2]", '{"client_email": "svc@x"}'])
    def test_unusable_credentials(self, account_json):
        client = DriveClient(account_json, self.TOKEN_URL, self.API_URL)

        with pytest.raises(DriveError):
            client.session()
