"""Unit tests for sitetrack.integrations.drive_gateway.

Test strategy
-------------
DriveGateway accepts an injected ``session``; every test passes a
MagicMock so no request leaves the process. Responses are small
MagicMocks carrying ``ok``, ``status_code``, ``headers`` and ``json()``.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from sitetrack.core.exceptions import StorageError
from sitetrack.integrations.drive_gateway import FILES_URL, TOKEN_URL, UPLOAD_URL, DriveGateway


def _response(status=200, body=None, headers=None):
    resp = MagicMock()
    resp.status_code = status
    resp.ok = 200 <= status < 300
    resp.headers = headers or {}
    resp.json.return_value = body or {}
    resp.text = json.dumps(body or {})
    return resp


def _token_response(expires_in=3600):
    return _response(body={"access_token": "tok-1", "expires_in": expires_in})


def _html_response(status=200):
    resp = _response(status)
    resp.json.side_effect = ValueError("Expecting value: line 1 column 1 (char 0)")
    resp.text = "<html>gateway timeout</html>"
    return resp


@pytest.fixture()
def session():
    return MagicMock()


@pytest.fixture()
def gateway(session):
    return DriveGateway("cid", "secret", "refresh", timeout=5, session=session)


# ── Token handling ───────────────────────────────────────────────────────────


class TestToken:

    def test_refresh_grant(self, gateway, session):
        session.request.return_value = _token_response()
        assert gateway.get_token() == "tok-1"

        method, url = session.request.call_args.args
        assert (method, url) == ("POST", TOKEN_URL)
        form = session.request.call_args.kwargs["data"]
        assert form["grant_type"] == "refresh_token"
        assert form["refresh_token"] == "refresh"
        assert session.request.call_args.kwargs["timeout"] == 5

    def test_token_is_cached(self, gateway, session):
        session.request.return_value = _token_response()
        gateway.get_token()
        gateway.get_token()
        assert session.request.call_count == 1

    def test_short_lived_token_is_refetched(self, gateway, session):
        session.request.return_value = _token_response(expires_in=30)
        gateway.get_token()
        gateway.get_token()
        assert session.request.call_count == 2

    def test_invalidate(self, gateway, session):
        session.request.return_value = _token_response()
        gateway.get_token()
        gateway.invalidate_token()
        gateway.get_token()
        assert session.request.call_count == 2

    def test_token_endpoint_rejects(self, gateway, session):
        session.request.return_value = _response(400, {"error": "invalid_grant"})
        with pytest.raises(StorageError) as exc_info:
            gateway.get_token()
        assert exc_info.value.status_code == 400

    def test_network_failure(self, gateway, session):
        session.request.side_effect = requests.ConnectionError("dns")
        with pytest.raises(StorageError, match="Drive request failed"):
            gateway.get_token()

    def test_token_body_not_json(self, gateway, session):
        session.request.return_value = _html_response()
        with pytest.raises(StorageError, match="token refresh returned malformed JSON"):
            gateway.get_token()

    def test_token_body_not_an_object(self, gateway, session):
        session.request.return_value = _response(200, ["tok-1"])
        with pytest.raises(StorageError, match="malformed JSON"):
            gateway.get_token()


# ── Drive operations ─────────────────────────────────────────────────────────


class TestOperations:

    def test_resumable_upload(self, gateway, session, tmp_path):
        archive = tmp_path / "progress_2024-01-01.zip"
        archive.write_bytes(b"PK\x03\x04data")
        session.request.side_effect = [
            _token_response(),
            _response(200, headers={"Location": "https://upload.example/session-1"}),
            _response(200, {"id": "f-1", "webViewLink": "https://drive.example/f-1"}),
        ]

        meta = gateway.upload_file(str(archive), archive.name, "application/zip", "folder-9")
        assert meta == {"id": "f-1", "webViewLink": "https://drive.example/f-1"}

        _, init_call, put_call = session.request.call_args_list
        assert init_call.args == ("POST", UPLOAD_URL)
        assert init_call.kwargs["params"]["uploadType"] == "resumable"
        assert init_call.kwargs["json"] == {"name": archive.name, "parents": ["folder-9"]}
        assert init_call.kwargs["headers"]["Authorization"] == "Bearer tok-1"
        assert init_call.kwargs["headers"]["X-Upload-Content-Length"] == "8"
        assert put_call.args == ("PUT", "https://upload.example/session-1")

    def test_upload_without_location(self, gateway, session, tmp_path):
        path = tmp_path / "a.zip"
        path.write_bytes(b"x")
        session.request.side_effect = [_token_response(), _response(200)]
        with pytest.raises(StorageError, match="no Location header"):
            gateway.upload_file(str(path), "a.zip", "application/zip")

    def test_upload_rejected(self, gateway, session, tmp_path):
        path = tmp_path / "a.zip"
        path.write_bytes(b"x")
        session.request.side_effect = [_token_response(), _response(403)]
        with pytest.raises(StorageError) as exc_info:
            gateway.upload_file(str(path), "a.zip", "application/zip")
        assert exc_info.value.status_code == 403

    def test_upload_body_not_json(self, gateway, session, tmp_path):
        path = tmp_path / "a.zip"
        path.write_bytes(b"x")
        session.request.side_effect = [
            _token_response(),
            _response(200, headers={"Location": "https://upload.example/session-1"}),
            _html_response(),
        ]
        with pytest.raises(StorageError, match="upload returned malformed JSON"):
            gateway.upload_file(str(path), "a.zip", "application/zip")

    def test_open_stream(self, gateway, session):
        stream = _response(200, headers={"Content-Type": "application/zip"})
        session.request.side_effect = [_token_response(), stream]
        assert gateway.open_stream("f-1") is stream
        call = session.request.call_args
        assert call.args == ("GET", f"{FILES_URL}/f-1")
        assert call.kwargs["params"] == {"alt": "media"}
        assert call.kwargs["stream"] is True

    def test_open_stream_missing_file_closes_response(self, gateway, session):
        missing = _response(404)
        session.request.side_effect = [_token_response(), missing]
        with pytest.raises(StorageError) as exc_info:
            gateway.open_stream("gone")
        assert exc_info.value.status_code == 404
        missing.close.assert_called_once()

    def test_delete(self, gateway, session):
        session.request.side_effect = [_token_response(), _response(204)]
        gateway.delete_file("f-1")
        assert session.request.call_args.args == ("DELETE", f"{FILES_URL}/f-1")


# ── Configuration ────────────────────────────────────────────────────────────


class TestFromConfig:

    def test_env_credentials(self):
        gw = DriveGateway.from_config({
            "GOOGLE_CLIENT_ID": "a", "GOOGLE_CLIENT_SECRET": "b",
            "GOOGLE_REFRESH_TOKEN": "c", "DRIVE_TIMEOUT": "12",
        })
        assert (gw.client_id, gw.client_secret, gw.refresh_token) == ("a", "b", "c")
        assert gw.timeout == 12

    def test_credential_files(self, tmp_path):
        creds = tmp_path / "credentials.json"
        creds.write_text(json.dumps({"installed": {"client_id": "file-id",
                                                   "client_secret": "file-secret"}}))
        token = tmp_path / "token.json"
        token.write_text(json.dumps({"refresh_token": "file-refresh"}))

        gw = DriveGateway.from_config({
            "DRIVE_CREDENTIALS_FILE": str(creds), "DRIVE_TOKEN_FILE": str(token),
        })
        assert (gw.client_id, gw.client_secret, gw.refresh_token) == (
            "file-id", "file-secret", "file-refresh",
        )

    def test_missing_credentials_fail_fast(self, tmp_path):
        with pytest.raises(RuntimeError, match="GOOGLE_REFRESH_TOKEN"):
            DriveGateway.from_config({
                "GOOGLE_CLIENT_ID": "a", "GOOGLE_CLIENT_SECRET": "b",
                "DRIVE_TOKEN_FILE": str(tmp_path / "absent.json"),
            })
