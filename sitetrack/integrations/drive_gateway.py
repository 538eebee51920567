"""
Google Drive storage gateway.

All outbound HTTP calls to the Drive v3 REST API go through this class.
Direct `requests` calls in services or blueprints are FORBIDDEN.

  - OAuth2 refresh-token grant with in-memory token cache
  - Resumable upload (metadata POST, then one PUT of the file bytes)
  - Streaming download and delete
  - Timeout: DRIVE_TIMEOUT (default 60 s)
  - No retries: a failed call raises StorageError and the caller decides

The gateway is built once by the app factory and stored in
``app.extensions["drive_gateway"]``; services fetch it through
``get_drive_gateway()``. Startup fails if credentials are absent.

Testability: pass a mock `session` to DriveGateway() in tests instead of
letting it create a real requests.Session internally.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from datetime import datetime, timedelta, timezone
from typing import Any

import requests
from flask import current_app

from sitetrack.core.exceptions import StorageError

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
FILES_URL = "https://www.googleapis.com/drive/v3/files"
UPLOAD_URL = "https://www.googleapis.com/upload/drive/v3/files"

_DEFAULT_TIMEOUT = 60
_UPLOAD_FIELDS = "id,webViewLink"

EXTENSION_KEY = "drive_gateway"


class DriveGateway:
    """Google Drive v3 REST gateway.

    Usage:
        gateway = DriveGateway.from_config(app.config)
        meta = gateway.upload_file("/tmp/x.zip", "x.zip", "application/zip", folder_id)
        meta["id"], meta["webViewLink"]
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        *,
        token_url: str = TOKEN_URL,
        timeout: int = _DEFAULT_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.refresh_token = refresh_token
        self.token_url = token_url
        self.timeout = timeout
        # Inject custom session for testing; create real one lazily otherwise.
        self._session: requests.Session | None = session

        # Token cache: {"access_token": str, "expires_at": datetime}
        self._token: dict | None = None
        self._token_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: Any, session: requests.Session | None = None) -> DriveGateway:
        """Build the gateway from Flask config.

        Credentials come from GOOGLE_CLIENT_ID / GOOGLE_CLIENT_SECRET /
        GOOGLE_REFRESH_TOKEN, falling back to the OAuth client file
        (DRIVE_CREDENTIALS_FILE, ``web`` or ``installed`` section) and the
        saved token file (DRIVE_TOKEN_FILE).

        Raises:
            RuntimeError: if any of the three credentials is missing.
        """
        client_id = config.get("GOOGLE_CLIENT_ID")
        client_secret = config.get("GOOGLE_CLIENT_SECRET")
        refresh_token = config.get("GOOGLE_REFRESH_TOKEN")

        if not (client_id and client_secret):
            client = _read_json(config.get("DRIVE_CREDENTIALS_FILE"))
            section = client.get("web") or client.get("installed") or {}
            client_id = client_id or section.get("client_id")
            client_secret = client_secret or section.get("client_secret")
        if not refresh_token:
            refresh_token = _read_json(config.get("DRIVE_TOKEN_FILE")).get("refresh_token")

        missing = [
            name
            for name, value in (
                ("GOOGLE_CLIENT_ID", client_id),
                ("GOOGLE_CLIENT_SECRET", client_secret),
                ("GOOGLE_REFRESH_TOKEN", refresh_token),
            )
            if not value
        ]
        if missing:
            raise RuntimeError(
                "Google Drive credentials missing: " + ", ".join(missing)
            )

        return cls(
            client_id,
            client_secret,
            refresh_token,
            timeout=int(config.get("DRIVE_TIMEOUT", _DEFAULT_TIMEOUT)),
            session=session,
        )

    # ── HTTP session ─────────────────────────────────────────────────────────

    @property
    def session(self) -> requests.Session:
        """Return (or lazily create) the requests.Session."""
        if self._session is None:
            self._session = requests.Session()
        return self._session

    # ── OAuth2 token management ───────────────────────────────────────────────

    def _get_cached_token(self) -> str | None:
        entry = self._token
        if not entry:
            return None
        # Treat token as expired 60 s before actual expiry
        if datetime.now(timezone.utc) >= entry["expires_at"] - timedelta(seconds=60):
            return None
        return entry["access_token"]

    def get_token(self) -> str:
        """Return a valid access token, exchanging the refresh token when needed.

        Raises:
            StorageError: token endpoint unreachable, non-2xx, or no access_token.
        """
        with self._token_lock:
            cached = self._get_cached_token()
            if cached:
                return cached

            logger.info("Fetching Google Drive access token")
            resp = self._do_request(
                "POST",
                self.token_url,
                data={
                    "grant_type": "refresh_token",
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": self.refresh_token,
                },
            )
            self._raise_for_status(resp, "token refresh")
            body = self._json_body(resp, "token refresh")

            access_token = body.get("access_token")
            if not access_token:
                raise StorageError("Drive token response missing access_token")

            expires_in = int(body.get("expires_in", 3600))
            self._token = {
                "access_token": access_token,
                "expires_at": datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            }
            return access_token

    def invalidate_token(self) -> None:
        """Evict cached token; next call will re-fetch from token endpoint."""
        self._token = None

    # ── Core request dispatcher ───────────────────────────────────────────────

    def _do_request(self, method: str, url: str, **kwargs) -> requests.Response:
        """Execute a single HTTP request, no retry logic here."""
        kwargs.setdefault("timeout", self.timeout)
        try:
            return self.session.request(method, url, **kwargs)
        except requests.RequestException as exc:
            logger.warning("Drive request failed method=%s url=%s error=%s", method, url, exc)
            raise StorageError(f"Drive request failed: {exc}") from exc

    def _auth_headers(self, extra: dict | None = None) -> dict:
        headers = {"Authorization": f"Bearer {self.get_token()}"}
        if extra:
            headers.update(extra)
        return headers

    @staticmethod
    def _raise_for_status(resp: requests.Response, action: str) -> None:
        if resp.ok:
            return
        logger.warning("Drive %s failed status=%d body=%s", action, resp.status_code, resp.text[:300])
        raise StorageError(
            f"Drive {action} failed: HTTP {resp.status_code}", status_code=resp.status_code
        )

    @staticmethod
    def _json_body(resp: requests.Response, action: str) -> dict:
        try:
            body = resp.json()
        except ValueError as exc:
            raise StorageError(
                f"Drive {action} returned malformed JSON", status_code=resp.status_code
            ) from exc
        if not isinstance(body, dict):
            raise StorageError(
                f"Drive {action} returned malformed JSON", status_code=resp.status_code
            )
        return body

    # ── Drive operations ──────────────────────────────────────────────────────

    def upload_file(
        self,
        local_path: str,
        remote_name: str,
        mime_type: str,
        folder_id: str | None = None,
    ) -> dict:
        """Upload a local file; return ``{"id": ..., "webViewLink": ...}``."""
        metadata: dict[str, Any] = {"name": remote_name}
        if folder_id:
            metadata["parents"] = [folder_id]
        size = os.path.getsize(local_path)

        init = self._do_request(
            "POST",
            UPLOAD_URL,
            params={"uploadType": "resumable", "fields": _UPLOAD_FIELDS},
            headers=self._auth_headers({
                "Content-Type": "application/json; charset=UTF-8",
                "X-Upload-Content-Type": mime_type,
                "X-Upload-Content-Length": str(size),
            }),
            json=metadata,
        )
        self._raise_for_status(init, "upload session")
        session_url = init.headers.get("Location")
        if not session_url:
            raise StorageError("Drive upload session returned no Location header")

        with open(local_path, "rb") as fh:
            resp = self._do_request(
                "PUT",
                session_url,
                headers={"Content-Type": mime_type, "Content-Length": str(size)},
                data=fh,
            )
        self._raise_for_status(resp, "upload")

        body = self._json_body(resp, "upload")
        if not body.get("id"):
            raise StorageError("Drive upload response missing file id")
        logger.info("Uploaded %s to Drive id=%s (%d bytes)", remote_name, body["id"], size)
        return {"id": body["id"], "webViewLink": body.get("webViewLink")}

    def open_stream(self, file_id: str) -> requests.Response:
        """Open a streaming download. Caller must close the response."""
        resp = self._do_request(
            "GET",
            f"{FILES_URL}/{file_id}",
            params={"alt": "media"},
            headers=self._auth_headers(),
            stream=True,
        )
        if not resp.ok:
            resp.close()
        self._raise_for_status(resp, "download")
        return resp

    def delete_file(self, file_id: str) -> None:
        resp = self._do_request(
            "DELETE", f"{FILES_URL}/{file_id}", headers=self._auth_headers()
        )
        self._raise_for_status(resp, "delete")
        logger.info("Deleted Drive file id=%s", file_id)


def _read_json(path: str | None) -> dict:
    if not path or not os.path.exists(path):
        return {}
    with open(path, encoding="utf-8") as fh:
        return json.load(fh)


def init_drive_gateway(app) -> DriveGateway:
    """Build the gateway eagerly and register it on the app."""
    gateway = DriveGateway.from_config(app.config)
    app.extensions[EXTENSION_KEY] = gateway
    return gateway


def get_drive_gateway():
    """Return the gateway registered on the current app."""
    return current_app.extensions[EXTENSION_KEY]
