# sitrack/uploader/storage.py
"""
Remote object storage for report attachments.

Files are PUT to ``<BLOB_BASE_URL>/sitrack-reports/<reportId>/<timestamp>-<name>``
with a bearer token. Without a configured token the uploader hands out mock
URLs so local setups keep working.
"""
import logging
import re
from datetime import datetime, timezone
from typing import Optional

import filetype
import requests
from flask import current_app
from werkzeug.utils import secure_filename

log = logging.getLogger(__name__)

BLOB_PREFIX = "sitrack-reports"
DEFAULT_BLOB_BASE_URL = "https://blob.vercel-storage.com"
DEFAULT_CONTENT_TYPE = "application/octet-stream"


class BlobStorageError(Exception):
    """Object store rejected (or never answered) a write."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def _cfg(key: str, default=None):
    return current_app.config.get(key, default)


def _timestamp_slug(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    iso = now.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return re.sub(r"[:.]", "-", iso)


def blob_path(report_id: str, filename: str, now: Optional[datetime] = None) -> str:
    name = secure_filename(filename or "") or "file"
    return f"{BLOB_PREFIX}/{secure_filename(report_id) or 'unknown'}/{_timestamp_slug(now)}-{name}"


def sniff_content_type(data: bytes, declared: Optional[str]) -> str:
    """Trust the browser's type when present, else sniff the magic bytes."""
    if declared and declared != DEFAULT_CONTENT_TYPE:
        return declared
    kind = filetype.guess(data[:8192]) if data else None
    return kind.mime if kind else DEFAULT_CONTENT_TYPE


class BlobStorage:
    def __init__(self, token: str, base_url: str = DEFAULT_BLOB_BASE_URL,
                 timeout: float = 30.0, http: Optional[requests.Session] = None):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()

    def url_for(self, path: str) -> str:
        return f"{self.base_url}/{path}"

    def put(self, path: str, data: bytes, content_type: str) -> str:
        """Upload ``data`` and return its public URL."""
        url = self.url_for(path)
        try:
            resp = self.http.put(
                url,
                data=data,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Content-Type": content_type,
                    "x-content-type": content_type,
                },
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise BlobStorageError(502, f"Blob API unreachable: {e}") from e

        if not resp.ok:
            raise BlobStorageError(resp.status_code, f"Blob API error: {resp.status_code} {resp.text}")

        try:
            body = resp.json()
        except ValueError:
            body = {}
        log.debug("Blob stored at %s", path)
        return (body or {}).get("url") or url


def get_blob_storage() -> Optional[BlobStorage]:
    """Storage client from app config, or None when no token is configured."""
    token = _cfg("BLOB_READ_WRITE_TOKEN")
    if not token:
        return None
    return BlobStorage(
        token,
        base_url=_cfg("BLOB_BASE_URL", DEFAULT_BLOB_BASE_URL),
        timeout=float(_cfg("BLOB_TIMEOUT", 30.0)),
    )
