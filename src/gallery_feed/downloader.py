"""HTTP session management and stream-opening helpers for gallery_feed.

These are the generic "resolve a location to a byte stream" capabilities the
archive resolver falls back on: local paths and ``file:`` URIs are opened
directly, anything else is fetched over HTTP.
"""

from __future__ import annotations

import atexit
import io
import logging
import re
from typing import BinaryIO, List, Optional
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

import requests
from requests.utils import requote_uri

from . import config_constants

logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 1024 * 256
NETWORK_SCHEMES = frozenset({"http", "https"})
_WINDOWS_DRIVE_RE = re.compile(r"^[A-Za-z]:[\\/]")

_SESSION: Optional[requests.Session] = None
_SESSION_REGISTRY: List[requests.Session] = []


def normalize_url(url: str) -> str:
    """Normalize URLs while preserving already-encoded segments."""
    return requote_uri(url)


def is_local_reference(location: str) -> bool:
    """Return True when ``location`` names a file on the local filesystem.

    ``file:`` URIs, Windows drive paths and scheme-less paths are local;
    anything carrying another URL scheme is not.
    """
    if location.lower().startswith("file:"):
        return True
    if _WINDOWS_DRIVE_RE.match(location):
        return True
    return not urlparse(location).scheme


def to_local_path(location: str) -> str:
    """Convert a local reference into a filesystem path."""
    if not location.lower().startswith("file:"):
        return location
    remainder = location[len("file:") :]
    if remainder.startswith("//"):
        parsed = urlparse(location)
        path = url2pathname(unquote(parsed.path))
        if parsed.netloc and parsed.netloc.lower() != "localhost":
            # UNC share: file://server/share/file.vsix
            return f"//{parsed.netloc}{path}"
        return path
    return remainder


def _get_request_session() -> requests.Session:
    global _SESSION
    if _SESSION is None:
        _SESSION = requests.Session()
        _SESSION_REGISTRY.append(_SESSION)
    return _SESSION


def _close_all_sessions() -> None:
    global _SESSION
    for session in _SESSION_REGISTRY:
        try:
            session.close()
        except Exception:  # pragma: no cover - best effort cleanup
            pass
    _SESSION_REGISTRY.clear()
    _SESSION = None


atexit.register(_close_all_sessions)


def fetch_url(url: str, user_agent: str, timeout: int) -> requests.Response:
    """Execute a streaming HTTP GET and return the response.

    Raises:
        requests.RequestException: On connection failures or non-2xx responses
    """
    normalized_url = normalize_url(url)
    headers = {"User-Agent": user_agent}
    logger.debug(f"Fetching {normalized_url}")
    session = _get_request_session()
    resp = session.get(normalized_url, headers=headers, timeout=timeout, stream=True)
    try:
        resp.raise_for_status()
    except requests.RequestException:
        resp.close()
        raise
    return resp


def open_remote(
    url: str,
    user_agent: str = config_constants.DEFAULT_USER_AGENT,
    timeout: int = config_constants.DEFAULT_TIMEOUT_SECONDS,
) -> BinaryIO:
    """Download ``url`` into a seekable in-memory stream.

    Zip readers need random access, so the body is buffered completely before
    it is handed back.
    """
    resp = fetch_url(url, user_agent, timeout)
    buffer = io.BytesIO()
    try:
        for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
            if chunk:
                buffer.write(chunk)
    except BaseException:
        buffer.close()
        raise
    finally:
        resp.close()
    buffer.seek(0)
    logger.debug(f"Fetched {buffer.getbuffer().nbytes} bytes from {url}")
    return buffer


def open_local(location: str) -> BinaryIO:
    """Open a local reference for reading.

    Other readers are not excluded; on Windows Python opens files with
    read/write sharing enabled.
    """
    return open(to_local_path(location), "rb")


def open_resource(
    location: str,
    user_agent: str = config_constants.DEFAULT_USER_AGENT,
    timeout: int = config_constants.DEFAULT_TIMEOUT_SECONDS,
) -> BinaryIO:
    """Resolve any plain location (path, ``file:`` or ``http(s):`` URL) to a stream."""
    if is_local_reference(location):
        return open_local(location)
    scheme = urlparse(location).scheme.lower()
    if scheme not in NETWORK_SCHEMES:
        raise ValueError(f"Unsupported URL scheme '{scheme}' in {location}")
    return open_remote(location, user_agent, timeout)
