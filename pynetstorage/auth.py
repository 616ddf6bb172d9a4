"""Request signing for the NetStorage HTTP API (auth version 5, HMAC-SHA256)."""

import base64
import hashlib
import hmac
import time
from typing import Optional
from urllib.parse import urlencode

from .config import NetStorageConfig
from .utils import generate_unique_id

AUTH_VERSION = 5


def build_action_header(action: str, params: Optional[dict[str, str]] = None) -> str:
    """Build the ``X-Akamai-ACS-Action`` header value.

    Examples:
        >>> build_action_header("dir")
        'version=1&action=dir&format=xml'
        >>> build_action_header("upload", {"upload-type": "binary"})
        'version=1&action=upload&format=xml&upload-type=binary'
    """
    query = {"version": "1", "action": action, "format": "xml"}
    if params:
        query.update(params)
    return urlencode(query)


def build_auth_headers(
    config: NetStorageConfig,
    request_path: str,
    action: str,
    params: Optional[dict[str, str]] = None,
    timestamp: Optional[int] = None,
    unique_id: Optional[str] = None,
) -> dict[str, str]:
    """Build the signed headers for a NetStorage request.

    Args:
        config: Client configuration holding the key and key name
        request_path: URL path of the request (including the CP code)
        action: NetStorage action (dir, stat, upload, ...)
        params: Extra action parameters (e.g. ``{"mtime": "1700000000"}``)
        timestamp: Request time (defaults to now)
        unique_id: Request identifier (defaults to a random one)

    Returns:
        Dictionary with the action, auth data and auth signature headers
    """
    action_header = build_action_header(action, params)
    if timestamp is None:
        timestamp = int(time.time())
    if unique_id is None:
        unique_id = generate_unique_id()

    auth_data = ", ".join(
        [
            str(AUTH_VERSION),
            "0.0.0.0",
            "0.0.0.0",
            str(timestamp),
            unique_id,
            config.key_name,
        ]
    )
    sign_string = (
        f"{request_path.rstrip('/') or '/'}\nx-akamai-acs-action:{action_header}\n"
    )
    digest = hmac.new(
        config.key.encode("utf-8"),
        (auth_data + sign_string).encode("utf-8"),
        hashlib.sha256,
    ).digest()

    return {
        "X-Akamai-ACS-Action": action_header,
        "X-Akamai-ACS-Auth-Data": auth_data,
        "X-Akamai-ACS-Auth-Sign": base64.b64encode(digest).decode("ascii"),
    }
