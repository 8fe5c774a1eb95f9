"""Slide image loading for the document exporters."""
import base64
import logging
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse

import requests

from src.core import get_settings

logger = logging.getLogger(__name__)

REMOTE_SCHEMES = ("http", "https")
LOCAL_SCHEMES = ("file", "")


def load_image(uri: Optional[str], timeout: Optional[int] = None, allow_local: bool = False) -> Optional[bytes]:
    """
    Fetch the bytes of a slide image.
    
    Supports http(s) URLs and ``data:`` URIs. ``file://`` URIs and plain
    paths are read only with ``allow_local``; decks arrive from clients, so
    the exporters never set it. Returns None when the image cannot be
    loaded; the caller omits the image.
    """
    if not uri:
        return None
    
    timeout = timeout or get_settings().image_fetch_timeout
    parsed = urlparse(uri)
    
    if parsed.scheme in LOCAL_SCHEMES and not allow_local:
        logger.warning(f"Refusing local image reference {uri[:80]}")
        return None
    
    try:
        if parsed.scheme in REMOTE_SCHEMES:
            response = requests.get(uri, timeout=timeout)
            response.raise_for_status()
            return response.content
        if parsed.scheme == "data":
            _, _, payload = uri.partition(",")
            return base64.b64decode(payload)
        if parsed.scheme == "file":
            return Path(unquote(parsed.path)).read_bytes()
        if parsed.scheme == "":
            return Path(uri).read_bytes()
    except (requests.RequestException, OSError, ValueError) as e:
        logger.warning(f"Could not load image {uri[:80]}: {e}")
        return None
    
    logger.warning(f"Unsupported image scheme {parsed.scheme!r}")
    return None
