"""Turn image locations (data URLs, http URLs, files) into owned PNG bytes."""

from __future__ import annotations

import base64
import binascii
import io
import logging
import re
from pathlib import Path
from urllib.parse import unquote, unquote_to_bytes, urlparse

import httpx
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[^;,]+)?(?P<params>(;[^;,]+)*?)(?P<b64>;base64)?,(?P<data>.*)$", re.DOTALL)

_HEADERS = {"Accept": "image/*,*/*;q=0.8"}


class MaterializationError(OSError):
    """Raised when an image location cannot be fetched or decoded."""


def parse_data_url(url: str) -> tuple[str, bytes]:
    """Split a ``data:`` URL into its MIME type and decoded payload."""
    match = _DATA_URL_RE.match(url)
    if not match:
        raise MaterializationError("Invalid data URL")
    mime = match.group("mime")
    if not mime:
        raise MaterializationError("Could not parse MIME type from data URL")
    data = match.group("data")
    if match.group("b64"):
        try:
            payload = base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            raise MaterializationError(f"Invalid base64 payload in data URL: {e}") from e
    else:
        payload = unquote_to_bytes(data)
    return mime, payload


def to_data_url(content: bytes, mime_type: str = "image/png") -> str:
    return f"data:{mime_type};base64,{base64.b64encode(content).decode('ascii')}"


def sniff_mime_type(content: bytes) -> str:
    """Best-effort MIME type of encoded image bytes, defaulting to PNG."""
    try:
        with Image.open(io.BytesIO(content)) as image:
            return Image.MIME.get(image.format or "", "image/png")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError):
        return "image/png"


def normalize_to_png(content: bytes) -> bytes:
    """Decode arbitrary image bytes and re-encode them as PNG."""
    try:
        with Image.open(io.BytesIO(content)) as image:
            image.load()
            if image.mode not in ("RGB", "RGBA", "L", "LA"):
                image = image.convert("RGBA")
            buffer = io.BytesIO()
            image.save(buffer, format="PNG")
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise MaterializationError(f"Could not decode image: {e}") from e
    return buffer.getvalue()


class Materializer:
    """Fetches image bytes from any supported location.

    An ``httpx.AsyncClient`` can be injected; otherwise a short-lived client is
    created per remote fetch.
    """

    def __init__(self, http_client: httpx.AsyncClient | None = None, timeout: float = 30.0):
        self.http_client = http_client
        self.timeout = timeout

    async def materialize(self, location: str) -> bytes:
        """Return the image at ``location`` as owned PNG bytes."""
        if not location:
            raise MaterializationError("Empty image location")

        if location.startswith("data:"):
            _, raw = parse_data_url(location)
        elif location.startswith(("http://", "https://")):
            raw = await self._fetch(location)
        else:
            raw = self._read_file(location)

        return normalize_to_png(raw)

    async def _fetch(self, url: str) -> bytes:
        try:
            if self.http_client is not None:
                resp = await self.http_client.get(url, headers=_HEADERS)
            else:
                async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
                    resp = await client.get(url, headers=_HEADERS)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Image download failed for {url}: {e}")
            raise MaterializationError(f"Could not load image from {url}: {e}") from e
        return resp.content

    @staticmethod
    def _read_file(location: str) -> bytes:
        if location.startswith("file://"):
            path = Path(unquote(urlparse(location).path))
        else:
            path = Path(location).expanduser()
        try:
            return path.read_bytes()
        except OSError as e:
            raise MaterializationError(f"Could not read image file {path}: {e}") from e
