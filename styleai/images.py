# styleai/images.py
from __future__ import annotations

import asyncio
import base64
import binascii
import logging
from io import BytesIO
from pathlib import Path
from typing import Awaitable, Callable, Dict, Iterable, Optional
from urllib.parse import unquote_to_bytes

import httpx
import numpy as np
from PIL import Image, ImageOps, UnidentifiedImageError

from .config import SETTINGS
from .errors import ImageLoadFailure, short_src

logger = logging.getLogger(__name__)

Fetcher = Callable[[str], Awaitable[bytes]]
Progress = Callable[[int, int], None]


def decode_data_uri(src: str) -> bytes:
    """data:[<mime>][;base64],<payload> -> raw bytes."""
    header, sep, payload = src.partition(",")
    if not sep:
        raise ValueError("data URI has no payload")
    if header.endswith(";base64"):
        try:
            return base64.b64decode(payload, validate=False)
        except binascii.Error as e:
            raise ValueError(f"bad base64 payload: {e}") from e
    return unquote_to_bytes(payload)


def decode_image(data: bytes) -> np.ndarray:
    """Encoded image bytes -> HxWx4 RGBA uint8 array.

    EXIF orientation is applied so phone photos come out upright.
    """
    if not data:
        raise ValueError("empty image data")
    with Image.open(BytesIO(data)) as im:
        im = ImageOps.exif_transpose(im)
        rgba = np.array(im.convert("RGBA"))
    return rgba


async def fetch_source(src: str, timeout: Optional[float] = None,
                       transport: Optional[httpx.AsyncBaseTransport] = None) -> bytes:
    """Bytes of a data: URI or an http(s) URL. Anything else is refused."""
    if src.startswith("data:"):
        return decode_data_uri(src)
    if src.startswith(("http://", "https://")):
        async with httpx.AsyncClient(timeout=timeout or SETTINGS.fetch_timeout, transport=transport) as client:
            resp = await client.get(src)
            resp.raise_for_status()
            return resp.content
    raise ValueError("unsupported image source")


class SourceFetcher:
    """Fetcher with a policy on where images may come from.

    data: URIs always load. http(s) URLs load only from `allowed_hosts`
    ("*" allows any host). Other strings are paths relative to
    `template_dir` and must stay inside it; without a template_dir they are
    refused.
    """

    def __init__(self, template_dir: Optional[str] = None, allowed_hosts: Iterable[str] = (),
                 timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.template_dir = Path(template_dir).resolve() if template_dir else None
        self.allowed_hosts = {h.strip().lower() for h in allowed_hosts if h.strip()}
        self.timeout = timeout
        self.transport = transport

    @classmethod
    def from_settings(cls) -> "SourceFetcher":
        return cls(template_dir=SETTINGS.template_dir or None, allowed_hosts=SETTINGS.image_hosts.split(","))

    def _host_allowed(self, src: str) -> bool:
        if "*" in self.allowed_hosts:
            return True
        try:
            return httpx.URL(src).host.lower() in self.allowed_hosts
        except httpx.InvalidURL:
            return False

    def resolve_path(self, src: str) -> Path:
        if self.template_dir is None:
            raise ValueError("local image paths are not accepted")
        path = (self.template_dir / src.lstrip("/")).resolve()
        if not path.is_relative_to(self.template_dir):
            raise ValueError("image path escapes the template directory")
        return path

    async def __call__(self, src: str) -> bytes:
        if src.startswith(("http://", "https://")):
            if not self._host_allowed(src):
                raise ValueError("image host not allowed")
            return await fetch_source(src, self.timeout, self.transport)
        if src.startswith("data:"):
            return decode_data_uri(src)
        return self.resolve_path(src).read_bytes()


class ImageCache:
    """Decoded images keyed by source string.

    Grow-only: meant for the few dozen hairstyle templates. One-off images
    such as user photos go through `load_image(src, cache=False)`.
    Concurrent first loads of one source share a single decode. Failed loads
    are not remembered, so a retry fetches again.
    """

    def __init__(self, fetcher: Optional[Fetcher] = None):
        self._fetch: Fetcher = fetcher or SourceFetcher.from_settings()
        self._images: Dict[str, np.ndarray] = {}
        self._pending: Dict[str, asyncio.Future] = {}
        self._epoch = 0
        self.decode_count = 0

    def __contains__(self, src: str) -> bool:
        return src in self._images

    def __len__(self) -> int:
        return len(self._images)

    async def load_image(self, src: str, cache: bool = True) -> np.ndarray:
        cached = self._images.get(src)
        if cached is not None:
            return cached
        if not cache:
            return await self._load(src, None)
        pending = self._pending.get(src)
        if pending is None:
            pending = asyncio.ensure_future(self._load(src, self._epoch))
            self._pending[src] = pending
            pending.add_done_callback(lambda f, s=src: self._forget(s, f))
        return await pending

    def _forget(self, src: str, fut: asyncio.Future) -> None:
        if self._pending.get(src) is fut:
            del self._pending[src]

    async def _load(self, src: str, epoch: Optional[int]) -> np.ndarray:
        """Fetch and decode. Stored only if `epoch` is still current; None never stores."""
        try:
            data = await self._fetch(src)
        except (OSError, ValueError, httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("image fetch failed: %s: %s", short_src(src), e)
            raise ImageLoadFailure(src, str(e)) from e
        try:
            image = decode_image(data)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.warning("image decode failed: %s: %s", short_src(src), e)
            raise ImageLoadFailure(src, "could not decode image") from e
        self.decode_count += 1
        if epoch is not None and epoch == self._epoch:
            self._images[src] = image
            logger.debug("cached %s (%dx%d), %d images held", short_src(src), image.shape[1], image.shape[0], len(self._images))
        return image

    async def preload(self, sources: Iterable[str], on_progress: Optional[Progress] = None) -> int:
        """Load many templates at once. Failures are logged, not raised.

        `on_progress(done, total)` fires after each source settles.
        Returns how many loaded.
        """
        sources = list(dict.fromkeys(sources))
        total = len(sources)
        done = 0

        async def one(src: str) -> None:
            nonlocal done
            try:
                await self.load_image(src)
            finally:
                done += 1
                if on_progress is not None:
                    on_progress(done, total)

        results = await asyncio.gather(*(one(s) for s in sources), return_exceptions=True)
        failed = [r for r in results if isinstance(r, BaseException)]
        for err in failed:
            logger.warning("preload skipped: %s", err)
        logger.info("preloaded %d/%d images", total - len(failed), total)
        return total - len(failed)

    def clear_cache(self) -> None:
        self._images.clear()
        self._pending.clear()
        self._epoch += 1
        logger.info("image cache cleared")
