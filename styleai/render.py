# styleai/render.py
from __future__ import annotations

import asyncio
import logging
import math
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from .config import SETTINGS
from .errors import CanvasUnavailable, InvalidLandmarks, RenderFailure, short_src
from .images import ImageCache
from .landmarks import Landmark, extract_key_landmarks
from .overlay import OverlayPosition, calculate_overlay_position

logger = logging.getLogger(__name__)

_TO_CENTRES = np.array([[1, 0, -0.5], [0, 1, -0.5], [0, 0, 1]], dtype=np.float64)
_FROM_CENTRES = np.array([[1, 0, 0.5], [0, 1, 0.5], [0, 0, 1]], dtype=np.float64)


def effective_canvas_size(display_width: float, display_height: float, device_pixel_ratio: float,
                          max_dim: int) -> Tuple[int, int]:
    """Physical buffer size: display size times DPR, capped per axis."""
    w = min(display_width * device_pixel_ratio, max_dim)
    h = min(display_height * device_pixel_ratio, max_dim)
    return max(1, int(round(w))), max(1, int(round(h)))


def _composite_over(dst: np.ndarray, src: np.ndarray) -> None:
    """Source-over blend of straight-alpha RGBA `src` into `dst`, in place."""
    sa = src[..., 3:4].astype(np.float32) / 255.0
    if not sa.any():
        return
    da = dst[..., 3:4].astype(np.float32) / 255.0
    out_a = sa + da * (1.0 - sa)
    rgb = (src[..., :3].astype(np.float32) * sa +
           dst[..., :3].astype(np.float32) * da * (1.0 - sa)) / np.maximum(out_a, 1e-6)
    dst[..., :3] = np.clip(np.rint(rgb), 0, 255).astype(np.uint8)
    dst[..., 3:4] = np.clip(np.rint(out_a * 255.0), 0, 255).astype(np.uint8)


class DrawingContext:
    """2D drawing state over a Canvas: current affine transform plus a save/restore stack.

    Coordinates passed to drawing calls are user-space; the transform maps
    them to device pixels.
    """

    def __init__(self, canvas: "Canvas"):
        self.canvas = canvas
        self._matrix = np.eye(3)
        self._stack: List[np.ndarray] = []

    @property
    def matrix(self) -> np.ndarray:
        return self._matrix.copy()

    def save(self) -> None:
        self._stack.append(self._matrix.copy())

    def restore(self) -> None:
        if self._stack:
            self._matrix = self._stack.pop()

    def reset_transform(self) -> None:
        self._matrix = np.eye(3)
        self._stack.clear()

    def scale(self, sx: float, sy: float) -> None:
        self._matrix = self._matrix @ np.array([[sx, 0, 0], [0, sy, 0], [0, 0, 1]], dtype=np.float64)

    def translate(self, tx: float, ty: float) -> None:
        self._matrix = self._matrix @ np.array([[1, 0, tx], [0, 1, ty], [0, 0, 1]], dtype=np.float64)

    def rotate(self, theta: float) -> None:
        c, s = math.cos(theta), math.sin(theta)
        self._matrix = self._matrix @ np.array([[c, -s, 0], [s, c, 0], [0, 0, 1]], dtype=np.float64)

    def transform_point(self, x: float, y: float) -> Tuple[float, float]:
        px, py, _ = self._matrix @ np.array([x, y, 1.0])
        return float(px), float(py)

    def clear(self) -> None:
        self.canvas.pixels[...] = 0

    def draw_image(self, image: np.ndarray, dx: float, dy: float, dw: float, dh: float) -> None:
        """Draw an RGBA image into the user-space rect (dx, dy, dw, dh).

        Sampling is at pixel centres and clamps to the image edge; coverage is
        the set of device pixels whose centre falls inside the mapped rect.
        """
        ih, iw = image.shape[:2]
        if dw <= 0 or dh <= 0 or iw == 0 or ih == 0:
            return
        place = np.array([[dw / iw, 0, dx], [0, dh / ih, dy], [0, 0, 1]], dtype=np.float64)
        # corner-based pixel space -> OpenCV's centre-based one
        m = (_TO_CENTRES @ self._matrix @ place @ _FROM_CENTRES)[:2]
        target = self.canvas.pixels
        size = (target.shape[1], target.shape[0])
        warped = cv2.warpAffine(np.ascontiguousarray(image), m, size,
                                flags=cv2.INTER_LINEAR, borderMode=cv2.BORDER_REPLICATE)
        inside = cv2.warpAffine(np.ones((ih, iw), dtype=np.uint8), m, size,
                                flags=cv2.INTER_NEAREST, borderMode=cv2.BORDER_CONSTANT, borderValue=0)
        warped[..., 3] *= inside
        _composite_over(target, warped)


class Canvas:
    """In-memory RGBA drawing surface with a display size and device pixel ratio."""

    def __init__(self, display_width: int, display_height: int, device_pixel_ratio: float = 1.0):
        self.width = 0
        self.height = 0
        self.pixels = np.zeros((0, 0, 4), dtype=np.uint8)
        self.allocations = 0
        self.generation = 0  # newest render started on this canvas
        self.closed = False
        self._context: Optional[DrawingContext] = None
        self.set_display(display_width, display_height, device_pixel_ratio)

    def set_display(self, display_width: int, display_height: int, device_pixel_ratio: float = 1.0) -> None:
        if display_width <= 0 or display_height <= 0 or device_pixel_ratio <= 0:
            raise ValueError(f"bad display geometry {display_width}x{display_height}@{device_pixel_ratio}")
        self.display_width = display_width
        self.display_height = display_height
        self.device_pixel_ratio = device_pixel_ratio

    def set_size(self, width: int, height: int) -> bool:
        """Reallocate the pixel buffer. Returns False when the size is unchanged."""
        if (width, height) == (self.width, self.height):
            return False
        self.width, self.height = width, height
        self.pixels = np.zeros((height, width, 4), dtype=np.uint8)
        self.allocations += 1
        return True

    def get_context(self, kind: str = "2d") -> Optional[DrawingContext]:
        if self.closed or kind != "2d":
            return None
        if self._context is None:
            self._context = DrawingContext(self)
        return self._context

    def close(self) -> None:
        self.closed = True
        self._context = None

    async def to_blob(self) -> bytes:
        """PNG bytes of the current pixels. Does not touch drawing state."""
        if self.width == 0 or self.height == 0:
            raise RenderFailure("Canvas has not been drawn yet")
        ok, buf = cv2.imencode(".png", cv2.cvtColor(self.pixels, cv2.COLOR_RGBA2BGRA))
        if not ok:
            raise RenderFailure("PNG encoding failed")
        return buf.tobytes()


class RenderPipeline:
    """Loads the photo and template, then composites the rotated overlay.

    Renders are last-request-wins per canvas: every call takes a generation
    number, and a call whose images finish loading after a newer call on the
    same canvas has started leaves that canvas alone.
    """

    def __init__(self, cache: ImageCache, max_dim: Optional[int] = None):
        self.cache = cache
        self.max_dim = max_dim or SETTINGS.max_canvas_dim
        self._generation = 0

    @property
    def latest_generation(self) -> int:
        return self._generation

    def next_generation(self) -> int:
        self._generation += 1
        return self._generation

    async def render_preview(self, canvas: Canvas, user_image_src: str, hairstyle_image_src: str,
                             landmarks: Sequence[Landmark], *, generation: Optional[int] = None) -> bool:
        """Draw photo + hairstyle onto `canvas`.

        Returns True when drawn, False when a newer render superseded this one.
        Raises CanvasUnavailable, ImageLoadFailure, InvalidLandmarks or
        RenderFailure.
        """
        if generation is None:
            generation = self.next_generation()
        else:
            self._generation = max(self._generation, generation)
        canvas.generation = max(canvas.generation, generation)

        ctx = canvas.get_context("2d")
        if ctx is None:
            raise CanvasUnavailable("Could not get a 2D drawing context")
        extract_key_landmarks(landmarks)

        # the photo is per-request; only templates stay cached
        user_image, template = await asyncio.gather(
            self.cache.load_image(user_image_src, cache=False),
            self.cache.load_image(hairstyle_image_src),
        )

        if generation < canvas.generation:
            logger.debug("render %d superseded by %d, dropping", generation, canvas.generation)
            return False

        try:
            position = self._composite(canvas, ctx, user_image, template, landmarks)
        except (CanvasUnavailable, InvalidLandmarks):
            raise
        except Exception as e:
            logger.exception("render %d failed for template %s", generation, short_src(hairstyle_image_src))
            raise RenderFailure(f"Failed to render hairstyle preview: {e}") from e

        logger.debug("render %d drawn at (%.1f, %.1f) %.1fx%.1f rot=%.3f", generation,
                     position.x, position.y, position.width, position.height, position.rotation)
        return True

    def _composite(self, canvas: Canvas, ctx: DrawingContext, user_image: np.ndarray, template: np.ndarray,
                   landmarks: Sequence[Landmark]) -> OverlayPosition:
        dw, dh = canvas.display_width, canvas.display_height
        w, h = effective_canvas_size(dw, dh, canvas.device_pixel_ratio, self.max_dim)

        # 1. reset and size
        ctx.reset_transform()
        if not canvas.set_size(w, h):
            ctx.clear()
        ctx.scale(w / dw, h / dh)

        # 2. photo stretched to fill
        ctx.draw_image(user_image, 0, 0, dw, dh)

        # 3. template rotated about its own centre
        th, tw = template.shape[:2]
        position = calculate_overlay_position(landmarks, dw, dh, th / tw)
        ctx.save()
        ctx.translate(position.center_x, position.center_y)
        ctx.rotate(position.rotation)
        ctx.draw_image(template, -position.width / 2.0, -position.height / 2.0, position.width, position.height)
        ctx.restore()
        return position

    async def render_png(self, user_image_src: str, hairstyle_image_src: str, landmarks: Sequence[Landmark],
                         display_width: int, display_height: int, device_pixel_ratio: float = 1.0) -> bytes:
        canvas = Canvas(display_width, display_height, device_pixel_ratio)
        await self.render_preview(canvas, user_image_src, hairstyle_image_src, landmarks)
        return await canvas.to_blob()
