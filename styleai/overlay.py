# styleai/overlay.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

from .landmarks import Landmark, extract_key_landmarks

# ---------------- Tunables ----------------
OVERSCAN      = 1.3   # hair extends past the skull width
CROWN_OFFSET  = 0.35  # share of overlay height placed above the forehead landmark
# ------------------------------------------


@dataclass(frozen=True)
class OverlayPosition:
    x: float         # top-left, canvas pixels
    y: float
    width: float
    height: float
    rotation: float  # radians, positive = clockwise on screen

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2.0

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2.0


def calculate_overlay_position(landmarks: Sequence[Landmark], canvas_width: float, canvas_height: float,
                               template_aspect_ratio: float) -> OverlayPosition:
    """Place a hairstyle template over the face.

    template_aspect_ratio is the template's height / width.
    """
    if template_aspect_ratio <= 0:
        raise ValueError(f"template_aspect_ratio must be positive, got {template_aspect_ratio}")
    key = extract_key_landmarks(landmarks)
    lc, rc = key.left_cheekbone, key.right_cheekbone

    face_width = abs(rc.x - lc.x) * canvas_width
    width = face_width * OVERSCAN
    height = width * template_aspect_ratio

    center_x = (lc.x + rc.x) / 2.0 * canvas_width
    top_y = key.forehead_top.y * canvas_height - CROWN_OFFSET * height

    le, re = key.left_eye_outer, key.right_eye_outer
    rotation = math.atan2((re.y - le.y) * canvas_height, (re.x - le.x) * canvas_width)

    return OverlayPosition(x=center_x - width / 2.0, y=top_y, width=width, height=height, rotation=rotation)
