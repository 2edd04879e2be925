# styleai/measurements.py
from __future__ import annotations

import math

from .errors import InvalidLandmarks
from .landmarks import KeyLandmarks, Landmark
from .schemas import FaceMeasurements


def calculate_distance(a: Landmark, b: Landmark, image_width: float = 1.0, image_height: float = 1.0) -> float:
    # Denormalize before measuring: x and y scale by different factors on
    # non-square images, so ratios are only true to the face in pixel space.
    return math.hypot((b.x - a.x) * image_width, (b.y - a.y) * image_height)


def calculate_measurements(key: KeyLandmarks, image_width: float, image_height: float) -> FaceMeasurements:
    """Pixel distances across the face and the four ratios the classifier reads."""
    if image_width <= 0 or image_height <= 0:
        raise InvalidLandmarks(f"Image dimensions must be positive, got {image_width}x{image_height}")

    def d(a: Landmark, b: Landmark) -> float:
        return calculate_distance(a, b, image_width, image_height)

    face_height = d(key.forehead_top, key.chin_bottom)
    # cheekbone line is the widest point of the face
    face_width = d(key.left_cheekbone, key.right_cheekbone)
    jaw_width = d(key.left_jaw, key.right_jaw)
    forehead_width = d(key.left_forehead, key.right_forehead)

    widths = {"face_height": face_height, "face_width": face_width,
              "jaw_width": jaw_width, "forehead_width": forehead_width}
    degenerate = [k for k, v in widths.items() if not v > 0]
    if degenerate:
        raise InvalidLandmarks(f"Degenerate face geometry, zero-length: {', '.join(degenerate)}")

    return FaceMeasurements(
        face_width=face_width,
        face_height=face_height,
        jaw_width=jaw_width,
        cheekbone_width=face_width,
        forehead_width=forehead_width,
        width_height_ratio=face_width / face_height,
        jaw_cheek_ratio=jaw_width / face_width,
        forehead_jaw_ratio=forehead_width / jaw_width,
        forehead_cheek_ratio=forehead_width / face_width,
    )
