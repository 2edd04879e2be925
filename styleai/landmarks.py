# styleai/landmarks.py
from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from .errors import InvalidLandmarks

# MediaPipe FaceMesh topology
LANDMARK_COUNT = 468


class LandmarkIndex(IntEnum):
    """Landmark index map: semantic name -> FaceMesh index."""
    FOREHEAD_TOP    = 10
    CHIN_BOTTOM     = 152
    LEFT_CHEEKBONE  = 234
    RIGHT_CHEEKBONE = 454
    LEFT_JAW        = 58
    RIGHT_JAW       = 288
    LEFT_FOREHEAD   = 103
    RIGHT_FOREHEAD  = 332
    LEFT_EYE_OUTER  = 33
    RIGHT_EYE_OUTER = 263
    NOSE_TIP        = 4


def _check_index_map() -> None:
    values = [i.value for i in LandmarkIndex]
    if len(set(values)) != len(values):
        raise RuntimeError("LandmarkIndex has duplicate indices")
    out_of_range = [i.name for i in LandmarkIndex if not 0 <= i.value < LANDMARK_COUNT]
    if out_of_range:
        raise RuntimeError(f"LandmarkIndex entries outside {LANDMARK_COUNT}-point mesh: {out_of_range}")


_check_index_map()


@dataclass(frozen=True)
class Landmark:
    x: float
    y: float
    z: Optional[float] = None


@dataclass(frozen=True)
class KeyLandmarks:
    forehead_top: Landmark
    chin_bottom: Landmark
    left_cheekbone: Landmark
    right_cheekbone: Landmark
    left_jaw: Landmark
    right_jaw: Landmark
    left_forehead: Landmark
    right_forehead: Landmark
    left_eye_outer: Landmark
    right_eye_outer: Landmark
    nose_tip: Landmark


def extract_key_landmarks(landmarks: Sequence[Landmark]) -> KeyLandmarks:
    """Pick the 11 anchor points out of a full 468-point landmark set.

    Raises InvalidLandmarks if fewer than 468 points are supplied.
    """
    if landmarks is None or len(landmarks) < LANDMARK_COUNT:
        got = 0 if landmarks is None else len(landmarks)
        raise InvalidLandmarks(f"Expected at least {LANDMARK_COUNT} landmarks, got {got}")
    return KeyLandmarks(**{i.name.lower(): landmarks[i] for i in LandmarkIndex})


def _coerce(point: Any) -> Landmark:
    if isinstance(point, Landmark):
        return point
    if isinstance(point, Mapping):
        try:
            return Landmark(float(point["x"]), float(point["y"]),
                            None if point.get("z") is None else float(point["z"]))
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidLandmarks(f"Bad landmark mapping: {point!r}") from e
    if hasattr(point, "x") and hasattr(point, "y"):
        z = getattr(point, "z", None)
        return Landmark(float(point.x), float(point.y), None if z is None else float(z))
    if isinstance(point, (tuple, list)) and len(point) in (2, 3):
        z = point[2] if len(point) == 3 else None
        return Landmark(float(point[0]), float(point[1]), None if z is None else float(z))
    raise InvalidLandmarks(f"Unsupported landmark type: {type(point).__name__}")


def to_landmarks(raw: Iterable[Any]) -> List[Landmark]:
    """Convert detector output into Landmark values.

    Accepts FaceMesh NormalizedLandmark objects, {"x","y","z"} mappings or
    (x, y[, z]) tuples. This is the only place that knows what a detector
    result looks like.
    """
    if raw is None:
        raise InvalidLandmarks("No landmarks supplied")
    return [_coerce(p) for p in raw]
