from __future__ import annotations

import base64
from typing import Dict, List, Optional, Tuple

import cv2
import numpy as np
import pytest

from styleai.landmarks import LANDMARK_COUNT, Landmark, LandmarkIndex
from styleai.schemas import FaceMeasurements


def build_landmarks(points: Optional[Dict[str, Tuple[float, float]]] = None,
                    count: int = LANDMARK_COUNT) -> List[Landmark]:
    """468 points parked at the centre, with named anchors overridden."""
    lm = [Landmark(0.5, 0.5, 0.0) for _ in range(count)]
    for name, (x, y) in (points or {}).items():
        lm[LandmarkIndex[name.upper()]] = Landmark(x, y, 0.0)
    return lm


def engineered_landmarks(whr: float, jcr: float, fjr: Optional[float] = None,
                         width: float = 1000, height: float = 1000,
                         eye_dy: float = 0.0) -> List[Landmark]:
    """Landmarks whose pixel geometry on a width x height image has the given ratios."""
    s = min(width, height)
    cx, top = width / 2.0, 0.3 * height
    face_h = 0.4 * s
    face_w = whr * face_h
    jaw_w = jcr * face_w
    fore_w = jaw_w * fjr if fjr is not None else face_w * 0.9
    eye_y = top + 0.3 * face_h

    px = {
        "forehead_top": (cx, top),
        "chin_bottom": (cx, top + face_h),
        "left_cheekbone": (cx - face_w / 2, top + 0.5 * face_h),
        "right_cheekbone": (cx + face_w / 2, top + 0.5 * face_h),
        "left_jaw": (cx - jaw_w / 2, top + 0.8 * face_h),
        "right_jaw": (cx + jaw_w / 2, top + 0.8 * face_h),
        "left_forehead": (cx - fore_w / 2, top + 0.1 * face_h),
        "right_forehead": (cx + fore_w / 2, top + 0.1 * face_h),
        "left_eye_outer": (cx - 0.35 * face_w, eye_y),
        "right_eye_outer": (cx + 0.35 * face_w, eye_y + eye_dy),
        "nose_tip": (cx, top + 0.55 * face_h),
    }
    return build_landmarks({k: (x / width, y / height) for k, (x, y) in px.items()})


def make_measurements(whr: float, jcr: float, fjr: float = 1.0,
                      fcr: Optional[float] = None) -> FaceMeasurements:
    face_h = 200.0
    face_w = face_h * whr
    jaw_w = face_w * jcr
    fore_w = jaw_w * fjr
    return FaceMeasurements(
        face_width=face_w,
        face_height=face_h,
        jaw_width=jaw_w,
        cheekbone_width=face_w,
        forehead_width=fore_w,
        width_height_ratio=whr,
        jaw_cheek_ratio=jcr,
        forehead_jaw_ratio=fjr,
        forehead_cheek_ratio=fcr if fcr is not None else fore_w / face_w,
    )


def encode_png(img: np.ndarray) -> bytes:
    ok, buf = cv2.imencode(".png", cv2.cvtColor(img, cv2.COLOR_RGBA2BGRA))
    assert ok
    return buf.tobytes()


def png_bytes(width: int, height: int, rgba: Tuple[int, int, int, int]) -> bytes:
    img = np.zeros((height, width, 4), dtype=np.uint8)
    img[...] = rgba
    return encode_png(img)


def to_data_uri(data: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(data).decode("ascii")


def png_data_uri(width: int, height: int, rgba: Tuple[int, int, int, int]) -> str:
    return to_data_uri(png_bytes(width, height, rgba))


@pytest.fixture
def landmarks_factory():
    return build_landmarks


@pytest.fixture
def engineered():
    return engineered_landmarks


@pytest.fixture
def measurements():
    return make_measurements


@pytest.fixture
def data_uri():
    return png_data_uri


@pytest.fixture
def png():
    return png_bytes


@pytest.fixture
def array_uri():
    return lambda img: to_data_uri(encode_png(img))


@pytest.fixture
def face_landmarks() -> List[Landmark]:
    """Level, symmetric face: cheekbones at x=0.4/0.6, forehead top at y=0.3."""
    return build_landmarks({
        "forehead_top": (0.5, 0.3),
        "chin_bottom": (0.5, 0.7),
        "left_cheekbone": (0.4, 0.5),
        "right_cheekbone": (0.6, 0.5),
        "left_jaw": (0.42, 0.62),
        "right_jaw": (0.58, 0.62),
        "left_forehead": (0.42, 0.34),
        "right_forehead": (0.58, 0.34),
        "left_eye_outer": (0.43, 0.42),
        "right_eye_outer": (0.57, 0.42),
        "nose_tip": (0.5, 0.52),
    })
