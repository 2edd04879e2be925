# styleai/detect.py
from __future__ import annotations

import logging
from typing import List, Tuple

import cv2
import numpy as np

from .errors import ImageLoadFailure, NoFaceDetected
from .landmarks import Landmark, to_landmarks

# MediaPipe (optional `detector` extra)
try:
    import mediapipe as mp
except Exception:
    mp = None

logger = logging.getLogger(__name__)


def _decode_image_bytes(b: bytes) -> np.ndarray:
    if not b:
        raise ImageLoadFailure("upload", "no image received")
    arr = np.frombuffer(b, dtype=np.uint8)
    img = cv2.imdecode(arr, cv2.IMREAD_COLOR)
    if img is None:
        raise ImageLoadFailure("upload", "could not decode image")
    return img


def _face_mesh() -> "mp.solutions.face_mesh.FaceMesh":
    if mp is None or getattr(mp, "solutions", None) is None:
        raise RuntimeError("mediapipe FaceMesh is not available; install the 'detector' extra.")
    return mp.solutions.face_mesh.FaceMesh(
        static_image_mode=True,
        max_num_faces=1,
        refine_landmarks=False,  # 468 points; refinement appends iris points
        min_detection_confidence=0.6,
    )


def detect_landmarks(image_bytes: bytes) -> Tuple[List[Landmark], int, int]:
    """Run FaceMesh on an encoded image.

    Returns (landmarks, width, height); width and height are what the
    normalized coordinates are relative to.
    """
    img = _decode_image_bytes(image_bytes)
    h, w = img.shape[:2]
    rgb = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
    with _face_mesh() as fm:
        res = fm.process(rgb)
    if not res.multi_face_landmarks:
        raise NoFaceDetected("We couldn't find a face in your photo.")
    landmarks = to_landmarks(res.multi_face_landmarks[0].landmark)
    logger.info("detected %d landmarks on %dx%d image", len(landmarks), w, h)
    return landmarks, w, h
