# styleai/main.py

import logging
from typing import Any, Dict, List

from fastapi import FastAPI, File, HTTPException, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response

import uvicorn

from styleai import face_shape, suggester
from styleai.config import configure_logging
from styleai.detect import detect_landmarks
from styleai.errors import (CanvasUnavailable, ImageLoadFailure, InvalidLandmarks, NoFaceDetected,
                            RenderFailure, StyleAIError, ValidationServiceError, get_error_message)
from styleai.images import ImageCache
from styleai.landmarks import Landmark, to_landmarks
from styleai.overlay import calculate_overlay_position
from styleai.render import RenderPipeline
from styleai.schemas import (ClassifyRequest, DetectResponse, FaceClassification, Hairstyle, LandmarkIn, OverlayOut,
                             OverlayRequest, PreviewRequest, RecommendResponse)
from styleai.validation import ValidationClient

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="StyleAI Face API", version="1.0")

# CORS: permissive for now, tighten to the frontend's domain
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Templates are cached per process; user photos are never kept
image_cache = ImageCache()
pipeline = RenderPipeline(image_cache)
validator = ValidationClient()

_STATUS = {
    InvalidLandmarks: 422,
    NoFaceDetected: 422,
    ImageLoadFailure: 400,
    ValidationServiceError: 502,
    CanvasUnavailable: 500,
    RenderFailure: 500,
}


def _http_error(e: StyleAIError) -> HTTPException:
    status = next((s for cls, s in _STATUS.items() if isinstance(e, cls)), 500)
    detail: Dict[str, Any] = {**e.to_dict(), **get_error_message(e.code)}
    detail["message"] = e.message
    return HTTPException(status_code=status, detail=detail)


def _landmarks(points: List[LandmarkIn]) -> List[Landmark]:
    return to_landmarks(p.model_dump() for p in points)


@app.get("/health")
def health() -> Dict[str, Any]:
    return {"ok": True, "version": app.version}


@app.post("/classify", response_model=FaceClassification)
def classify(req: ClassifyRequest) -> FaceClassification:
    try:
        return face_shape.classify_face_shape(_landmarks(req.landmarks), req.image_width, req.image_height)
    except StyleAIError as e:
        raise _http_error(e)


@app.post("/detect/face-shape", response_model=DetectResponse)
async def detect_face_shape(
    file: UploadFile = File(..., description="single photo"),
    validate: bool = Query(False, description="ask the validation service to confirm"),
) -> DetectResponse:
    data = await file.read()
    try:
        landmarks, w, h = detect_landmarks(data)
        result = face_shape.classify_face_shape(landmarks, w, h)
        validated = False
        if validate and validator.enabled:
            result = await validator.validate(result, len(landmarks), image=data)
            validated = True
    except StyleAIError as e:
        raise _http_error(e)
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=f"Detector unavailable: {e}")

    return DetectResponse(
        classification=result,
        recommendations=suggester.get_recommendations(result.shape),
        landmark_count=len(landmarks),
        validated=validated,
        style_tips=face_shape.get_style_recommendations(result.shape),
    )


@app.post("/overlay", response_model=OverlayOut)
def overlay(req: OverlayRequest) -> OverlayOut:
    try:
        pos = calculate_overlay_position(_landmarks(req.landmarks), req.canvas_width, req.canvas_height,
                                         req.template_aspect_ratio)
    except StyleAIError as e:
        raise _http_error(e)
    return OverlayOut(x=pos.x, y=pos.y, width=pos.width, height=pos.height, rotation=pos.rotation)


@app.post("/preview", responses={200: {"content": {"image/png": {}}}})
async def preview(req: PreviewRequest) -> Response:
    try:
        png = await pipeline.render_png(req.user_image, req.hairstyle_image, _landmarks(req.landmarks),
                                        req.display_width, req.display_height, req.device_pixel_ratio)
    except StyleAIError as e:
        raise _http_error(e)
    return Response(content=png, media_type="image/png")


@app.get("/recommend", response_model=RecommendResponse)
def recommend(shape: str = Query(..., description="face shape")) -> RecommendResponse:
    try:
        styles = suggester.get_recommendations(shape)
    except ValueError:
        raise HTTPException(status_code=400, detail={"code": "INVALID_SHAPE", "message": "Valid face shape is required"})
    return RecommendResponse(face_shape=shape.lower().strip(), recommendations=styles)


@app.get("/hairstyles/{style_id}", response_model=Hairstyle)
def hairstyle(style_id: str) -> Hairstyle:
    style = suggester.get_hairstyle_by_id(style_id)
    if style is None:
        raise HTTPException(status_code=404, detail={"code": "NOT_FOUND", "message": f"No hairstyle {style_id}"})
    return style


if __name__ == "__main__":
    uvicorn.run("styleai.main:app", host="0.0.0.0", port=8000, reload=False)
