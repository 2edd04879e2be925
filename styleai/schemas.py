from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class FaceShape(str, Enum):
    OVAL = "oval"
    ROUND = "round"
    SQUARE = "square"
    HEART = "heart"
    OBLONG = "oblong"
    DIAMOND = "diamond"


class _Model(BaseModel):
    # snake_case in Python, camelCase on the wire
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class FaceMeasurements(_Model):
    face_width: float
    face_height: float
    jaw_width: float
    cheekbone_width: float
    forehead_width: float
    width_height_ratio: float
    jaw_cheek_ratio: float
    forehead_jaw_ratio: float
    forehead_cheek_ratio: float


class FaceClassification(_Model):
    shape: FaceShape
    confidence: int = Field(..., ge=50, le=98)
    reasoning: str
    measurements: FaceMeasurements


class LandmarkIn(BaseModel):
    x: float
    y: float
    z: Optional[float] = None


class ClassifyRequest(_Model):
    landmarks: List[LandmarkIn]
    image_width: float = Field(1.0, gt=0)
    image_height: float = Field(1.0, gt=0)


class OverlayRequest(_Model):
    landmarks: List[LandmarkIn]
    canvas_width: float = Field(..., gt=0)
    canvas_height: float = Field(..., gt=0)
    template_aspect_ratio: float = Field(..., gt=0)


class OverlayOut(_Model):
    x: float
    y: float
    width: float
    height: float
    rotation: float


class PreviewRequest(_Model):
    user_image: str = Field(..., description="data URI or URL of the user's photo")
    hairstyle_image: str = Field(..., description="data URI or URL of the hairstyle template")
    landmarks: List[LandmarkIn]
    display_width: int = Field(..., gt=0)
    display_height: int = Field(..., gt=0)
    device_pixel_ratio: float = Field(1.0, gt=0)


class Hairstyle(_Model):
    id: str
    name: str
    category: FaceShape
    image_path: str
    thumbnail_path: str
    description: str
    suitability_score: int = Field(..., ge=0, le=100)
    reasoning: str
    tags: List[str] = []


class RecommendResponse(_Model):
    face_shape: FaceShape
    recommendations: List[Hairstyle]


class DetectResponse(_Model):
    classification: FaceClassification
    recommendations: List[Hairstyle]
    landmark_count: int
    validated: bool = False
    style_tips: List[str] = []
