"""
Client for the hosted validation service, which can confirm or override a
face-shape classification.
"""
from __future__ import annotations

import base64
import logging
from typing import Optional

import httpx
from pydantic import BaseModel, ValidationError

from .config import SETTINGS
from .errors import ValidationServiceError
from .face_shape import MAX_CONFIDENCE, MIN_CONFIDENCE
from .schemas import FaceClassification, FaceShape

logger = logging.getLogger(__name__)


class ValidationVerdict(BaseModel):
    """What the service returns. A verdict with no shape confirms ours."""
    confirmed: bool = False
    shape: Optional[FaceShape] = None
    confidence: Optional[float] = None
    reasoning: Optional[str] = None


class ValidationClient:
    def __init__(self, url: str = "", api_key: str = "", timeout: Optional[float] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url if url else SETTINGS.validation_url
        self.api_key = api_key if api_key else SETTINGS.validation_api_key
        self.timeout = timeout or SETTINGS.validation_timeout
        self._transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def validate(self, classification: FaceClassification, landmark_count: int,
                       image: Optional[bytes] = None) -> FaceClassification:
        """Return `classification` if the service agrees, else its replacement.

        The replacement keeps our measurements; the service only sees ratios.
        """
        if not self.enabled:
            return classification

        payload = {
            "classification": classification.model_dump(mode="json", by_alias=True),
            "landmarkCount": landmark_count,
        }
        if image is not None:
            payload["image"] = base64.b64encode(image).decode("ascii")

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.url, json=payload, headers=self._headers())
                resp.raise_for_status()
                verdict = ValidationVerdict.model_validate(resp.json())
        except httpx.TimeoutException as e:
            raise ValidationServiceError(f"Validation service timed out: {e}") from e
        except httpx.HTTPError as e:
            raise ValidationServiceError(f"Validation service error: {e}") from e
        except (ValueError, ValidationError) as e:
            raise ValidationServiceError(f"Invalid response from validation service: {e}") from e

        if verdict.shape is None or verdict.shape == classification.shape:
            logger.info("validation service confirmed %s", classification.shape.value)
            return classification

        confidence = verdict.confidence if verdict.confidence is not None else classification.confidence
        confidence = int(round(min(MAX_CONFIDENCE, max(MIN_CONFIDENCE, confidence))))
        logger.info("validation service replaced %s with %s", classification.shape.value, verdict.shape.value)
        return FaceClassification(
            shape=verdict.shape,
            confidence=confidence,
            reasoning=verdict.reasoning or classification.reasoning,
            measurements=classification.measurements,
        )
