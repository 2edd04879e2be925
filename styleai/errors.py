# styleai/errors.py
from typing import Dict, Optional


class StyleAIError(Exception):
    """Base error. `code` and `recoverable` are what the UI layer keys off."""
    code = "UNKNOWN_ERROR"
    recoverable = False

    def __init__(self, message: str, *, recoverable: Optional[bool] = None):
        super().__init__(message)
        self.message = message
        if recoverable is not None:
            self.recoverable = recoverable

    def to_dict(self) -> Dict[str, object]:
        return {"code": self.code, "message": self.message, "recoverable": self.recoverable}


class InvalidLandmarks(StyleAIError):
    code = "INVALID_LANDMARKS"


class NoFaceDetected(StyleAIError):
    code = "NO_FACE_DETECTED"
    recoverable = True


class ImageLoadFailure(StyleAIError):
    code = "IMAGE_LOAD_FAILED"
    recoverable = True

    def __init__(self, src: str, reason: str = ""):
        self.src = src
        msg = f"Failed to load image: {short_src(src)}"
        if reason:
            msg += f" ({reason})"
        super().__init__(msg)


class CanvasUnavailable(StyleAIError):
    code = "CANVAS_UNAVAILABLE"


class RenderFailure(StyleAIError):
    code = "RENDER_FAILED"
    recoverable = True


class ValidationServiceError(StyleAIError):
    code = "API_ERROR"
    recoverable = True


# User-facing copy per error code.
ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "INVALID_LANDMARKS": {
        "title": "Face Not Fully Detected",
        "message": "We couldn't map every point of your face.",
        "action": "Face the camera directly and try again.",
    },
    "NO_FACE_DETECTED": {
        "title": "No Face Detected",
        "message": "We couldn't find a face in your photo.",
        "action": "Make sure your face is clearly visible and well-lit.",
    },
    "IMAGE_LOAD_FAILED": {
        "title": "Image Unavailable",
        "message": "One of the images couldn't be loaded.",
        "action": "Try again, or pick a different style.",
    },
    "CANVAS_UNAVAILABLE": {
        "title": "Preview Unavailable",
        "message": "The preview surface couldn't be prepared.",
        "action": "Please refresh the page and try again.",
    },
    "RENDER_FAILED": {
        "title": "Preview Failed",
        "message": "Failed to render hairstyle preview.",
        "action": "Please try a different style.",
    },
    "API_ERROR": {
        "title": "Analysis Failed",
        "message": "Something went wrong during analysis.",
        "action": "Please try again. If the problem persists, try a different photo.",
    },
    "UNKNOWN_ERROR": {
        "title": "Something Went Wrong",
        "message": "An unexpected error occurred.",
        "action": "Please refresh the page and try again.",
    },
}


def get_error_message(code: str) -> Dict[str, str]:
    return ERROR_MESSAGES.get(code) or ERROR_MESSAGES["UNKNOWN_ERROR"]


def short_src(src: str, limit: int = 64) -> str:
    # data URIs run to megabytes; keep logs and messages readable
    if len(src) <= limit:
        return src
    return src[:limit] + "..."
