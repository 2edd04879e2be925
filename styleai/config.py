# styleai/config.py
import logging
import os

from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()


class Settings(BaseModel):
    log_level: str = os.getenv("STYLEAI_LOG_LEVEL", "INFO")

    # Rendering
    max_canvas_dim: int = int(os.getenv("STYLEAI_MAX_CANVAS_DIM", "1920"))
    fetch_timeout: float = float(os.getenv("STYLEAI_FETCH_TIMEOUT", "10.0"))

    # Image sources: local paths only under template_dir; URL hosts comma-separated, "*" for any
    template_dir: str = os.getenv("STYLEAI_TEMPLATE_DIR", "")
    image_hosts: str = os.getenv("STYLEAI_IMAGE_HOSTS", "")

    # Validation service (hosted LLM); empty URL disables it
    validation_url: str = os.getenv("STYLEAI_VALIDATION_URL", "")
    validation_api_key: str = os.getenv("STYLEAI_VALIDATION_API_KEY", "")
    validation_timeout: float = float(os.getenv("STYLEAI_VALIDATION_TIMEOUT", "30.0"))

    hairstyle_base_url: str = os.getenv("STYLEAI_HAIRSTYLE_BASE_URL", "/hairstyles")


SETTINGS = Settings()


def configure_logging(level: str = "") -> None:
    logging.basicConfig(
        level=(level or SETTINGS.log_level).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
