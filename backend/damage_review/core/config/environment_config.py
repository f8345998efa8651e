import os
from dataclasses import dataclass

from dotenv import load_dotenv


# .env values override blanks inherited from the container environment.
try:
    load_dotenv(dotenv_path=os.path.join(os.getcwd(), ".env"), override=True)
except Exception:
    load_dotenv(override=True)


@dataclass
class EnvironmentConfig:
    app_env: str = os.getenv("APP_ENV", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    # JSON file with images/damages rows used to seed the in-memory store
    review_seed_path: str = os.getenv("REVIEW_SEED_PATH", "")
    # Boxes at or under this size (image pixels) are treated as accidental drags
    min_box_size: float = float(os.getenv("MIN_BOX_SIZE", "10"))
    zoom_min: float = float(os.getenv("ZOOM_MIN", "0.1"))
    zoom_max: float = float(os.getenv("ZOOM_MAX", "5.0"))
    wheel_zoom_step: float = float(os.getenv("WHEEL_ZOOM_STEP", "0.1"))
    button_zoom_step: float = float(os.getenv("BUTTON_ZOOM_STEP", "0.2"))
    # Viewport used for server-side rendered frames
    canvas_width: int = int(os.getenv("CANVAS_WIDTH", "1280"))
    canvas_height: int = int(os.getenv("CANVAS_HEIGHT", "720"))
    image_fetch_timeout: float = float(os.getenv("IMAGE_FETCH_TIMEOUT", "30"))
    # Decoded rasters kept in memory, least recently used evicted first
    image_cache_size: int = int(os.getenv("IMAGE_CACHE_SIZE", "32"))
    jpeg_quality: int = int(os.getenv("JPEG_QUALITY", "85"))
