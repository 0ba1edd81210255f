import os
import shutil
import uuid
from enum import Enum
from pathlib import Path

IMAGE_EXTENSIONS = (
    ".jpg", ".jpeg", ".png", ".bmp", ".gif", ".tif", ".tiff",
    ".webp", ".jfif", ".heic", ".avif",
)


class Outcome(str, Enum):
    OK = "ok"
    SKIPPED = "skipped"
    FAILED = "failed"


def cmd_exists(cmd: str) -> bool:
    return shutil.which(cmd) is not None


def binary_from_env(env_key: str, default: str) -> str:
    """Binary name/path, overridable with an environment variable (e.g. RETROPREP_FFMPEG)."""
    return os.environ.get(env_key) or default


def is_image_name(name) -> bool:
    return str(name).lower().endswith(IMAGE_EXTENSIONS)


def temp_path_for(destination: Path) -> Path:
    """Hidden sibling of ``destination`` used for write-then-rename."""
    destination = Path(destination)
    return destination.with_name(f".{destination.stem}.tmp-{uuid.uuid4().hex[:8]}{destination.suffix}")
