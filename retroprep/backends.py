"""Image backends.

Both backends consume the same ``TransformPlan``; neither decides geometry on
its own. Output is always written to a hidden temp file next to the
destination and renamed into place, so a failed item leaves nothing behind.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

from PIL import Image

from retroprep.config import FitMode
from retroprep.core import binary_from_env, cmd_exists, temp_path_for
from retroprep.errors import BackendMissingError, ConfigError, ConversionFailed
from retroprep.geometry import Layout, TransformPlan

LOGGER = logging.getLogger(__name__)

BACKEND_CHOICES = ("auto", "pillow", "magick", "convert")


class ImageBackend:
    name = "base"

    def supports(self, source: Path) -> bool:
        return True

    def source_size(self, source: Path) -> Tuple[int, int]:
        raise NotImplementedError

    def render(self, source: Path, target: Path, plan: TransformPlan) -> Layout:
        raise NotImplementedError

    def convert(self, source: Path, destination: Path, plan: TransformPlan) -> Layout:
        """Render ``source`` into ``destination`` atomically."""
        tmp = temp_path_for(destination)
        try:
            layout = self.render(Path(source), tmp, plan)
            tmp.replace(destination)
        except Exception as exc:
            tmp.unlink(missing_ok=True)
            raise ConversionFailed(source, exc) from exc
        return layout

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class PillowBackend(ImageBackend):
    name = "pillow"

    def supports(self, source: Path) -> bool:
        # HEIC (and AVIF on older Pillow) needs a plugin such as pillow-heif
        return Path(source).suffix.lower() in Image.registered_extensions()

    def source_size(self, source: Path) -> Tuple[int, int]:
        # Image.open only reads the header here
        with Image.open(source) as img:
            return img.size

    def render(self, source: Path, target: Path, plan: TransformPlan) -> Layout:
        with Image.open(source) as original:
            width, height = original.size
            layout = plan.layout(width, height)
            image = original.convert("RGBA")

        size = (layout.resize.width, layout.resize.height)
        if image.size != size:
            image = image.resize(size, Image.LANCZOS)

        canvas_size = (layout.canvas.width, layout.canvas.height)
        if plan.mode is FitMode.PAD:
            canvas = Image.new("RGBA", canvas_size, plan.background.rgba)
            canvas.alpha_composite(image, dest=layout.paste)
            image = canvas
        elif plan.mode is FitMode.CROP:
            image = image.crop(layout.crop_box)

        image.save(target, format="PNG")
        return layout


class MagickBackend(ImageBackend):
    """ImageMagick 7 (``magick``) or 6 (``convert`` + ``identify``)."""

    def __init__(self, command: List[str], identify: List[str]):
        self.command = list(command)
        self.identify = list(identify)
        self.name = "magick" if Path(self.command[0]).name.startswith("magick") else "convert"

    def source_size(self, source: Path) -> Tuple[int, int]:
        cmd = self.identify + ["-format", "%w %h", f"{source}[0]"]
        out = subprocess.run(cmd, check=True, capture_output=True, text=True).stdout
        width, height = out.split()[:2]
        return int(width), int(height)

    def build_command(self, source: Path, target: Path, layout: Layout, plan: TransformPlan) -> List[str]:
        canvas = layout.canvas
        cmd = self.command + [
            f"{source}[0]",
            "-alpha", "on",
            "-resize", f"{layout.resize.width}x{layout.resize.height}!",
        ]
        if plan.mode is FitMode.PAD:
            x, y = layout.paste
            cmd += [
                "-background", plan.background.hex,
                "-gravity", "NorthWest",
                "-extent", f"{canvas.width}x{canvas.height}-{x}-{y}",
            ]
        elif plan.mode is FitMode.CROP:
            x, y = layout.crop
            cmd += ["-crop", f"{canvas.width}x{canvas.height}+{x}+{y}", "+repage"]
        cmd += ["-define", "png:color-type=6", f"png32:{target}"]
        return cmd

    def render(self, source: Path, target: Path, plan: TransformPlan) -> Layout:
        layout = plan.layout(*self.source_size(source))
        cmd = self.build_command(source, target, layout, plan)
        LOGGER.debug("+ %s", " ".join(shlex.quote(a) for a in cmd))
        proc = subprocess.run(cmd, capture_output=True, text=True)
        if proc.returncode != 0:
            raise RuntimeError(proc.stderr.strip() or f"{self.name} exited with {proc.returncode}")
        return layout


def detect_magick(prefer: Optional[str] = None) -> Optional[MagickBackend]:
    magick = binary_from_env("RETROPREP_MAGICK", "magick")
    if prefer in (None, "magick") and cmd_exists(magick):
        return MagickBackend([magick], [magick, "identify"])
    if prefer in (None, "convert") and cmd_exists("convert") and cmd_exists("identify"):
        return MagickBackend(["convert"], ["identify"])
    return None


def select_backend(preference: str = "auto") -> ImageBackend:
    """Pick the backend once at startup.

    ``auto`` prefers ImageMagick when it is installed and falls back to Pillow.
    """
    preference = (preference or "auto").lower()
    if preference not in BACKEND_CHOICES:
        raise ConfigError(f"Unknown backend '{preference}'. Use {' | '.join(BACKEND_CHOICES)}.")
    if preference == "pillow":
        return PillowBackend()
    if preference == "auto":
        return detect_magick() or PillowBackend()
    backend = detect_magick(preference)
    if backend is None:
        raise BackendMissingError(
            f"Image backend '{preference}' not found. Install ImageMagick or use --backend pillow."
        )
    return backend
