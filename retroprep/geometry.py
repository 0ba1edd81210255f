"""Backend-agnostic resize/extent/crop planning.

A ``TransformPlan`` is fixed by the target size, fit mode and background; the
numbers for a particular image only need its pixel size, which backends can
read from the file header before decoding anything.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from retroprep.config import Background, Dimensions, FitMode


def _round_div(num: int, den: int) -> int:
    # round half up, integers only
    return max(1, (2 * num + den) // (2 * den))


def fit_within(src_w: int, src_h: int, box: Dimensions) -> Dimensions:
    """Largest aspect-preserving size with both sides <= the box."""
    if src_w * box.height >= src_h * box.width:
        return Dimensions(box.width, min(box.height, _round_div(src_h * box.width, src_w)))
    return Dimensions(min(box.width, _round_div(src_w * box.height, src_h)), box.height)


def cover(src_w: int, src_h: int, box: Dimensions) -> Dimensions:
    """Smallest aspect-preserving size with both sides >= the box."""
    if src_w * box.height >= src_h * box.width:
        return Dimensions(max(box.width, _round_div(src_w * box.height, src_h)), box.height)
    return Dimensions(box.width, max(box.height, _round_div(src_h * box.width, src_w)))


@dataclass(frozen=True)
class Layout:
    resize: Dimensions
    canvas: Dimensions
    paste: Tuple[int, int] = (0, 0)  # where the resized image lands on the canvas (pad)
    crop: Tuple[int, int] = (0, 0)   # top-left of the canvas inside the resized image (crop)
    scale_x: float = 1.0
    scale_y: float = 1.0

    @property
    def crop_box(self) -> Tuple[int, int, int, int]:
        x, y = self.crop
        return (x, y, x + self.canvas.width, y + self.canvas.height)

    @property
    def padding(self) -> Tuple[int, int, int, int]:
        """(left, top, right, bottom) filled with the background."""
        x, y = self.paste
        return (
            x,
            y,
            self.canvas.width - self.resize.width - x,
            self.canvas.height - self.resize.height - y,
        )


@dataclass(frozen=True)
class TransformPlan:
    dimensions: Dimensions
    mode: FitMode
    background: Background
    # every mode writes 32-bit RGBA PNG
    force_alpha: bool = True
    output_format: str = "PNG32"

    def layout(self, src_w: int, src_h: int) -> Layout:
        if src_w <= 0 or src_h <= 0:
            raise ValueError(f"Cannot resize empty image ({src_w}x{src_h})")
        target = self.dimensions
        if self.mode is FitMode.STRETCH:
            resized = target
            paste = crop = (0, 0)
        elif self.mode is FitMode.PAD:
            resized = fit_within(src_w, src_h, target)
            paste = ((target.width - resized.width) // 2, (target.height - resized.height) // 2)
            crop = (0, 0)
        else:
            resized = cover(src_w, src_h, target)
            paste = (0, 0)
            crop = ((resized.width - target.width) // 2, (resized.height - target.height) // 2)
        return Layout(
            resize=resized,
            canvas=target,
            paste=paste,
            crop=crop,
            scale_x=resized.width / src_w,
            scale_y=resized.height / src_h,
        )


def plan(dimensions: Dimensions, mode, background: Background) -> TransformPlan:
    """Build the plan for one run; an unknown ``mode`` raises ``ConfigError``."""
    return TransformPlan(dimensions, FitMode.parse(mode), background)
