"""Run configuration for the boxart tool.

The historical boxart scripts only differed in their defaults (target size,
profile table, output suffix, output layout). Those differences live in the
``VARIANTS`` table; everything downstream receives one frozen ``BoxartConfig``
built once from the parsed arguments.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional, Tuple

from PIL import ImageColor

from retroprep.errors import ConfigError
from retroprep.paths import OutputTarget


@dataclass(frozen=True)
class Dimensions:
    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ConfigError(f"Dimensions must be positive, got {self.width}x{self.height}")

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"

    @classmethod
    def parse(cls, value: str) -> "Dimensions":
        """Parse ``WIDTHxHEIGHT`` (e.g. ``128x115``)."""
        try:
            width, height = map(int, value.lower().split("x"))
        except Exception:
            raise ConfigError(f"Size must be WIDTHxHEIGHT, e.g. 128x115 (got {value!r})")
        return cls(width, height)


class FitMode(str, Enum):
    PAD = "pad"
    CROP = "crop"
    STRETCH = "stretch"

    @classmethod
    def parse(cls, value) -> "FitMode":
        if isinstance(value, FitMode):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = " | ".join(m.value for m in cls)
            raise ConfigError(f"Invalid mode: {value} (use {valid})")


TRANSPARENT = (0, 0, 0, 0)


@dataclass(frozen=True)
class Background:
    spec: str
    rgba: Tuple[int, int, int, int]

    @property
    def is_transparent(self) -> bool:
        return self.rgba[3] == 0

    @property
    def hex(self) -> str:
        return "#{:02x}{:02x}{:02x}{:02x}".format(*self.rgba)

    @classmethod
    def parse(cls, value: Optional[str]) -> "Background":
        """Accept ``none``/``transparent``, a color name or ``#RGB``/``#RRGGBB``/``#RRGGBBAA``."""
        spec = (value or "none").strip()
        if spec.lower() in ("none", "transparent", ""):
            return cls("none", TRANSPARENT)
        try:
            rgb = ImageColor.getrgb(spec)
        except ValueError:
            raise ConfigError(f"Invalid background color: {value}")
        if len(rgb) == 3:
            rgb = (*rgb, 255)
        return cls(spec, tuple(rgb))


PROFILES: Mapping[str, Dimensions] = MappingProxyType({
    "psx": Dimensions(512, 512),
    "ps1": Dimensions(512, 512),
    "ps2": Dimensions(342, 512),
    "ps3": Dimensions(342, 512),
    # TWiLight Menu++ boxart (sd:/_nds/TWiLightMenu/boxart/)
    "nds": Dimensions(128, 115),
})

DEFAULT_DIMENSIONS = Dimensions(250, 288)


@dataclass(frozen=True)
class ToolVariant:
    name: str
    default_dimensions: Dimensions
    profiles: Mapping[str, Dimensions]
    suffix: str = ""
    default_output: Optional[str] = None
    mirror_tree: bool = True


VARIANTS: Mapping[str, ToolVariant] = MappingProxyType({
    "boxart": ToolVariant("boxart", DEFAULT_DIMENSIONS, PROFILES),
    "resize": ToolVariant("resize", DEFAULT_DIMENSIONS, PROFILES, suffix="-resized"),
    "twilight": ToolVariant(
        "twilight", Dimensions(128, 115), PROFILES, default_output="./out/", mirror_tree=False
    ),
})
DEFAULT_VARIANT = "boxart"


def get_variant(name: str) -> ToolVariant:
    try:
        return VARIANTS[name.lower()]
    except KeyError:
        raise ConfigError(f"Unknown variant '{name}'. Use {' | '.join(VARIANTS)}.")


@dataclass(frozen=True)
class BoxartConfig:
    dimensions: Dimensions
    mode: FitMode = FitMode.PAD
    background: Background = Background("none", TRANSPARENT)
    output: OutputTarget = OutputTarget.unset()
    suffix: str = ""
    mirror_tree: bool = True
    overwrite: bool = False
    jobs: int = 1
    dry_run: bool = False
