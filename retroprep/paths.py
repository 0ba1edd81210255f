"""Input classification and output path resolution for batch image jobs."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from retroprep.core import is_image_name
from retroprep.errors import AmbiguousOutputError, InvalidOutputError, NotFoundError

OUTPUT_EXT = ".png"


# ---------- Input classification ----------

@dataclass(frozen=True)
class SingleFile:
    path: Path


@dataclass(frozen=True)
class Directory:
    root: Path
    entries: tuple  # image paths, sorted by relative POSIX path


@dataclass(frozen=True)
class NotAnImage:
    path: Path


Classified = Union[SingleFile, Directory, NotAnImage]


def find_images(root: Path, exclude: Optional[Path] = None) -> List[Path]:
    """All allow-listed image files below ``root``, in a stable order.

    ``exclude`` (usually the output directory) is pruned from the walk.
    """
    excluded = Path(exclude).resolve() if exclude else None
    found = []
    for dirpath, dirnames, filenames in os.walk(root):
        if excluded is not None:
            dirnames[:] = [d for d in dirnames if (Path(dirpath) / d).resolve() != excluded]
        for name in filenames:
            full = Path(dirpath) / name
            if is_image_name(name) and full.is_file():
                found.append(full)
    return sorted(found, key=lambda p: p.relative_to(root).as_posix())


def classify(path, exclude: Optional[Path] = None) -> Classified:
    path = Path(path)
    if path.is_dir():
        return Directory(path, tuple(find_images(path, exclude)))
    if not path.is_file():
        raise NotFoundError(path)
    if is_image_name(path.name):
        return SingleFile(path)
    return NotAnImage(path)


def looks_like_output_path(token: str) -> bool:
    """A missing ``.png`` token is most likely an output path given positionally."""
    return token.lower().endswith(OUTPUT_EXT) and not Path(token).exists()


# ---------- Output targets ----------

@dataclass(frozen=True)
class OutputTarget:
    kind: str  # "unset" | "dir" | "file"
    path: Optional[Path] = None

    @classmethod
    def unset(cls) -> "OutputTarget":
        return cls("unset")

    @classmethod
    def parse(cls, raw: Optional[str]) -> "OutputTarget":
        if not raw:
            return cls.unset()
        if raw.endswith(("/", os.sep)) or Path(raw).is_dir():
            return cls("dir", Path(raw))
        if not raw.lower().endswith(OUTPUT_EXT):
            raise InvalidOutputError(f"Output file must end with .png (or be a directory): {raw}")
        return cls("file", Path(raw))

    @property
    def is_file(self) -> bool:
        return self.kind == "file"

    @property
    def is_dir(self) -> bool:
        return self.kind == "dir"


def check_output_target(target: OutputTarget, inputs: Sequence[str]) -> None:
    """An explicit output file only makes sense for exactly one input file."""
    if not target.is_file:
        return
    if len(inputs) > 1:
        raise AmbiguousOutputError(
            "Output cannot be a single file when several inputs are given. Provide an output directory."
        )
    if inputs and Path(inputs[0]).is_dir():
        raise AmbiguousOutputError(
            "Output cannot be a single file when input is a directory. Provide an output directory."
        )


def output_name(source: Path, suffix: str = "") -> str:
    return f"{source.stem}{suffix}{OUTPUT_EXT}"


def resolve_output(
    source: Path,
    target: OutputTarget,
    scan_root: Optional[Path] = None,
    suffix: str = "",
    mirror_tree: bool = True,
) -> Path:
    """Destination for ``source``.

    ``scan_root`` is set when ``source`` came from a directory expansion; with a
    directory target the source's position below the root is mirrored unless
    ``mirror_tree`` is off.
    """
    source = Path(source)
    if target.is_file:
        if scan_root is not None:
            raise AmbiguousOutputError(
                "Output cannot be a single file when input is a directory. Provide an output directory."
            )
        return target.path
    name = output_name(source, suffix)
    if target.is_dir:
        out_dir = target.path
        if scan_root is not None and mirror_tree:
            rel_parent = source.parent.relative_to(scan_root)
            out_dir = out_dir / rel_parent
        return out_dir / name
    return source.parent / name


def ensure_parent(path: Path) -> None:
    # exist_ok keeps this safe when several workers share a parent
    Path(path).parent.mkdir(parents=True, exist_ok=True)


def same_file(a: Path, b: Path) -> bool:
    try:
        return Path(a).resolve() == Path(b).resolve()
    except OSError:
        return False
