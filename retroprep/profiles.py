"""Resolve the target size from positional tokens, a profile name or ``--size``."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import List, Mapping, Optional, Sequence, Tuple

from retroprep.config import Dimensions
from retroprep.errors import ConfigError

_INT_RE = re.compile(r"^[+-]?\d+$")


def _is_int(token: str) -> bool:
    return bool(_INT_RE.match(token.strip()))


def _could_be_profile(token: str) -> bool:
    # Bare words like "PS2" or "xbox": no separator, no extension, not on disk.
    if os.sep in token or "/" in token:
        return False
    if Path(token).suffix or Path(token).exists():
        return False
    return bool(token.strip())


def lookup_profile(name: str, profiles: Mapping[str, Dimensions]) -> Dimensions:
    try:
        return profiles[name.strip().lower()]
    except KeyError:
        valid = " | ".join(sorted(k.upper() for k in profiles))
        raise ConfigError(f"Unknown profile '{name}'. Use {valid}.")


def resolve(
    tokens: Sequence[str],
    profiles: Mapping[str, Dimensions],
    default: Dimensions,
    profile: Optional[str] = None,
    size: Optional[str] = None,
) -> Tuple[Dimensions, List[str]]:
    """Return the target dimensions and the tokens left over as inputs.

    Exactly one of the forms may be used: two leading integers (WIDTH HEIGHT),
    a leading profile name, ``profile`` or ``size``. Nothing given means
    ``default``.
    """
    tokens = list(tokens)
    found = []
    rest = tokens
    dims = default

    if len(tokens) >= 2 and _is_int(tokens[0]) and _is_int(tokens[1]):
        width, height = int(tokens[0]), int(tokens[1])
        if width <= 0 or height <= 0:
            raise ConfigError(f"WIDTH and HEIGHT must be positive integers (got {tokens[0]} {tokens[1]})")
        dims = Dimensions(width, height)
        rest = tokens[2:]
        found.append("WIDTH HEIGHT")
    elif tokens and _could_be_profile(tokens[0]):
        try:
            dims = lookup_profile(tokens[0], profiles)
        except ConfigError as exc:
            raise ConfigError(f"{exc} No file or directory named '{tokens[0]}' either.") from exc
        rest = tokens[1:]
        found.append(f"profile {tokens[0]}")

    if profile:
        dims = lookup_profile(profile, profiles)
        found.append("--profile")
    if size:
        dims = Dimensions.parse(size)
        found.append("--size")

    if len(found) > 1:
        raise ConfigError(f"Target size given more than once: {', '.join(found)}")
    return dims, rest
