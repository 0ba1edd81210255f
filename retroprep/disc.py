"""
BIN/CUE and CHD -> ISO conversion through ``chdman``.

- CUE sheets are converted through a temporary CHD (``createcd`` then
  ``extractraw``); the CHD is removed afterwards unless ``keep_chd``.
- Standalone CHDs (no sibling .cue) are extracted directly.
- Sources (the CUE plus the BIN/IMG/ISO files it references, or the CHD) are
  removed after a successful conversion unless ``keep``.
- An existing ``<name>.iso`` means the image is skipped.
"""
from __future__ import annotations

import logging
import re
import shlex
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, List, Sequence

from retroprep.core import Outcome, binary_from_env, cmd_exists
from retroprep.errors import BackendMissingError

LOGGER = logging.getLogger(__name__)

# FILE "Track 01.bin" BINARY
_CUE_FILE_RE = re.compile(r'^\s*FILE\s+(?:"([^"]+)"|(\S+))', re.IGNORECASE)
DATA_FILE_EXTENSIONS = (".bin", ".img", ".iso")


def chdman_bin() -> str:
    return binary_from_env("RETROPREP_CHDMAN", "chdman")


def ensure_chdman_available() -> None:
    if not cmd_exists(chdman_bin()):
        raise BackendMissingError(f"'{chdman_bin()}' not found in PATH.")


def parse_cue_data_files(text: str) -> List[str]:
    """Data file names referenced by a CUE sheet, in order, without duplicates."""
    names = []
    for line in text.splitlines():
        m = _CUE_FILE_RE.match(line)
        if not m:
            continue
        name = m.group(1) or m.group(2)
        if name.lower().endswith(DATA_FILE_EXTENSIONS) and name not in names:
            names.append(name)
    return names


def _find(dirs: Sequence[Path], ext: str) -> List[Path]:
    found = set()
    for d in dirs:
        for p in Path(d).rglob("*"):
            if p.is_file() and p.suffix.lower() == ext:
                found.add(p)
    return sorted(found, key=lambda p: str(p))


def find_cue_files(dirs: Sequence[Path]) -> List[Path]:
    return _find(dirs, ".cue")


def find_standalone_chd_files(dirs: Sequence[Path]) -> List[Path]:
    """CHDs without a sibling CUE of the same name (those are handled via the CUE)."""
    return [p for p in _find(dirs, ".chd") if not p.with_suffix(".cue").exists()
            and not p.with_suffix(".CUE").exists()]


@dataclass(frozen=True)
class DiscEntry:
    source: Path
    iso: Path
    outcome: Outcome
    reason: str = ""


@dataclass
class DiscResult:
    entries: List[DiscEntry] = field(default_factory=list)

    @property
    def found(self) -> int:
        return len(self.entries)


class DiscConverter:
    def __init__(
        self,
        keep: bool = False,
        keep_chd: bool = False,
        dry_run: bool = False,
        run: Callable = subprocess.run,
    ):
        self.keep = keep
        self.keep_chd = keep_chd
        self.dry_run = dry_run
        self._run = run

    def run(self, *cmd) -> None:
        LOGGER.info("+ %s", " ".join(shlex.quote(str(c)) for c in cmd))
        if not self.dry_run:
            self._run([str(c) for c in cmd], check=True)

    def remove(self, path: Path) -> None:
        LOGGER.info("+ rm -f -- %s", shlex.quote(str(path)))
        if not self.dry_run:
            Path(path).unlink(missing_ok=True)

    def convert_cue(self, cue: Path) -> DiscEntry:
        cue = Path(cue)
        iso = cue.with_suffix(".iso")
        if iso.exists():
            LOGGER.info("[SKIP] ISO already exists: %s", iso)
            return DiscEntry(cue, iso, Outcome.SKIPPED, "iso exists")

        LOGGER.info("=" * 40)
        LOGGER.info("[CUE+BIN] Processing: %s", cue)
        LOGGER.info("[ISO] Output: %s", iso)

        chd = cue.with_suffix(".chd") if self.keep_chd else cue.with_name(f"{cue.stem}.tmp.chd")
        data_files = parse_cue_data_files(cue.read_text(encoding="utf-8", errors="ignore"))
        try:
            self.run(chdman_bin(), "createcd", "-i", cue, "-o", chd)
            self.run(chdman_bin(), "extractraw", "-i", chd, "-o", iso, "-f")
        except (subprocess.CalledProcessError, OSError) as exc:
            LOGGER.error("[ERROR] chdman failed for %s: %s", cue, exc)
            if not self.dry_run:
                iso.unlink(missing_ok=True)
                if not self.keep_chd:
                    chd.unlink(missing_ok=True)
            return DiscEntry(cue, iso, Outcome.FAILED, str(exc))

        if not self.keep_chd:
            self.remove(chd)

        if not self.keep:
            self.remove(cue)
            existing = [cue.parent / name for name in data_files if (cue.parent / name).is_file()]
            if existing:
                LOGGER.info("[INFO] Found associated data files to remove:")
            for data_file in existing:
                LOGGER.info("  - %s", data_file.name)
                self.remove(data_file)
            LOGGER.info("[REMOVED] Removed CUE and associated data files")
        else:
            LOGGER.info("[KEEP] Keeping: %s and associated data files", cue)

        LOGGER.info("[OK] Created: %s", iso)
        return DiscEntry(cue, iso, Outcome.OK)

    def convert_chd(self, chd: Path) -> DiscEntry:
        chd = Path(chd)
        iso = chd.with_suffix(".iso")
        if iso.exists():
            LOGGER.info("[SKIP] ISO already exists: %s", iso)
            return DiscEntry(chd, iso, Outcome.SKIPPED, "iso exists")

        LOGGER.info("=" * 40)
        LOGGER.info("[CHD] Processing: %s", chd)
        LOGGER.info("[ISO] Output: %s", iso)
        try:
            self.run(chdman_bin(), "extractraw", "-i", chd, "-o", iso, "-f")
        except (subprocess.CalledProcessError, OSError) as exc:
            LOGGER.error("[ERROR] chdman failed for %s: %s", chd, exc)
            if not self.dry_run:
                iso.unlink(missing_ok=True)
            return DiscEntry(chd, iso, Outcome.FAILED, str(exc))

        if not self.keep:
            self.remove(chd)
            LOGGER.info("[REMOVED] Removed: %s", chd)
        else:
            LOGGER.info("[KEEP] Keeping: %s", chd)

        LOGGER.info("[OK] Created: %s", iso)
        return DiscEntry(chd, iso, Outcome.OK)

    def convert_all(self, dirs: Iterable[Path]) -> DiscResult:
        dirs = [Path(d) for d in dirs] or [Path(".")]
        result = DiscResult()
        # both lists are taken up front so CHDs written by the CUE pass are not picked up again
        cues = find_cue_files(dirs)
        chds = find_standalone_chd_files(dirs)
        for cue in cues:
            result.entries.append(self.convert_cue(cue))
        for chd in chds:
            result.entries.append(self.convert_chd(chd))
        if not result.entries:
            LOGGER.info("No .cue or .chd files found in: %s", " ".join(str(d) for d in dirs))
        return result
