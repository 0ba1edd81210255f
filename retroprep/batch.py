"""Batch orchestration for boxart conversion.

All jobs are planned up front, in input order, so skip decisions (existing or
duplicate destinations) do not depend on scheduling. Conversion then runs
sequentially or on a small thread pool; the report keeps input order either
way.
"""

from __future__ import annotations

import logging
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Set

from retroprep.backends import ImageBackend
from retroprep.config import Background, BoxartConfig, Dimensions, FitMode
from retroprep.core import Outcome
from retroprep.errors import ConversionFailed, NotFoundError
from retroprep.geometry import TransformPlan, plan
from retroprep import paths

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversionJob:
    source: Path
    destination: Path
    dimensions: Dimensions
    mode: FitMode
    background: Background


@dataclass(frozen=True)
class BatchEntry:
    source: Path
    outcome: Outcome
    job: Optional[ConversionJob] = None
    reason: str = ""


@dataclass
class BatchResult:
    entries: List[BatchEntry] = field(default_factory=list)
    found: int = 0  # image files found across all inputs

    def _count(self, outcome: Outcome) -> int:
        return sum(1 for e in self.entries if e.outcome is outcome)

    @property
    def ok(self) -> int:
        return self._count(Outcome.OK)

    @property
    def skipped(self) -> int:
        return self._count(Outcome.SKIPPED)

    @property
    def failed(self) -> int:
        return self._count(Outcome.FAILED)

    @property
    def exit_code(self) -> int:
        # per-item failures are reported, not escalated
        return 2 if self.found == 0 else 0

    def summary(self) -> str:
        return f"Done. {self.ok} converted, {self.skipped} skipped, {self.failed} failed ({self.found} images found)."


class BatchRunner:
    def __init__(
        self,
        config: BoxartConfig,
        backend: ImageBackend,
        cancel_event: Optional[threading.Event] = None,
    ):
        self.config = config
        self.backend = backend
        self.cancel_event = cancel_event or threading.Event()
        self.plan: TransformPlan = plan(config.dimensions, config.mode, config.background)

    def cancel(self) -> None:
        self.cancel_event.set()

    # ---------- planning ----------

    def _skip(self, source: Path, reason: str, job: Optional[ConversionJob] = None) -> BatchEntry:
        LOGGER.info("[SKIP] %s: %s", source, reason)
        return BatchEntry(Path(source), Outcome.SKIPPED, job, reason)

    def _fail(self, source: Path, reason: str, job: Optional[ConversionJob] = None) -> BatchEntry:
        LOGGER.error("[ERROR] %s: %s", source, reason)
        return BatchEntry(Path(source), Outcome.FAILED, job, reason)

    def _plan_file(self, source: Path, scan_root: Optional[Path], claimed: Set[str]):
        cfg = self.config
        if cfg.suffix and not cfg.output.is_file and source.stem.endswith(cfg.suffix):
            return self._skip(source, f"looks like a generated '{cfg.suffix}' output")
        if not self.backend.supports(source):
            return self._skip(
                source, f"the {self.backend.name} backend cannot read {source.suffix} files (install ImageMagick)"
            )

        destination = paths.resolve_output(
            source, cfg.output, scan_root=scan_root, suffix=cfg.suffix, mirror_tree=cfg.mirror_tree
        )
        job = ConversionJob(source, destination, cfg.dimensions, cfg.mode, cfg.background)
        key = os.path.abspath(destination)
        if key in claimed:
            return self._skip(source, f"another input already writes {destination}", job)
        if destination.exists() and not cfg.overwrite:
            if paths.same_file(source, destination):
                return self._skip(source, "destination is the source file (use --overwrite to replace it)", job)
            return self._skip(source, f"already exists: {destination}", job)
        claimed.add(key)
        return job

    def plan_inputs(self, inputs: Sequence[str], result: BatchResult) -> list:
        """Expand inputs into planned jobs and early outcomes, in report order."""
        slots = []
        claimed: Set[str] = set()
        # an output directory inside a scanned tree must not be read back as input
        exclude = self.config.output.path if self.config.output.is_dir else None
        for token in inputs:
            token = str(token)
            if paths.looks_like_output_path(token):
                LOGGER.warning("'%s' does not exist and looks like an output path; pass it with --out", token)
                slots.append(BatchEntry(Path(token), Outcome.SKIPPED, None, "probable output path given as input"))
                continue
            try:
                item = paths.classify(token, exclude=exclude)
            except NotFoundError as exc:
                slots.append(self._fail(Path(token), str(exc)))
                continue

            if isinstance(item, paths.NotAnImage):
                LOGGER.warning("[SKIP] Not an image: %s", item.path)
                slots.append(BatchEntry(item.path, Outcome.SKIPPED, None, "not an image"))
            elif isinstance(item, paths.SingleFile):
                result.found += 1
                slots.append(self._plan_file(item.path, None, claimed))
            else:
                if not item.entries:
                    LOGGER.warning("No images found in: %s", item.root)
                result.found += len(item.entries)
                for source in item.entries:
                    slots.append(self._plan_file(source, item.root, claimed))
        return slots

    # ---------- execution ----------

    def execute(self, job: ConversionJob) -> BatchEntry:
        if self.cancel_event.is_set():
            return self._skip(job.source, "cancelled", job)

        if self.config.dry_run:
            try:
                layout = self.plan.layout(*self.backend.source_size(job.source))
            except Exception as exc:
                return self._fail(job.source, f"cannot read image size: {exc}", job)
            LOGGER.info(
                "[DRY RUN] %s -> %s (resize %s, canvas %s, paste %s, crop %s)",
                job.source, job.destination, layout.resize, layout.canvas, layout.paste, layout.crop,
            )
            return BatchEntry(job.source, Outcome.SKIPPED, job, "dry run")

        try:
            paths.ensure_parent(job.destination)
            self.backend.convert(job.source, job.destination, self.plan)
        except ConversionFailed as exc:
            return self._fail(job.source, str(exc.cause), job)
        except OSError as exc:
            return self._fail(job.source, str(exc), job)
        LOGGER.info("[OK] %s -> %s", job.source, job.destination)
        return BatchEntry(job.source, Outcome.OK, job)

    def run(self, inputs: Sequence[str]) -> BatchResult:
        paths.check_output_target(self.config.output, [str(i) for i in inputs])

        result = BatchResult()
        slots = self.plan_inputs(inputs, result)
        pending = [(i, s) for i, s in enumerate(slots) if isinstance(s, ConversionJob)]
        LOGGER.debug(
            "Planned %d job(s) for %d input(s) | backend=%s | target=%s | mode=%s",
            len(pending), len(inputs), self.backend.name, self.config.dimensions, self.config.mode.value,
        )

        if self.config.jobs > 1 and len(pending) > 1:
            with ThreadPoolExecutor(max_workers=self.config.jobs) as executor:
                futures = [(i, executor.submit(self.execute, job)) for i, job in pending]
                for i, future in futures:
                    slots[i] = future.result()
        else:
            for i, job in pending:
                slots[i] = self.execute(job)

        result.entries = slots
        return result
