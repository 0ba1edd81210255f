#!/usr/bin/env python3
"""
Resize/convert cover images into fixed-size PNG boxart.

Usage:
    img2boxart [WIDTH HEIGHT | PROFILE] <file|dir>... [-o OUT] [--mode pad|crop|stretch] [--bg COLOR]

Examples:
    img2boxart PSX ~/covers/ffvii.jpg
    img2boxart PS2 ~/covers_dir -o ~/out_dir/ --mode crop --bg black
    img2boxart 128 115 capa.jpg -o out/
    img2boxart --variant twilight ./minhas_imagens --mode pad --bg none

Profiles: PSX/PS1 512x512, PS2/PS3 342x512, NDS 128x115 (TWiLight Menu++).
Modes: pad keeps the whole cover and fills the rest with --bg, crop fills the
frame and trims the overflow, stretch distorts to the exact size.

Exit codes: 0 done, 1 usage/configuration error, 2 no images found.
"""
from __future__ import annotations

import argparse
import logging
import signal
import sys
import threading
from typing import List, Optional, Tuple

from retroprep.backends import BACKEND_CHOICES, select_backend
from retroprep.batch import BatchRunner, Outcome
from retroprep.config import Background, BoxartConfig, DEFAULT_VARIANT, FitMode, VARIANTS, get_variant
from retroprep.errors import ConfigError, RetroPrepError
from retroprep.paths import OutputTarget
from retroprep import profiles
from retroprep.scripts._cli_logging import setup_cli_logging

LOGGER = logging.getLogger("retroprep.img2boxart")


class _ArgumentParser(argparse.ArgumentParser):
    # usage errors are configuration errors (exit 1), not argparse's default 2
    def error(self, message):
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="img2boxart",
        description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("tokens", nargs="*", metavar="ARG", help="[WIDTH HEIGHT | PROFILE] followed by input files/dirs")
    parser.add_argument("-o", "--out", "--output", dest="out", help="Output directory (end with '/') or a single .png file")
    parser.add_argument("--mode", default="pad", help="pad | crop | stretch (default: pad)")
    parser.add_argument("--bg", "--background", dest="bg", default="none", help="none, a color name or #RRGGBB[AA] (default: none)")
    parser.add_argument("--profile", help="Target profile (PSX, PS1, PS2, PS3, NDS)")
    parser.add_argument("--size", help="Target size WIDTHxHEIGHT")
    parser.add_argument("--variant", default=DEFAULT_VARIANT, help=f"Defaults preset: {' | '.join(VARIANTS)}")
    parser.add_argument("--suffix", help="Appended to the file stem of generated files (e.g. -resized)")
    parser.add_argument("--flatten", action="store_true", help="Do not mirror subfolders under the output directory")
    parser.add_argument("--backend", default="auto", choices=BACKEND_CHOICES, help="Image backend (default: auto); Pillow needs a plugin for HEIC, ImageMagick does not")
    parser.add_argument("--overwrite", action="store_true", help="Replace existing output files")
    parser.add_argument("-j", "--jobs", type=int, default=1, help="Parallel conversions (default: 1)")
    parser.add_argument("--dry-run", action="store_true", help="Plan and report without writing files")
    parser.add_argument("--debug", action="store_true", help="Verbose console logging")
    parser.add_argument("--log-dir", help="Also write latest.log/debug.log to this directory")
    return parser


def parse_arguments(argv: Optional[List[str]] = None) -> argparse.Namespace:
    return build_parser().parse_intermixed_args(argv)


def build_config(args: argparse.Namespace) -> Tuple[BoxartConfig, List[str]]:
    """Turn parsed arguments into the immutable run config and the input list."""
    variant = get_variant(args.variant)
    dims, inputs = profiles.resolve(
        args.tokens, variant.profiles, variant.default_dimensions, profile=args.profile, size=args.size
    )
    if args.jobs < 1:
        raise ConfigError("--jobs must be at least 1")
    config = BoxartConfig(
        dimensions=dims,
        mode=FitMode.parse(args.mode),
        background=Background.parse(args.bg),
        output=OutputTarget.parse(args.out or variant.default_output),
        suffix=variant.suffix if args.suffix is None else args.suffix,
        mirror_tree=variant.mirror_tree and not args.flatten,
        overwrite=args.overwrite,
        jobs=args.jobs,
        dry_run=args.dry_run,
    )
    return config, inputs


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_arguments(argv)
    setup_cli_logging(debug=args.debug, log_dir=args.log_dir)

    try:
        config, inputs = build_config(args)
        if not inputs:
            raise ConfigError("No input given. Use -h for help.")
        backend = select_backend(args.backend)
        LOGGER.debug("Using %s backend, target %s, mode %s", backend.name, config.dimensions, config.mode.value)
        runner = BatchRunner(config, backend, cancel_event=threading.Event())
    except RetroPrepError as exc:
        LOGGER.error("[ERROR] %s", exc)
        return exc.exit_code

    previous = None
    if threading.current_thread() is threading.main_thread():
        def _on_sigint(signum, frame):
            LOGGER.warning("Interrupted: finishing in-flight conversions, no new ones will start.")
            runner.cancel()
            signal.signal(signal.SIGINT, previous or signal.default_int_handler)
        previous = signal.signal(signal.SIGINT, _on_sigint)

    try:
        result = runner.run(inputs)
    except RetroPrepError as exc:
        LOGGER.error("[ERROR] %s", exc)
        return exc.exit_code
    finally:
        if previous is not None:
            signal.signal(signal.SIGINT, previous)

    for entry in result.entries:
        if entry.outcome is Outcome.FAILED:
            LOGGER.info("  failed: %s (%s)", entry.source, entry.reason)
    if result.found == 0:
        LOGGER.error("[ERROR] No matching image files found.")
    LOGGER.info(result.summary())
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
