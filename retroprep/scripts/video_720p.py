#!/usr/bin/env python3
"""
Convert MKV/MP4 videos to hardware-encoded 720p MP4.

MKV sources keep only the preferred-language audio (default Portuguese, else
the first audio track) and a preferred-language text subtitle as mov_text.
MP4 sources are simply re-encoded. Files are processed in byte order of their
path.

Example usage:
    video720 "Bleach" "/Volumes/Renato/Animes/Bleach"
    VBITS=3000k VMAX=3500k VBUF=7000k video720 "Bleach"
    HWDEC= video720 "Bleach"          # disable hardware decode

Environment variables: VBITS, VMAX, VBUF, ABITS, IN_OPTS, HWDEC, VCODEC,
RETROPREP_FFMPEG, RETROPREP_FFPROBE.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from retroprep.core import Outcome
from retroprep.errors import RetroPrepError
from retroprep.scripts._cli_logging import setup_cli_logging
from retroprep.video import DEFAULT_LANGUAGES, EncodeSettings, ensure_tools_available, transcode_all

LOGGER = logging.getLogger("retroprep.video720")


def parse_arguments(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="video720", description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("input_dir", nargs="?", default=".", help="Folder to scan recursively (default: .)")
    parser.add_argument("output_dir", nargs="?", help="Output folder (default: <input_dir>/converted_720p_mp4)")
    parser.add_argument(
        "--lang",
        default=",".join(DEFAULT_LANGUAGES),
        help="Preferred language tags, comma separated; the first one is written to the output (default: por,pt,pt-br)",
    )
    parser.add_argument("--overwrite", action="store_true", help="Re-encode even if the output exists")
    parser.add_argument("--dry-run", action="store_true", help="Print ffmpeg commands without executing them")
    parser.add_argument("--debug", action="store_true", help="Verbose console logging")
    parser.add_argument("--log-dir", help="Also write latest.log/debug.log to this directory")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_arguments(argv)
    setup_cli_logging(debug=args.debug, log_dir=args.log_dir)

    languages = tuple(lang.strip() for lang in args.lang.split(",") if lang.strip()) or DEFAULT_LANGUAGES
    try:
        if not args.dry_run:
            ensure_tools_available()
        settings = EncodeSettings.from_env()
    except RetroPrepError as exc:
        LOGGER.error("Error: %s", exc)
        return exc.exit_code

    LOGGER.debug("Encode settings: %s", settings)
    result = transcode_all(
        Path(args.input_dir),
        Path(args.output_dir) if args.output_dir else None,
        settings=settings,
        languages=languages,
        overwrite=args.overwrite,
        dry_run=args.dry_run,
    )
    failed = [e for e in result.entries if e.outcome is Outcome.FAILED]
    for entry in failed:
        LOGGER.info("  failed: %s (%s)", entry.source, entry.reason)
    return result.exit_code


if __name__ == "__main__":
    sys.exit(main())
