#!/usr/bin/env python3
"""
Convert BIN+CUE and CHD files to ISO format.

- BIN+CUE: converted through a temporary CHD, which is then removed.
- CHD: extracted directly (skipped when a CUE with the same name exists).

Examples:
    cue2iso                          # current directory
    cue2iso --keep /path/to/games    # keep sources
    cue2iso --dry-run .              # show what would be done
"""
from __future__ import annotations

import argparse
import logging
import sys

from retroprep.disc import DiscConverter, ensure_chdman_available
from retroprep.errors import RetroPrepError
from retroprep.scripts._cli_logging import setup_cli_logging

LOGGER = logging.getLogger("retroprep.cue2iso")


def parse_arguments(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="cue2iso", description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter
    )
    parser.add_argument("dirs", nargs="*", default=["."], help="Directories to search (default: .)")
    parser.add_argument("--keep", action="store_true", help="Keep source files after conversion (default: remove)")
    parser.add_argument("--keep-chd", action="store_true", help="Keep the intermediate CHD as <name>.chd")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be done without executing")
    parser.add_argument("--debug", action="store_true", help="Verbose console logging")
    parser.add_argument("--log-dir", help="Also write latest.log/debug.log to this directory")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_arguments(argv)
    setup_cli_logging(debug=args.debug, log_dir=args.log_dir)

    try:
        ensure_chdman_available()
    except RetroPrepError as exc:
        LOGGER.error("Error: %s", exc)
        return exc.exit_code

    converter = DiscConverter(keep=args.keep, keep_chd=args.keep_chd, dry_run=args.dry_run)
    converter.convert_all(args.dirs or ["."])
    LOGGER.info("Done.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
