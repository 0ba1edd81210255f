import os
import uuid
import logging

from retroprep.logging_utils import setup_logging


def setup_cli_logging(debug: bool = False, log_dir: str | None = None, session_id: str | None = None) -> logging.Logger:
    """Initialize logging for the standalone CLI tools.

    - ``log_dir`` falls back to ``RETROPREP_LOG_DIR``; without either, logs only go to the console.
    - Each run gets a short session id so interleaved runs can be told apart in debug.log.
    """
    session = (session_id or str(uuid.uuid4())[:8])
    settings = {
        "debug": bool(debug),
        "log_dir": log_dir or os.environ.get("RETROPREP_LOG_DIR") or None,
    }
    return setup_logging(settings, session)
