import sys
import logging
import logging.handlers
from pathlib import Path
from typing import Optional

FILE_FORMAT = "%(asctime)s [%(levelname)s] [%(name)s] %(module)s:%(lineno)d | %(message)s | session=%(session)s"


class SessionFilter(logging.Filter):
    def __init__(self, session):
        super().__init__()
        self.session = session

    def filter(self, record):
        record.session = self.session
        return True


class ConsoleFormatter(logging.Formatter):
    """Plain message for INFO (the per-item [OK]/[SKIP] lines), level tag otherwise."""

    def format(self, record):
        message = super().format(record)
        if record.levelno == logging.INFO or message.startswith("["):
            return message
        return f"[{record.levelname}] {message}"


def setup_logging(settings: dict, session_id: str) -> logging.Logger:
    """Configure the root logger for one CLI run.

    ``settings`` keys: ``debug`` (bool), ``log_dir`` (optional path). Without a
    log directory only the console handler is installed.
    """
    log_level = logging.DEBUG if settings.get("debug") else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    for h in list(root_logger.handlers):
        root_logger.removeHandler(h)
        h.close()

    sess_filter = SessionFilter(session_id)

    # Console
    sh = logging.StreamHandler(settings.get("stream") or sys.stdout)
    sh.setLevel(log_level)
    sh.setFormatter(ConsoleFormatter("%(message)s"))
    sh.addFilter(sess_filter)
    root_logger.addHandler(sh)

    log_dir: Optional[str] = settings.get("log_dir")
    if log_dir:
        file_fmt = logging.Formatter(FILE_FORMAT)
        log_path = Path(log_dir)
        log_path.mkdir(parents=True, exist_ok=True)

        # latest.log
        lh = logging.FileHandler(log_path / "latest.log", mode="w", encoding="utf-8")
        lh.setLevel(logging.DEBUG)
        lh.setFormatter(file_fmt)
        lh.addFilter(sess_filter)
        root_logger.addHandler(lh)

        # debug.log (rotating)
        rh = logging.handlers.RotatingFileHandler(
            log_path / "debug.log", maxBytes=1_000_000, backupCount=5, encoding="utf-8"
        )
        rh.setLevel(logging.DEBUG)
        rh.setFormatter(file_fmt)
        rh.addFilter(sess_filter)
        root_logger.addHandler(rh)

    logging.captureWarnings(True)

    app_logger = logging.getLogger("retroprep")
    app_logger.setLevel(logging.DEBUG)
    app_logger.debug("Logger initialized | debug=%s | session=%s", settings.get("debug"), session_id)
    return app_logger
