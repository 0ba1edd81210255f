import logging
from pathlib import Path

import pytest
from PIL import Image


@pytest.fixture(autouse=True)
def _restore_root_logging():
    # CLI entry points reconfigure the root logger; put it back after each test
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for h in list(root.handlers):
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    for h in handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(level)
    logging.captureWarnings(False)


@pytest.fixture
def make_image():
    def _make(path: Path, size=(800, 600), color=(200, 30, 30), mode="RGB", fmt=None) -> Path:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        img = Image.new(mode, size, color)
        if fmt is None and path.suffix.lower() == ".gif":
            img = img.convert("P")
        img.save(path, fmt)
        return path
    return _make
