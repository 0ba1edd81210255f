"""Registry of the bundled conversion tools.

Each task is a dictionary containing:

* `id`: stable identifier (string), also the console-script name
* `label`: human-readable label
* `module`: module providing ``main(argv) -> int``
* `py_deps`/`bin_deps`: dependency hints; binaries listed as alternatives
  (``"magick|convert"``) need only one of them
* `env`: optional mapping of environment variables overriding binary names
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
from typing import Any, Dict, List

from retroprep.core import binary_from_env, cmd_exists

LOGGER = logging.getLogger(__name__)


def _builtin_tasks() -> List[Dict[str, Any]]:
    """Return the built-in task specifications."""

    return [
        {
            "id": "img2boxart",
            "label": "Cover images -> fixed-size PNG boxart",
            "module": "retroprep.scripts.img2boxart",
            "py_deps": ["PIL"],
            # ImageMagick (magick|convert) is optional, Pillow covers every mode
            "bin_deps": [],
        },
        {
            "id": "video720",
            "label": "MKV/MP4 -> 720p MP4 (language-aware tracks)",
            "module": "retroprep.scripts.video_720p",
            "py_deps": [],
            "bin_deps": ["ffmpeg", "ffprobe"],
            "env": {"ffmpeg": "RETROPREP_FFMPEG", "ffprobe": "RETROPREP_FFPROBE"},
        },
        {
            "id": "cue2iso",
            "label": "BIN/CUE and CHD -> ISO",
            "module": "retroprep.scripts.cue2iso",
            "py_deps": [],
            "bin_deps": ["chdman"],
            "env": {"chdman": "RETROPREP_CHDMAN"},
        },
    ]


def _binary_available(spec: str, env: Dict[str, str]) -> bool:
    for name in spec.split("|"):
        binary = binary_from_env(env[name], name) if name in env else name
        if cmd_exists(binary):
            return True
    return False


def missing_dependencies(task: Dict[str, Any]) -> List[str]:
    """Names of required Python modules and binaries that cannot be found."""
    missing = [mod for mod in task.get("py_deps", []) if importlib.util.find_spec(mod) is None]
    env = task.get("env", {})
    missing += [spec for spec in task.get("bin_deps", []) if not _binary_available(spec, env)]
    return missing


def get_tasks() -> List[Dict[str, Any]]:
    return _builtin_tasks()


def get_task(task_id: str) -> Dict[str, Any]:
    for task in _builtin_tasks():
        if task["id"] == task_id:
            return task
    raise KeyError(task_id)


def run_task(task_id: str, argv: List[str]) -> int:
    task = get_task(task_id)
    LOGGER.debug("Running %s (%s) with %s", task_id, task["module"], argv)
    module = importlib.import_module(task["module"])
    return module.main(argv)
