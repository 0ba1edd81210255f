"""``python -m retroprep [TOOL [ARGS...]]``: list the tools or run one of them."""

import sys

from retroprep import __version__
from retroprep.tasks_registry import get_tasks, missing_dependencies, run_task


def main(argv=None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    tasks = {t["id"]: t for t in get_tasks()}

    if argv and argv[0] in tasks:
        return run_task(argv[0], argv[1:])
    if argv and argv[0] not in ("-h", "--help", "list"):
        print(f"Unknown tool: {argv[0]}. Available: {', '.join(tasks)}", file=sys.stderr)
        return 1

    print(f"retroprep {__version__}")
    for task in tasks.values():
        missing = missing_dependencies(task)
        status = "ready" if not missing else "missing " + ", ".join(missing)
        print(f"  {task['id']:<12} {task['label']}  [{status}]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
