"""Error taxonomy shared by the CLI tools.

Configuration/setup errors are raised before any work starts and end the
process with their ``exit_code``. Per-item failures are wrapped in
``ConversionFailed`` and collected by the batch runner instead.
"""

from __future__ import annotations


class RetroPrepError(Exception):
    exit_code = 1


class ConfigError(RetroPrepError):
    """Invalid mode, profile, size, color or output path."""


class InvalidOutputError(ConfigError):
    pass


class AmbiguousOutputError(ConfigError):
    pass


class NotFoundError(RetroPrepError):
    def __init__(self, path):
        super().__init__(f"Input not found: {path}")
        self.path = path


class BackendMissingError(RetroPrepError):
    pass


class ConversionFailed(RetroPrepError):
    def __init__(self, item, cause):
        super().__init__(f"{item}: {cause}")
        self.item = item
        self.cause = cause
