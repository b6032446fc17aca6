"""
Exceptions raised by the export engine.

Everything derives from ExportError so callers can catch the whole family.
Failures of the mail sources themselves are raised as the builtin
ConnectionError / RuntimeError, like the source clients always have.
"""

from typing import Iterable


class ExportError(Exception):
    """Base class for export errors"""


class MissingFieldError(ExportError, KeyError):
    """An item does not expose one or more fields an operation needs"""

    def __init__(self, fields: Iterable[str]):
        self.fields = sorted(fields)
        super().__init__(f"Missing field(s): {', '.join(self.fields)}")

    def __str__(self):
        # KeyError quotes its argument, we want the plain message
        return self.args[0]


class PathTooLongError(ExportError):
    """The target directory leaves no room for a file name"""

    def __init__(self, directory: str, max_path: int):
        self.directory = directory
        self.max_path = max_path
        super().__init__(
            f"Directory '{directory}' is too long to hold any file name "
            f"(limit {max_path} characters)"
        )


class PathNotUniqueError(ExportError):
    """No suffixed candidate fits within the path length limit"""

    def __init__(self, path: str, max_path: int):
        self.path = path
        self.max_path = max_path
        super().__init__(
            f"Cannot make '{path}' unique within {max_path} characters"
        )


class OutputRootError(ExportError):
    """The output root directory cannot be resolved or created"""


class RestrictionError(ExportError, ValueError):
    """A restriction expression could not be parsed"""
