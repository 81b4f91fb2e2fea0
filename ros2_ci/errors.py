"""Exceptions raised by the ros2-ci pipeline.

Anything deriving from :class:`CiError` is fatal: it aborts the remaining
stages and its message becomes the reported failure reason.
"""

import shlex
from typing import Sequence


class CiError(RuntimeError):
    """Base class for fatal pipeline failures."""


class PlatformError(CiError):
    """Raised when a requested feature is not available on this platform."""


class ManifestError(CiError):
    """Raised when a repository manifest cannot be fetched or parsed."""


class CommandError(CiError):
    """Raised when an external command exits with a non-zero status."""

    def __init__(self, argv: Sequence[str], returncode: int, output: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.output = output
        super().__init__(
            f"The process '{shlex.join(self.argv)}' failed with exit code {returncode}"
        )
