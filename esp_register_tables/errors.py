from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence


class BuildError(Exception):
    """Base class for failures that stop a build."""


class MissingSourceError(BuildError):
    """Raised when an externally supplied input file is absent."""

    def __init__(self, path: Path):
        self.path = path
        super().__init__(f"Missing source input: {path} (it is not produced by any rule)")


class FetchError(BuildError):
    def __init__(self, url: str, reason: str):
        self.url = url
        self.reason = reason
        super().__init__(f"Download of {url} failed: {reason}")


class ToolError(BuildError):
    """
    An external tool exited non-zero or could not be started.

    `returncode` is None when the executable was not found.
    """

    def __init__(self, argv: Sequence[str], returncode: Optional[int]):
        self.argv = list(argv)
        self.returncode = returncode
        if returncode is None:
            message = f"Executable not found: {self.argv[0]}"
        else:
            message = f"Command exited with status {returncode}: {' '.join(self.argv)}"
        super().__init__(message)


class MissingOutputError(BuildError):
    def __init__(self, target: str):
        self.target = target
        super().__init__(f"Step for {target} finished but did not create it")


class UnknownTargetError(BuildError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"No rule to make target '{name}'")


class GraphCycleError(BuildError):
    def __init__(self, cycle: Sequence[str]):
        self.cycle = list(cycle)
        super().__init__("Dependency cycle: " + " -> ".join(self.cycle))


class TableFormatError(ValueError):
    """Raised when an extracted JSON document is not a tabula table list."""


class PdfInspectError(ValueError):
    """Raised when a PDF cannot be opened for inspection."""
