"""Production steps for build artifacts.

Each step knows how to produce one target inside a build directory. Command
steps hand their argv to an injectable runner; the fetch step streams a single
HTTP GET to disk.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Protocol, Sequence

import httpx

from .config import DetectionMode
from .errors import FetchError, ToolError

logger = logging.getLogger(__name__)

CommandRunner = Callable[[Sequence[str], Path], None]


class Step(Protocol):
    def describe(self, target: str) -> str: ...

    def run(self, directory: Path, target: str) -> None: ...


def run_command(argv: Sequence[str], cwd: Path) -> None:
    """
    Run an external tool to completion, passing its output straight through.

    Raises ToolError on a non-zero exit status or a missing executable.
    """
    logger.debug("Running in %s: %s", cwd, shlex.join(argv))
    try:
        completed = subprocess.run(list(argv), cwd=cwd, check=False)
    except FileNotFoundError as exc:
        raise ToolError(argv, None) from exc
    if completed.returncode != 0:
        raise ToolError(argv, completed.returncode)


class _CommandStep:
    runner: CommandRunner

    def argv(self, target: str) -> List[str]:
        raise NotImplementedError

    def describe(self, target: str) -> str:
        return shlex.join(self.argv(target))

    def run(self, directory: Path, target: str) -> None:
        self.runner(self.argv(target), directory)


@dataclass
class SliceStep(_CommandStep):
    """
    Copy an inclusive page range of the source PDF into a new document with qpdf.
    """

    source: str
    first_page: int
    last_page: int
    qpdf: str = "qpdf"
    runner: CommandRunner = run_command

    def argv(self, target: str) -> List[str]:
        return [
            self.qpdf,
            self.source,
            "--pages",
            ".",
            f"{self.first_page}-{self.last_page}",
            "--",
            target,
        ]


@dataclass
class ExtractStep(_CommandStep):
    """
    Run tabula-java on one page of a PDF and write the detected tables as JSON.
    """

    jar: str
    pdf: str
    page: int
    mode: DetectionMode = "lattice"
    java: str = "java"
    runner: CommandRunner = run_command

    def argv(self, target: str) -> List[str]:
        mode_flag = "-l" if self.mode == "lattice" else "-t"
        return [
            self.java,
            "-jar",
            self.jar,
            "-p",
            str(self.page),
            mode_flag,
            "-f",
            "JSON",
            self.pdf,
            "-o",
            target,
        ]


@dataclass
class FetchStep:
    """
    Download a file verbatim from a fixed URL.

    The body is streamed to `<target>.part` and renamed once complete, so a
    broken transfer never leaves a file that later runs would trust.
    """

    url: str
    timeout: float = 60.0
    transport: Optional[httpx.BaseTransport] = None

    def describe(self, target: str) -> str:
        return f"GET {self.url} -> {target}"

    def run(self, directory: Path, target: str) -> None:
        destination = directory / target
        partial = destination.with_name(destination.name + ".part")
        logger.info("Downloading %s", self.url)
        try:
            with httpx.Client(
                follow_redirects=True, timeout=self.timeout, transport=self.transport
            ) as client:
                with client.stream("GET", self.url) as response:
                    response.raise_for_status()
                    with open(partial, "wb") as fh:
                        for chunk in response.iter_bytes():
                            fh.write(chunk)
        except httpx.HTTPStatusError as exc:
            raise FetchError(self.url, f"HTTP status {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise FetchError(self.url, str(exc) or type(exc).__name__) from exc
        except OSError as exc:
            raise FetchError(self.url, f"cannot write {partial}: {exc}") from exc
        try:
            partial.replace(destination)
        except OSError as exc:
            raise FetchError(self.url, f"cannot move {partial} to {destination}: {exc}") from exc
        logger.info("Saved %s (%d bytes)", destination, destination.stat().st_size)
