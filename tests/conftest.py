"""Pytest fixtures shared by the unit tests.

Fixtures:
    - build_dir: temporary build directory containing a source manual
    - fake_runner: stands in for qpdf and java, writing the requested output
    - jar_server: httpx mock transport serving the tabula jar
    - make_executor: executor over the real recipe wired to the fakes above
"""

import json
import os
from collections.abc import Callable, Sequence
from pathlib import Path

import httpx
import pytest

from esp_register_tables.config import BuildConfig
from esp_register_tables.errors import ToolError
from esp_register_tables.executor import BuildExecutor
from esp_register_tables.rules import build_graph

SOURCE_PDF = "esp8266-technical_reference_en.pdf"

SAMPLE_TABLE = [
    {
        "extraction_method": "lattice",
        "top": 80.0,
        "left": 40.0,
        "width": 520.0,
        "height": 300.0,
        "data": [
            [
                {"top": 80.0, "left": 40.0, "width": 120.0, "height": 12.0, "text": "Name"},
                {"top": 80.0, "left": 160.0, "width": 120.0, "height": 12.0, "text": "Address"},
                {"top": 80.0, "left": 280.0, "width": 280.0, "height": 12.0, "text": "Description"},
            ],
            [
                {"top": 92.0, "left": 40.0, "width": 120.0, "height": 12.0, "text": "GPIO_OUT"},
                {"top": 92.0, "left": 160.0, "width": 120.0, "height": 12.0, "text": "0x60000300"},
                {"top": 92.0, "left": 280.0, "width": 280.0, "height": 12.0, "text": "GPIO output value"},
            ],
        ],
    }
]


class FakeRunner:
    """Records tool invocations and writes the file each one would produce."""

    def __init__(self, fail_on: str | None = None) -> None:
        self.calls: list[list[str]] = []
        self.fail_on = fail_on

    def __call__(self, argv: Sequence[str], cwd: Path) -> None:
        argv = list(argv)
        self.calls.append(argv)
        target = argv[argv.index("-o") + 1] if "-o" in argv else argv[-1]
        if target == self.fail_on:
            raise ToolError(argv, 1)
        path = Path(cwd) / target
        if target.endswith(".json"):
            path.write_text(json.dumps(SAMPLE_TABLE), encoding="utf-8")
        else:
            path.write_bytes(b"%PDF-1.4\n% sliced appendix\n")

    @property
    def targets(self) -> list[str]:
        return [c[c.index("-o") + 1] if "-o" in c else c[-1] for c in self.calls]


class JarServer:
    """Serves the jar download and counts requests."""

    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.requests: list[httpx.Request] = []
        self.transport = httpx.MockTransport(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, content=b"PK\x03\x04 tabula jar")


def set_mtime(path: Path, seconds: int) -> None:
    """Pin a file's access and modification time."""
    ns = seconds * 1_000_000_000
    os.utime(path, ns=(ns, ns))


@pytest.fixture
def build_dir(tmp_path: Path) -> Path:
    """Return a build directory that already holds the source manual."""
    (tmp_path / SOURCE_PDF).write_bytes(b"%PDF-1.4\n% reference manual\n")
    set_mtime(tmp_path / SOURCE_PDF, 1_000)
    return tmp_path


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def jar_server() -> JarServer:
    return JarServer()


@pytest.fixture
def make_executor(
    build_dir: Path, fake_runner: FakeRunner, jar_server: JarServer
) -> Callable[..., BuildExecutor]:
    """Return a factory for executors over the appendix recipe in build_dir."""

    def _make(runner: FakeRunner | None = None, **kwargs) -> BuildExecutor:
        config = BuildConfig(directory=build_dir)
        graph = build_graph(config, runner=runner or fake_runner)
        graph.rules[config.tabula_jar].step.transport = jar_server.transport
        return BuildExecutor(graph, build_dir, **kwargs)

    return _make
