"""Build configuration.

Defaults reproduce the ESP8266 appendix recipe: pages 113-116 of the technical
reference, tabula-java 1.0.3, one lattice-mode JSON table per appendix page.
Nothing is read from the environment; the jar URL is fixed and tool executables
are chosen explicitly by the caller.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

TABULA_URL = (
    "https://github.com/tabulapdf/tabula-java/releases/download/v1.0.3/"
    "tabula-1.0.3-jar-with-dependencies.jar"
)

DEFAULT_TABLES: Dict[str, int] = {
    "gpio": 1,
    "spi": 2,
    "uart": 3,
    "timer": 4,
}

DetectionMode = Literal["lattice", "stream"]


class BuildConfig(BaseModel):
    """
    Names, page selections and tool locations for one build directory.

    Attributes:
        directory: Directory holding the source PDF and all artifacts.
        source_pdf: Externally supplied manual, never produced by a rule.
        first_page: First manual page copied into the appendix (inclusive).
        last_page: Last manual page copied into the appendix (inclusive).
        appendix_pdf: Name of the sliced appendix artifact.
        tabula_url: Version-pinned download location of the tabula jar.
        tabula_jar: Name of the downloaded jar artifact.
        qpdf: Page-extraction executable.
        java: Java launcher used to run the jar.
        detection_mode: tabula table-detection mode.
        tables: Table name to 1-indexed appendix page.
        http_timeout: Seconds before the jar download gives up.
    """

    directory: Path = Path(".")
    source_pdf: str = "esp8266-technical_reference_en.pdf"
    first_page: int = Field(default=113, ge=1)
    last_page: int = Field(default=116, ge=1)
    appendix_pdf: str = "appendix.pdf"
    tabula_url: str = TABULA_URL
    tabula_jar: str = "tabula.jar"
    qpdf: str = "qpdf"
    java: str = "java"
    detection_mode: DetectionMode = "lattice"
    tables: Dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_TABLES))
    http_timeout: float = Field(default=60.0, gt=0)

    @field_validator("tables")
    @classmethod
    def validate_tables(cls, value: Dict[str, int]) -> Dict[str, int]:
        if not value:
            raise ValueError("At least one table must be configured")
        for name in value:
            if not name or "/" in name:
                raise ValueError(f"Invalid table name: {name!r}")
        return value

    @model_validator(mode="after")
    def validate_pages(self) -> "BuildConfig":
        if self.last_page < self.first_page:
            raise ValueError(
                f"Page range {self.first_page}-{self.last_page} is empty"
            )
        appendix_pages = self.appendix_page_count
        for name, page in self.tables.items():
            if not 1 <= page <= appendix_pages:
                raise ValueError(
                    f"Table '{name}' selects page {page}, appendix has {appendix_pages} pages"
                )
        return self

    @property
    def appendix_page_count(self) -> int:
        return self.last_page - self.first_page + 1

    @property
    def page_range(self) -> str:
        return f"{self.first_page}-{self.last_page}"

    def table_targets(self) -> List[str]:
        """Return the JSON artifact names in configured order."""
        return [f"{name}.json" for name in self.tables]

    def path(self, name: str) -> Path:
        return self.directory / name


def get_build_config(directory: Path | None = None, **overrides) -> BuildConfig:
    """Create a configuration from the recipe defaults plus explicit overrides."""
    if directory is not None:
        overrides["directory"] = directory
    return BuildConfig(**overrides)
