"""
esp_register_tables builds register tables from the ESP8266 technical reference.

The package declares the artifact graph (downloaded tabula jar, sliced manual
appendix, one JSON table per peripheral page), runs the external tools for
stale artifacts, and reads the resulting tables back for export.
"""

__all__ = [
    "config",
    "errors",
    "executor",
    "pdfinfo",
    "rules",
    "steps",
    "tables",
]
