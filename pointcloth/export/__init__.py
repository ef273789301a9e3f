"""Telemetry export sinks."""

from .sinks import (
    CsvExportSink,
    ExportSink,
    Hdf5ExportSink,
    MemorySink,
    default_filename,
)

__all__ = [
    "ExportSink",
    "MemorySink",
    "CsvExportSink",
    "Hdf5ExportSink",
    "default_filename",
]
