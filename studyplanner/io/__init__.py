"""I/O utilities for CSV import/export."""

from .export_csv import export_events_csv
from .import_csv import import_courses_csv, import_events_csv, import_modules_csv

__all__ = [
    "import_courses_csv",
    "import_modules_csv",
    "import_events_csv",
    "export_events_csv",
]
