"""Tabular import/export and session persistence."""

from .tabular import read_table  # noqa: F401
from .importer import ImportKind, ImportResult, classify_import  # noqa: F401
from .exporter import build_criteria_rows, build_export_rows, export_results  # noqa: F401
from .session_store import (  # noqa: F401
    CRITERIA_KEY,
    MODEL_KEY,
    PROVIDER_KEY,
    InMemorySessionStore,
    JsonFileSessionStore,
    SessionStore,
)
