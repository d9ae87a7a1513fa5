from __future__ import annotations


class DataSourceError(Exception):
    """Base error for anything that prevents a row set from being loaded."""


class SheetDecodeError(DataSourceError):
    """Raised when uploaded or fetched bytes are not a readable spreadsheet."""


class SourceFetchError(DataSourceError):
    """Raised when a source URL cannot be downloaded."""
