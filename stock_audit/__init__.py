"""Physical inventory audit core: spreadsheet import, column mapping, counting, reporting."""

__version__ = "0.1.0"
