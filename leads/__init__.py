"""
Lead management module for the outreach engine.

Handles validating and importing leads from spreadsheets.
"""

from .importer import (
    LeadImporter,
    ImportReport,
    ImportRow,
    read_rows,
    write_import_template
)

__all__ = [
    "LeadImporter",
    "ImportReport",
    "ImportRow",
    "read_rows",
    "write_import_template"
]
