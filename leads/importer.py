"""
Lead Importer - spreadsheet import with per-row validation.

Works in two phases so the operator can review a preview before anything
is written:

    importer = LeadImporter()
    report = importer.validate_file("leads.xlsx")

    print(report.summary())
    for row in report.invalid:
        print(f"Row {row.row_number}: {', '.join(row.errors)}")

    importer.commit(report, get_client())

Spreadsheets are user-authored, so column names are matched
case-insensitively against a list of aliases (Nome, nome, Name, ...).
"""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from outreach.errors import ValidationError
from outreach.models import Channel, LEAD_COLUMNS, LeadState

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("name", "phone", "interest")
OPTIONAL_FIELDS = ("email", "notes", "details", "context", "channel")

MISSING_FIELD_ERRORS = {
    "name": "Nome mancante",
    "phone": "Telefono mancante",
    "interest": "Interesse mancante",
}
INVALID_CHANNEL_ERROR = "Canale non valido (usa: whatsapp, email, entrambi)"

SUPPORTED_SUFFIXES = {".csv", ".xlsx"}


# Normalized column name -> lead field
COLUMN_MAPPINGS = {
    # Name variations
    "nome": "name",
    "name": "name",
    "nome_completo": "name",
    "full_name": "name",

    # Phone variations
    "telefono": "phone",
    "tel": "phone",
    "cellulare": "phone",
    "phone": "phone",
    "phone_number": "phone",

    # Interest variations
    "interesse": "interest",
    "interest": "interest",

    # Email variations
    "email": "email",
    "e_mail": "email",
    "mail": "email",

    # Notes variations
    "note": "notes",
    "notes": "notes",

    # Generator details variations
    "dettagli_claude": "details",
    "dettagli": "details",
    "details": "details",

    # Context variations
    "contesto_aggiuntivo": "context",
    "contesto": "context",
    "context": "context",

    # Channel variations
    "canale_preferito": "channel",
    "canale": "channel",
    "channel": "channel",
}

# Sample row written by write_import_template
TEMPLATE_ROW = {
    "nome": "Dr. Mario Rossi",
    "telefono": "3479635862",
    "email": "mario.rossi@example.com",
    "interesse": "Corso EdgeEndo",
    "note": "Contatto da webinar",
    "dettagli_claude": "Corso 20 ore, certificato incluso",
    "contesto_aggiuntivo": "Ha partecipato al webinar del 15 gennaio",
    "canale_preferito": "whatsapp",
}


def normalize_header(header: Any) -> str:
    return re.sub(r"[\s\-]+", "_", str(header).strip().lower())


@dataclass
class ImportRow:
    """Validation outcome for one spreadsheet row."""
    row_number: int
    fields: Dict[str, str]
    errors: List[str] = field(default_factory=list)
    sequence: Optional[int] = None

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_lead_row(self) -> Dict[str, Any]:
        """Columns to insert for this row as a new lead."""
        row = {LEAD_COLUMNS[name]: value or None for name, value in self.fields.items()}
        row[LEAD_COLUMNS["name"]] = self.fields["name"]
        row[LEAD_COLUMNS["phone"]] = self.fields["phone"]
        row[LEAD_COLUMNS["state"]] = LeadState.NEW.value
        row[LEAD_COLUMNS["sequence"]] = self.sequence
        return row


@dataclass
class ImportReport:
    """Validation results for a whole file, in source order."""
    rows: List[ImportRow] = field(default_factory=list)

    @property
    def valid(self) -> List[ImportRow]:
        return [row for row in self.rows if row.valid]

    @property
    def invalid(self) -> List[ImportRow]:
        return [row for row in self.rows if not row.valid]

    def summary(self) -> str:
        return f"{len(self.valid)} lead validi / {len(self.rows)} totali"


class LeadImporter:
    """
    Validates raw rows and commits the valid ones.

    Features:
    - Case-insensitive column matching with aliases
    - Phone whitespace removal
    - Channel defaulting and validation
    - Every row reported, valid or not; validation never raises
    - Sequence numbers continuing from the store's current maximum
    """

    def __init__(self, custom_mappings: Optional[Dict[str, str]] = None):
        """
        Initialize the importer.

        Args:
            custom_mappings: Additional column name -> lead field mappings
        """
        self.column_mappings = {**COLUMN_MAPPINGS}
        if custom_mappings:
            self.column_mappings.update(
                {normalize_header(key): value for key, value in custom_mappings.items()}
            )

    def _extract(self, row: Mapping[str, Any]) -> Dict[str, str]:
        """Pick lead fields out of a row; the first non-blank alias wins."""
        values: Dict[str, str] = {}

        for header, value in row.items():
            field_name = self.column_mappings.get(normalize_header(header))
            if field_name is None or values.get(field_name):
                continue
            if value is None or (isinstance(value, float) and pd.isna(value)):
                continue
            values[field_name] = str(value).strip()

        return values

    def validate_row(self, row: Mapping[str, Any], row_number: int) -> ImportRow:
        values = self._extract(row)
        errors = [
            MISSING_FIELD_ERRORS[name]
            for name in REQUIRED_FIELDS
            if not values.get(name)
        ]

        fields = {name: values.get(name, "") for name in REQUIRED_FIELDS + OPTIONAL_FIELDS}
        fields["phone"] = re.sub(r"\s", "", fields["phone"])

        channel = fields["channel"].lower() or Channel.WHATSAPP.value
        try:
            channel = Channel.parse(channel).value
        except ValueError:
            errors.append(INVALID_CHANNEL_ERROR)
        fields["channel"] = channel

        return ImportRow(row_number=row_number, fields=fields, errors=errors)

    def validate_rows(self, rows: Iterable[Mapping[str, Any]], first_row_number: int = 2) -> ImportReport:
        """
        Validate rows without writing anything.

        Args:
            rows: Raw rows keyed by column header
            first_row_number: Number shown for the first row (2 when the
                sheet has a header line)

        Returns:
            ImportReport with one entry per input row
        """
        report = ImportReport(
            rows=[
                self.validate_row(row, row_number)
                for row_number, row in enumerate(rows, start=first_row_number)
            ]
        )
        logger.info("Validated import: %s", report.summary())
        return report

    def validate_file(self, filepath: str) -> ImportReport:
        """Read a spreadsheet and validate its rows."""
        return self.validate_rows(read_rows(filepath))

    @staticmethod
    def assign_sequences(report: ImportReport, current_max: int) -> List[ImportRow]:
        """
        Number valid rows strictly increasing from current_max + 1.

        Returns:
            The valid rows, in source order
        """
        valid_rows = report.valid
        for offset, row in enumerate(valid_rows, start=1):
            row.sequence = current_max + offset
        return valid_rows

    def commit(self, report: ImportReport, store) -> List[Dict]:
        """
        Insert the valid rows of a report as new leads.

        Returns:
            Created lead records (empty when nothing was valid)

        Raises:
            UpstreamError: If the store rejects the insert
        """
        valid_rows = self.assign_sequences(report, store.max_sequence())
        if not valid_rows:
            logger.warning("Nothing to import: no valid rows")
            return []

        created = store.insert_leads([row.to_lead_row() for row in valid_rows])
        logger.info(
            "Imported %d leads (sequence %d-%d)",
            len(valid_rows), valid_rows[0].sequence, valid_rows[-1].sequence,
        )
        return created


def read_rows(filepath: str) -> List[Dict[str, Any]]:
    """
    Load the first sheet of an .xlsx or .csv file as a list of rows.

    Every cell is read as text so phone numbers keep their leading zeros.
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Spreadsheet not found: {filepath}")

    suffix = filepath.suffix.lower()
    if suffix not in SUPPORTED_SUFFIXES:
        raise ValidationError(f"Unsupported file type: {suffix} (use .xlsx or .csv)")

    if suffix == ".csv":
        frame = pd.read_csv(filepath, dtype=str, keep_default_na=False, encoding="utf-8-sig")
    else:
        frame = pd.read_excel(filepath, sheet_name=0, dtype=str, keep_default_na=False)

    return frame.to_dict(orient="records")


def write_import_template(filepath: str):
    """Write a one-row sample sheet showing the expected columns."""
    frame = pd.DataFrame([TEMPLATE_ROW])
    if Path(filepath).suffix.lower() == ".csv":
        frame.to_csv(filepath, index=False)
    else:
        frame.to_excel(filepath, index=False, sheet_name="Template")


# CLI interface
if __name__ == "__main__":
    import argparse

    from database import get_client

    parser = argparse.ArgumentParser(description="Validate and import leads from a spreadsheet")
    parser.add_argument("filepath", help="Path to .xlsx or .csv file")
    parser.add_argument("--commit", action="store_true", help="Insert valid rows into Supabase")
    parser.add_argument("--template", action="store_true", help="Write a sample sheet to FILEPATH and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s: %(message)s",
    )

    if args.template:
        write_import_template(args.filepath)
        print(f"Template written to {args.filepath}")
    else:
        importer = LeadImporter()
        report = importer.validate_file(args.filepath)

        print(report.summary())
        for row in report.invalid:
            print(f"  Row {row.row_number}: {', '.join(row.errors)}")

        if args.commit:
            created = importer.commit(report, get_client())
            print(f"{len(created)} lead importati")
