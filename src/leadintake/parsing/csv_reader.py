"""
CSV Reader

Reads municipal violation exports into header-normalized records using
pandas. Handles delimiter variation (comma, tab, pipe), quoted multi-line
fields, and the column-name drift seen across jurisdictions.
"""
import io
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import pandas as pd

from src.leadintake.utils.logger import get_logger

logger = get_logger(__name__)


CANONICAL_FIELDS = (
    'address', 'city', 'state', 'zip', 'case_id', 'violation',
    'description', 'status', 'opened_date', 'last_updated',
)

# Header variants seen in the wild, after lower-casing and turning
# underscores into spaces
HEADER_ALIASES = {
    'address': [
        'address', 'property address', 'site address', 'street address',
        'situs address', 'location address', 'addr',
    ],
    'city': ['city', 'municipality', 'town', 'property city', 'site city'],
    'state': ['state', 'st', 'property state', 'state code'],
    'zip': ['zip', 'zip code', 'zipcode', 'postal code', 'postal', 'zip5'],
    'case_id': [
        'case id', 'case number', 'case no', 'case #', 'casenumber',
        'case', 'record number', 'permit number',
    ],
    'violation': [
        'violation', 'violation type', 'type', 'category',
        'violation category', 'code violation',
    ],
    'description': [
        'description', 'violation description', 'details', 'comments',
        'narrative', 'notes',
    ],
    'status': ['status', 'case status', 'violation status'],
    'opened_date': [
        'opened date', 'open date', 'date opened', 'opened', 'case date',
        'violation date', 'created date', 'date',
    ],
    'last_updated': [
        'last updated', 'updated', 'last update', 'last activity',
        'status date', 'updated date',
    ],
}

DELIMITERS = {',': 'comma', '\t': 'tab', '|': 'pipe'}


@dataclass
class CsvTable:
    """
    Header-normalized view of a CSV payload.

    Attributes:
        headers: Column names as they appear in the file
        columns: Canonical field name -> original header, for mapped fields
        records: One dict per non-blank data row, keyed by original header
        delimiter: Delimiter the payload was read with
        bad_lines: Malformed lines skipped in lenient mode
    """
    headers: List[str] = field(default_factory=list)
    columns: Dict[str, str] = field(default_factory=dict)
    records: List[Dict[str, str]] = field(default_factory=list)
    delimiter: str = ','
    bad_lines: List[List[str]] = field(default_factory=list)

    def value(self, record: Dict[str, str], canonical: str) -> str:
        header = self.columns.get(canonical)
        if header is None:
            return ''
        return (record.get(header) or '').strip()


def normalize_header(header: str) -> str:
    """Trim, lower-case and collapse whitespace/underscores in a header."""
    normalized = str(header).strip().lower().replace('_', ' ')
    return re.sub(r'\s+', ' ', normalized)


def map_headers(headers: List[str]) -> Dict[str, str]:
    """
    Map canonical field names to the first matching original header.

    Exact canonical names win over aliases so a file with both ``type`` and
    ``violation`` columns uses ``violation``.
    """
    normalized = {normalize_header(h): h for h in reversed(headers)}
    columns = {}
    for canonical, aliases in HEADER_ALIASES.items():
        for alias in [canonical.replace('_', ' ')] + aliases:
            if alias in normalized:
                columns[canonical] = normalized[alias]
                break
    return columns


def detect_delimiter(text: str) -> str:
    """
    Pick the field delimiter from the header line.

    Tab or pipe is chosen only when it is strictly more frequent than both
    other candidates; comma is the default.
    """
    first_line = text.lstrip('\ufeff').split('\n', 1)[0]
    commas = first_line.count(',')
    tabs = first_line.count('\t')
    pipes = first_line.count('|')

    if tabs > commas and tabs > pipes:
        return '\t'
    if pipes > commas and pipes > tabs:
        return '|'
    return ','


def _read_frame(text: str, delimiter: str, strict: bool, bad_lines: List[List[str]]) -> pd.DataFrame:
    def skip_bad_line(line: List[str]):
        bad_lines.append(line)
        return None

    return pd.read_csv(
        io.StringIO(text),
        sep=delimiter,
        dtype=str,
        keep_default_na=False,
        skip_blank_lines=True,
        engine='python',
        on_bad_lines='error' if strict else skip_bad_line,
    )


def read_csv_text(text: str, delimiter: Optional[str] = None, strict: bool = False) -> CsvTable:
    """
    Parse CSV text into a ``CsvTable``.

    Empty input and header-only input return a table with no records.

    Args:
        text: Raw CSV text
        delimiter: Force a delimiter instead of detecting it
        strict: Raise ``pandas.errors.ParserError`` on malformed lines
            instead of skipping them

    Returns:
        CsvTable
    """
    text = (text or '').lstrip('\ufeff')
    delimiter = delimiter or detect_delimiter(text)
    bad_lines: List[List[str]] = []

    if not text.strip():
        return CsvTable(delimiter=delimiter)

    try:
        frame = _read_frame(text, delimiter, strict, bad_lines)
    except pd.errors.EmptyDataError:
        return CsvTable(delimiter=delimiter)

    headers = [str(column) for column in frame.columns]
    records = []
    for values in frame.itertuples(index=False, name=None):
        # short rows are padded with NaN even with keep_default_na off
        record = {header: ('' if pd.isna(value) else str(value)) for header, value in zip(headers, values)}
        if any(v.strip() for v in record.values()):
            records.append(record)

    if bad_lines:
        logger.warning("csv_malformed_lines_skipped", count=len(bad_lines))

    return CsvTable(
        headers=headers,
        columns=map_headers(headers),
        records=records,
        delimiter=delimiter,
        bad_lines=bad_lines,
    )


def to_comma_delimited(text: str) -> str:
    """Re-serialize tab- or pipe-delimited text as quoted comma CSV."""
    delimiter = detect_delimiter(text)
    if delimiter == ',':
        return text

    table = read_csv_text(text, delimiter=delimiter)
    logger.info(
        "csv_delimiter_converted",
        delimiter=DELIMITERS[delimiter],
        rows=len(table.records),
    )
    return records_to_csv(table.headers, table.records)


def records_to_csv(headers: List[str], records: List[Dict[str, str]]) -> str:
    """Serialize records with ``headers`` as the header line."""
    frame = pd.DataFrame(records, columns=headers)
    return frame.to_csv(index=False)
