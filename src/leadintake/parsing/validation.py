"""
Upload Validation

Checks a pasted or uploaded CSV before any job exists and reports every
problem as a human-readable message.
"""
from typing import List, Optional

import pandas as pd

from src.leadintake.parsing.csv_reader import read_csv_text
from src.leadintake.parsing.location import parse_table

MIN_LINES = 2


def validate_csv_text(
    text: str,
    fallback_city: Optional[str] = None,
    fallback_state: Optional[str] = None,
) -> List[str]:
    """
    Validate CSV text for upload.

    Rows without a usable city/state only block the upload when no
    fallback pair was supplied.

    Args:
        text: Raw CSV text
        fallback_city: City applied to rows missing one
        fallback_state: State applied to rows missing one

    Returns:
        List of messages; empty when the upload may proceed
    """
    lines = [line for line in (text or '').strip().splitlines() if line.strip()]
    if len(lines) < MIN_LINES:
        return ['CSV must have at least 2 rows (header + data)']

    errors: List[str] = []
    table = None
    try:
        table = read_csv_text(text, strict=True)
    except pd.errors.ParserError as e:
        errors.append(f'CSV parsing error: {e}')

    if table is not None and 'address' not in table.columns:
        errors.append('Missing required column: "address"')

    if text.count('"') % 2 != 0:
        errors.append('Unmatched quotes detected - this may cause parsing errors')

    if errors:
        return errors

    result = parse_table(table, fallback_city, fallback_state)
    if not result.rows:
        errors.append('No rows with a valid address and city/state were found')
    elif result.missing_location_rows and not (fallback_city and fallback_state):
        errors.append(
            f'{result.missing_location_rows} rows are missing a valid city/state - '
            'enter a fallback city and state or these rows will be skipped'
        )
    return errors
