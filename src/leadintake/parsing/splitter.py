"""
City Splitter

Groups validated rows by locality and re-serializes each group into its own
CSV payload with the original header line.
"""
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List

from src.leadintake.parsing.csv_reader import records_to_csv
from src.leadintake.parsing.rows import ParsedRow, ParseResult


@dataclass
class LocalityGroup:
    """Rows of one (city, state) locality and their CSV serialization."""
    city: str
    state: str
    rows: List[ParsedRow] = field(default_factory=list)
    csv_text: str = ""

    @property
    def row_count(self) -> int:
        return len(self.rows)


def group_by_locality(rows: List[ParsedRow]) -> "OrderedDict[str, LocalityGroup]":
    """
    Group rows by case-insensitive ``city|state``.

    Groups keep first-seen order, and each group's city/state casing comes
    from the first row observed for it.
    """
    groups: "OrderedDict[str, LocalityGroup]" = OrderedDict()
    for row in rows:
        key = row.locality_key
        if key not in groups:
            groups[key] = LocalityGroup(city=row.city, state=row.state)
        groups[key].rows.append(row)
    return groups


def split_by_locality(result: ParseResult) -> Dict[str, LocalityGroup]:
    """
    Split a parsed upload into one CSV payload per locality.

    Every payload carries the source header line and only its own rows,
    with each row's original values. Rejected rows are not emitted.

    Args:
        result: Output of ``parse_csv``

    Returns:
        Mapping of ``city|state`` key to LocalityGroup
    """
    groups = group_by_locality(result.rows)
    for group in groups.values():
        group.csv_text = records_to_csv(result.headers, [row.raw for row in group.rows])
    return groups
