"""
Validated Row Records

A CSV file is parsed and validated once into ``ParsedRow`` records; rows that
cannot be placed in a (city, state) locality flow into a separate stream of
``RejectedRow`` records carrying a reason code.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

MALFORMED_PREVIEW_LENGTH = 60


class RejectReason(str, Enum):
    """Why a row could not be used."""
    MISSING_ADDRESS = "missing_address"
    MISSING_CITY = "missing_city"
    INVALID_CITY = "invalid_city"
    MISSING_STATE = "missing_state"
    INVALID_STATE = "invalid_state"


@dataclass
class ParsedRow:
    """
    One usable CSV data row.

    Attributes:
        row_num: 1-based data row number in the source file
        address: Trimmed street address
        city: Validated or derived city
        state: 2-letter state code
        zip: ZIP code as written (trimmed)
        case_id: Case number if the export has one
        violation: Violation type/category
        description: Free-text narrative (internal only)
        status: Free-text status as exported
        opened_date: Raw opened date text
        last_updated: Raw last-updated date text
        used_fallback: True when city/state came from the upload's fallback pair
        raw: Original row values keyed by original header
    """
    row_num: int
    address: str
    city: str
    state: str
    zip: str = ""
    case_id: str = ""
    violation: str = ""
    description: str = ""
    status: str = "Open"
    opened_date: str = ""
    last_updated: str = ""
    used_fallback: bool = False
    raw: Dict[str, str] = field(default_factory=dict)

    @property
    def locality_key(self) -> str:
        return f"{self.city.lower()}|{self.state.lower()}"


@dataclass
class RejectedRow:
    """A row dropped during validation, with the reason it was dropped."""
    row_num: int
    reason: RejectReason
    detail: str = ""
    raw: Dict[str, str] = field(default_factory=dict)

    def as_warning(self) -> str:
        message = f"Row {self.row_num} skipped: {self.reason.value}"
        if self.detail:
            message += f" ({self.detail})"
        return message


@dataclass
class ParseResult:
    """Output of a single parse-and-validate pass over a CSV payload."""
    headers: List[str] = field(default_factory=list)
    rows: List[ParsedRow] = field(default_factory=list)
    rejected: List[RejectedRow] = field(default_factory=list)
    total_rows: int = 0
    missing_location_rows: int = 0
    malformed_lines: List[List[str]] = field(default_factory=list)

    @property
    def usable_rows(self) -> int:
        return len(self.rows)

    def warnings(self) -> List[str]:
        """Job warning text for every skipped row, malformed lines first."""
        messages = []
        for fields in self.malformed_lines:
            preview = ",".join(fields)
            if len(preview) > MALFORMED_PREVIEW_LENGTH:
                preview = preview[:MALFORMED_PREVIEW_LENGTH] + "..."
            messages.append(
                f"Malformed line skipped ({len(fields)} fields, expected {len(self.headers)}): {preview}"
            )
        messages.extend(rejected.as_warning() for rejected in self.rejected)
        return messages


@dataclass
class DetectedLocation:
    city: str
    state: str
    count: int


@dataclass
class DetectionResult:
    """Locality summary used to decide whether an upload must be split."""
    locations: List[DetectedLocation] = field(default_factory=list)
    total_rows: int = 0
    unique_cities: List[str] = field(default_factory=list)
    unique_states: List[str] = field(default_factory=list)
    missing_location_rows: int = 0

    @property
    def needs_split(self) -> bool:
        return len(self.locations) > 1 or len(self.unique_states) > 1

    def primary_location(self) -> Optional[DetectedLocation]:
        return self.locations[0] if self.locations else None
