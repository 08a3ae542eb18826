"""
Location Detector

Validates and derives the (city, state) locality of every CSV row.

Municipal exports routinely put ZIP codes, street fragments or violation
narrative ("Overgrown weeds in backyard, must repair fence") in the city
column. One validation policy is applied everywhere a city is accepted:
parsing, detection, splitting and backfill all go through ``is_valid_city``.
"""
import re
from collections import OrderedDict
from typing import Iterable, List, Optional, Tuple, Union

from src.leadintake.parsing.csv_reader import CsvTable, read_csv_text
from src.leadintake.parsing.gazetteer import (
    HEADER_WORDS,
    KNOWN_CITIES,
    KNOWN_CITIES_BY_LENGTH,
    STATE_NAME_TO_CODE,
    STREET_TYPES,
    US_STATES,
    VIOLATION_VOCABULARY,
    VOCABULARY_PLACE_NAMES,
)
from src.leadintake.parsing.rows import (
    DetectedLocation,
    DetectionResult,
    ParsedRow,
    ParseResult,
    RejectedRow,
    RejectReason,
)
from src.leadintake.utils.logger import get_logger

logger = get_logger(__name__)

ZIP_PATTERN = re.compile(r'^\d{5}(?:-\d{4})?$')
TRAILING_ZIP = re.compile(r'[\s,]+(\d{5}(?:-\d{4})?)$')
TRAILING_STATE = re.compile(r'\s*,\s*([A-Za-z]{2})$|\s+([A-Za-z]{2})$')
SENTENCE_BREAK = re.compile(r'(\w+)\.\s+\w')
SENTENCE_PUNCTUATION = re.compile(r'[,;:!?#@*()\[\]"]')
CITY_CHARSET = re.compile(r"^[A-Za-z][A-Za-z .'&-]*$")
VOCABULARY_PATTERN = re.compile(
    r'\b(?:' + '|'.join(re.escape(word) for word in VIOLATION_VOCABULARY) + r')(?:s|es|ed|ing)?\b',
    re.IGNORECASE,
)

# Accepted as written even when they contain violation vocabulary
ACCEPTED_CITY_NAMES = {name.lower() for name in KNOWN_CITIES + VOCABULARY_PLACE_NAMES}

# Abbreviations allowed to end with a period mid-name ("St. Louis")
NAME_ABBREVIATIONS = {'st', 'ste', 'ft', 'mt', 'pt'}
MAX_CITY_WORDS = 4


def is_zip_like(value: Optional[str]) -> bool:
    return bool(value) and bool(ZIP_PATTERN.match(value.strip()))


def city_rejection(value: Optional[str]) -> Optional[str]:
    """
    Explain why ``value`` is not a city name.

    Returns:
        Short reason text, or None when the value is an acceptable city
    """
    city = (value or '').strip()
    if not city:
        return 'empty'
    if len(city) < 2 or len(city) > 50:
        return 'length'
    if city.lower() in HEADER_WORDS:
        return 'header word'
    if city[0].isdigit():
        return 'leading digit'
    if not re.search(r'[A-Za-z]', city):
        return 'no letters'
    if SENTENCE_PUNCTUATION.search(city):
        return 'sentence punctuation'
    for match in SENTENCE_BREAK.finditer(city):
        if match.group(1).lower() not in NAME_ABBREVIATIONS:
            return 'multiple sentences'
    if not CITY_CHARSET.match(city):
        return 'disallowed characters'
    if len(city.split()) > MAX_CITY_WORDS:
        return 'too many words'
    if VOCABULARY_PATTERN.search(city) and ' '.join(city.lower().split()) not in ACCEPTED_CITY_NAMES:
        return 'violation vocabulary'
    return None


def is_valid_city(value: Optional[str]) -> bool:
    return city_rejection(value) is None


def normalize_state(value: Optional[str]) -> Optional[str]:
    """
    Normalize a state value to its 2-letter USPS code.

    Accepts codes in any case (``az``, ``A.Z.``) and full names
    (``Arizona``). Returns None for anything outside the 50 states plus DC.
    """
    state = re.sub(r'[.\s]+', ' ', (value or '')).strip().upper()
    compact = state.replace(' ', '')
    if len(compact) == 2 and compact in US_STATES:
        return compact
    return STATE_NAME_TO_CODE.get(state)


def _strip_trailing_locality(address: str) -> Tuple[str, Optional[str], Optional[str]]:
    """Peel a trailing ``, ST 12345`` off a one-line address."""
    rest = address.strip().rstrip(',').strip()
    zip_code = None
    state = None

    zip_match = TRAILING_ZIP.search(rest)
    if zip_match:
        zip_code = zip_match.group(1)
        rest = rest[:zip_match.start()].rstrip(', ')

    state_match = TRAILING_STATE.search(rest)
    if state_match:
        code = (state_match.group(1) or state_match.group(2)).upper()
        # a bare two-letter tail without a comma or ZIP is usually a street
        # type such as "Ct"
        comma_separated = state_match.group(1) is not None
        if code in US_STATES and (comma_separated or zip_code):
            state = code
            rest = rest[:state_match.start()].rstrip(', ')

    return rest, state, zip_code


def _match_known_city(rest: str) -> Optional[str]:
    lowered = rest.lower()
    for city in KNOWN_CITIES_BY_LENGTH:
        name = city.lower()
        if lowered.endswith(name) and len(lowered) > len(name):
            boundary = lowered[-len(name) - 1]
            if boundary in ' ,':
                return city
    return None


def _match_structural_city(rest: str) -> Optional[str]:
    if ',' in rest:
        candidate = rest.rsplit(',', 1)[1].strip()
        if candidate and is_valid_city(candidate):
            return candidate

    tokens = rest.replace(',', ' ').split()
    street_index = None
    for index, token in enumerate(tokens):
        if token.upper().strip('.') in STREET_TYPES:
            street_index = index
    if street_index is None:
        return None

    city_tokens: List[str] = []
    for token in reversed(tokens[street_index + 1:]):
        if len(city_tokens) == 2:
            break
        if not (token[:1].isupper() and token.replace('.', '').replace('-', '').isalpha()):
            break
        if token.upper().strip('.') in STREET_TYPES:
            break
        city_tokens.insert(0, token)

    candidate = ' '.join(city_tokens)
    if candidate and is_valid_city(candidate):
        return candidate
    return None


def extract_city_from_address(address: Optional[str]) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """
    Recover the locality embedded in a one-line address.

    The gazetteer of known city names is tried first (longest name first),
    then the structural fallback: the text after the last comma, or the last
    one or two capitalized words following the street type.

    Returns:
        Tuple of (city, state code, zip); any may be None
    """
    if not address:
        return None, None, None

    rest, state, zip_code = _strip_trailing_locality(address)
    city = _match_known_city(rest) or _match_structural_city(rest)
    return city, state, zip_code


def _clean(value: str) -> str:
    return re.sub(r'\s+', ' ', value).strip()


def resolve_row(
    table: CsvTable,
    record: dict,
    row_num: int,
    fallback_city: Optional[str] = None,
    fallback_state: Optional[str] = None,
) -> Tuple[Union[ParsedRow, RejectedRow], bool]:
    """
    Validate one record into a ``ParsedRow`` or a ``RejectedRow``.

    Returns:
        Tuple of (row, missing_location) where missing_location is True when
        the row's own city or state failed validation
    """
    address = _clean(table.value(record, 'address'))
    if not address:
        return RejectedRow(row_num, RejectReason.MISSING_ADDRESS, raw=record), False

    city = _clean(table.value(record, 'city'))
    raw_state = table.value(record, 'state')
    zip_code = table.value(record, 'zip')

    derived_state = None
    if not city or is_zip_like(city):
        if is_zip_like(city) and not zip_code:
            zip_code = city
        city, derived_state, derived_zip = extract_city_from_address(address)
        city = city or ''
        zip_code = zip_code or derived_zip or ''

    state = normalize_state(raw_state) or derived_state

    city_problem = None
    if not city:
        city_problem = RejectReason.MISSING_CITY
    elif not is_valid_city(city):
        city_problem = RejectReason.INVALID_CITY
    state_problem = None
    if state is None:
        state_problem = RejectReason.INVALID_STATE if raw_state else RejectReason.MISSING_STATE

    missing_location = bool(city_problem or state_problem)
    used_fallback = False
    if city_problem and fallback_city:
        city = _clean(fallback_city)
        used_fallback = True
    if state_problem and fallback_state:
        state = normalize_state(fallback_state)
        used_fallback = True

    if not is_valid_city(city):
        reason = city_problem or RejectReason.INVALID_CITY
        return RejectedRow(row_num, reason, detail=city_rejection(city) or '', raw=record), True
    if state is None:
        return RejectedRow(row_num, state_problem, detail=raw_state, raw=record), True

    return ParsedRow(
        row_num=row_num,
        address=address,
        city=city,
        state=state,
        zip=zip_code,
        case_id=table.value(record, 'case_id'),
        violation=table.value(record, 'violation'),
        description=table.value(record, 'description'),
        status=table.value(record, 'status') or 'Open',
        opened_date=table.value(record, 'opened_date'),
        last_updated=table.value(record, 'last_updated'),
        used_fallback=used_fallback,
        raw=record,
    ), missing_location


def parse_table(
    table: CsvTable,
    fallback_city: Optional[str] = None,
    fallback_state: Optional[str] = None,
) -> ParseResult:
    result = ParseResult(
        headers=list(table.headers),
        total_rows=len(table.records) + len(table.bad_lines),
        malformed_lines=list(table.bad_lines),
    )

    for index, record in enumerate(table.records, start=1):
        row, missing_location = resolve_row(table, record, index, fallback_city, fallback_state)
        if missing_location:
            result.missing_location_rows += 1
        if isinstance(row, RejectedRow):
            result.rejected.append(row)
        else:
            result.rows.append(row)

    logger.debug(
        "csv_rows_validated",
        total=result.total_rows,
        usable=len(result.rows),
        rejected=len(result.rejected),
        malformed=len(result.malformed_lines),
        missing_location=result.missing_location_rows,
    )
    return result


def parse_csv(
    text: str,
    fallback_city: Optional[str] = None,
    fallback_state: Optional[str] = None,
) -> ParseResult:
    """
    Parse and validate CSV text in one pass.

    Empty, header-only and all-invalid inputs return a result with zero
    usable rows; deciding whether that is fatal is left to the caller.

    Args:
        text: Raw CSV text (comma, tab or pipe delimited)
        fallback_city: City applied to rows whose own city is unusable
        fallback_state: State applied to rows whose own state is unusable

    Returns:
        ParseResult with accepted and rejected row streams
    """
    return parse_table(read_csv_text(text), fallback_city, fallback_state)


def summarize_locations(rows: Iterable[ParsedRow]) -> List[DetectedLocation]:
    """Count rows per case-insensitive locality, highest count first."""
    counts: "OrderedDict[str, DetectedLocation]" = OrderedDict()
    for row in rows:
        key = row.locality_key
        if key in counts:
            counts[key].count += 1
        else:
            counts[key] = DetectedLocation(city=row.city, state=row.state, count=1)
    return sorted(counts.values(), key=lambda location: location.count, reverse=True)


def detect_locations(
    text: Union[str, ParseResult],
    fallback_city: Optional[str] = None,
    fallback_state: Optional[str] = None,
) -> DetectionResult:
    """
    Summarize the localities present in a CSV payload.

    Args:
        text: Raw CSV text, or an already computed ParseResult
        fallback_city: Optional fallback city
        fallback_state: Optional fallback state

    Returns:
        DetectionResult
    """
    result = text if isinstance(text, ParseResult) else parse_csv(text, fallback_city, fallback_state)
    locations = summarize_locations(result.rows)

    cities = OrderedDict()
    for location in locations:
        cities.setdefault(location.city.lower(), location.city)

    return DetectionResult(
        locations=locations,
        total_rows=result.total_rows,
        unique_cities=sorted(cities.values()),
        unique_states=sorted({location.state for location in locations}),
        missing_location_rows=result.missing_location_rows,
    )
