"""
Tests for Location Detector

Tests city validation, state normalization, address extraction and
per-row locality resolution.
"""
import pytest

from src.leadintake.parsing.location import (
    city_rejection,
    detect_locations,
    extract_city_from_address,
    is_valid_city,
    normalize_state,
    parse_csv,
)
from src.leadintake.parsing.rows import RejectReason


class TestCityValidation:
    """Tests for is_valid_city and city_rejection."""

    @pytest.mark.parametrize('city', ['Phoenix', 'St. Louis', 'Winston-Salem', 'Port St. Lucie', 'Springfield'])
    def test_valid_cities(self, city):
        assert is_valid_city(city)

    def test_violation_narrative_rejected(self):
        narrative = 'Overgrown weeds in backyard, must repair fence'

        assert not is_valid_city(narrative)
        assert city_rejection(narrative) == 'sentence punctuation'

    def test_violation_vocabulary_rejected(self):
        assert city_rejection('Overgrown weeds') == 'violation vocabulary'
        assert city_rejection('Code Enforcement') == 'violation vocabulary'

    @pytest.mark.parametrize('city', ['Broken Arrow', 'Grass Valley', 'Storm Lake', 'Window Rock', 'hazard'])
    def test_place_names_with_vocabulary_words_accepted(self, city):
        assert city_rejection(city) is None

    def test_vocabulary_still_rejected_around_place_names(self):
        assert city_rejection('Broken window') == 'violation vocabulary'
        assert city_rejection('Storm damage') == 'violation vocabulary'

    def test_place_name_row_is_kept(self):
        result = parse_csv('address,city,state\n12 Elm St,Broken Arrow,OK\n')

        assert [(row.city, row.state) for row in result.rows] == [('Broken Arrow', 'OK')]

    def test_multiple_sentences_rejected(self):
        assert city_rejection('Done. Call back') == 'multiple sentences'

    def test_zip_and_header_words_rejected(self):
        assert city_rejection('85001') == 'leading digit'
        assert city_rejection('Unknown') == 'header word'
        assert city_rejection('city') == 'header word'

    def test_length_limits(self):
        assert city_rejection('') == 'empty'
        assert city_rejection('A') == 'length'
        assert city_rejection('X' * 51) == 'length'

    def test_too_many_words(self):
        assert city_rejection('Big Sky Country Town Center') == 'too many words'


class TestNormalizeState:
    """Tests for normalize_state."""

    @pytest.mark.parametrize('value,expected', [
        ('AZ', 'AZ'),
        ('az', 'AZ'),
        (' A.Z. ', 'AZ'),
        ('Arizona', 'AZ'),
        ('new york', 'NY'),
        ('DC', 'DC'),
    ])
    def test_normalizes(self, value, expected):
        assert normalize_state(value) == expected

    @pytest.mark.parametrize('value', ['XX', '', None, 'Arizonia', 'PR'])
    def test_rejects(self, value):
        assert normalize_state(value) is None


class TestExtractCityFromAddress:
    """Tests for extract_city_from_address."""

    def test_full_one_line_address(self):
        assert extract_city_from_address('123 Main St, Phoenix, AZ 85001') == ('Phoenix', 'AZ', '85001')

    def test_known_city_without_commas(self):
        city, state, zip_code = extract_city_from_address('456 Oak Ave Tempe')

        assert city == 'Tempe'
        assert state is None
        assert zip_code is None

    def test_structural_fallback_after_street_type(self):
        city, _, _ = extract_city_from_address('789 Elm Rd Springfield')
        assert city == 'Springfield'

    def test_street_type_not_taken_as_state(self):
        assert extract_city_from_address('12 Pine Ct') == (None, None, None)

    def test_empty(self):
        assert extract_city_from_address('') == (None, None, None)


class TestParseCsv:
    """Tests for parse_csv."""

    CSV = (
        'address,city,state,zip,violation,status\n'
        '123 Main St,Phoenix,AZ,85001,Exterior,Open\n'
        '"456 Oak Ave","Overgrown weeds in backyard, must repair fence",AZ,85002,Yard,Open\n'
        ',Phoenix,AZ,85003,Yard,Open\n'
    )

    def test_malformed_lines_counted(self):
        csv_text = (
            'address,city,state\n'
            '1 Main St,Phoenix,AZ\n'
            '2 Oak Ave,Tempe,AZ,extra,more\n'
            '3 Elm St,Mesa,AZ\n'
        )

        result = parse_csv(csv_text)

        assert result.total_rows == 3
        assert [row.address for row in result.rows] == ['1 Main St', '3 Elm St']
        assert result.malformed_lines == [['2 Oak Ave', 'Tempe', 'AZ', 'extra', 'more']]
        assert result.warnings() == [
            'Malformed line skipped (5 fields, expected 3): 2 Oak Ave,Tempe,AZ,extra,more'
        ]

    def test_malformed_line_preview_truncated(self):
        result = parse_csv('address,city,state\n1 Main St,Phoenix,AZ\n' + ','.join(['x' * 20] * 5) + '\n')

        assert result.warnings()[0].endswith('...')

    def test_rows_and_rejections(self):
        result = parse_csv(self.CSV)

        assert result.total_rows == 3
        assert result.usable_rows == 1
        assert result.missing_location_rows == 1
        assert [r.reason for r in result.rejected] == [
            RejectReason.INVALID_CITY,
            RejectReason.MISSING_ADDRESS,
        ]

    def test_rejection_warning_text(self):
        result = parse_csv(self.CSV)

        assert result.rejected[0].as_warning() == 'Row 2 skipped: invalid_city (sentence punctuation)'
        assert result.rejected[1].as_warning() == 'Row 3 skipped: missing_address'

    def test_fallback_applied_to_invalid_city(self):
        result = parse_csv(self.CSV, fallback_city='Phoenix', fallback_state='AZ')

        assert result.usable_rows == 2
        rescued = result.rows[1]
        assert rescued.row_num == 2
        assert rescued.city == 'Phoenix'
        assert rescued.used_fallback is True
        assert result.rows[0].used_fallback is False

    def test_zip_in_city_column(self):
        text = 'address,city,state\n"100 Main St, Tempe, AZ 85281",85281,\n'
        row = parse_csv(text).rows[0]

        assert row.city == 'Tempe'
        assert row.state == 'AZ'
        assert row.zip == '85281'

    def test_state_name_normalized(self):
        row = parse_csv('address,city,state\n1 Main St,Mesa,Arizona\n').rows[0]
        assert row.state == 'AZ'

    def test_invalid_state_rejected(self):
        result = parse_csv('address,city,state\n1 Main St,Mesa,ZZ\n')

        assert result.rows == []
        assert result.rejected[0].reason is RejectReason.INVALID_STATE

    def test_status_defaults_to_open(self):
        row = parse_csv('address,city,state\n1 Main St,Mesa,AZ\n').rows[0]
        assert row.status == 'Open'

    def test_tab_delimited(self):
        result = parse_csv('address\tcity\tstate\n1 Main St\tMesa\tAZ\n')
        assert result.rows[0].city == 'Mesa'

    def test_empty_input(self):
        result = parse_csv('')

        assert result.total_rows == 0
        assert result.rows == []


class TestDetectLocations:
    """Tests for detect_locations."""

    def test_single_city(self):
        detection = detect_locations('address,city,state\n1 Main St,Mesa,AZ\n2 Oak Ave,Mesa,AZ\n')

        assert detection.needs_split is False
        assert detection.primary_location().city == 'Mesa'
        assert detection.primary_location().count == 2

    def test_multi_city_case_insensitive(self):
        text = (
            'address,city,state\n'
            '1 Main St,Tempe,AZ\n'
            '2 Main St,Phoenix,AZ\n'
            '3 Main St,phoenix,az\n'
            '4 Main St,PHOENIX,AZ\n'
        )
        detection = detect_locations(text)

        assert detection.needs_split is True
        assert [(l.city, l.count) for l in detection.locations] == [('Phoenix', 3), ('Tempe', 1)]
        assert detection.unique_cities == ['Phoenix', 'Tempe']
        assert detection.unique_states == ['AZ']
        assert detection.total_rows == 4

    def test_same_city_different_states(self):
        text = 'address,city,state\n1 Main St,Portland,OR\n2 Main St,Portland,ME\n'
        detection = detect_locations(text)

        assert detection.needs_split is True
        assert detection.unique_cities == ['Portland']
        assert detection.unique_states == ['ME', 'OR']

    def test_missing_location_rows_counted(self):
        detection = detect_locations('address,city,state\n1 Main St,Mesa,AZ\n2 Oak Ave,,\n')

        assert detection.missing_location_rows == 1
        assert detection.needs_split is False
