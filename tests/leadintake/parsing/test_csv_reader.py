"""
Tests for CSV Reader

Tests delimiter detection, header aliasing and record extraction.
"""
from src.leadintake.parsing.csv_reader import (
    detect_delimiter,
    map_headers,
    normalize_header,
    read_csv_text,
    to_comma_delimited,
)


class TestDelimiterDetection:
    """Tests for detect_delimiter."""

    def test_comma_default(self):
        assert detect_delimiter('address,city,state\n1 Main St,Mesa,AZ') == ','

    def test_tab(self):
        assert detect_delimiter('address\tcity\tstate\n') == '\t'

    def test_pipe(self):
        assert detect_delimiter('address|city|state\n') == '|'

    def test_tie_prefers_comma(self):
        assert detect_delimiter('a,b\tc\n') == ','

    def test_bom_ignored(self):
        assert detect_delimiter('\ufeffaddress\tcity\n') == '\t'


class TestHeaderMapping:
    """Tests for header normalization and aliasing."""

    def test_normalize_header(self):
        assert normalize_header('  Property_Address ') == 'property address'
        assert normalize_header('Case   Number') == 'case number'

    def test_aliases(self):
        columns = map_headers(['Property Address', 'Municipality', 'State Code', 'Case Number'])

        assert columns['address'] == 'Property Address'
        assert columns['city'] == 'Municipality'
        assert columns['state'] == 'State Code'
        assert columns['case_id'] == 'Case Number'

    def test_canonical_name_wins_over_alias(self):
        columns = map_headers(['Property Address', 'Type', 'Violation'])
        assert columns['violation'] == 'Violation'

    def test_unmapped_columns_ignored(self):
        columns = map_headers(['address', 'Inspector Badge'])
        assert set(columns) == {'address'}


class TestReadCsvText:
    """Tests for read_csv_text."""

    def test_basic_records(self):
        table = read_csv_text('address,city,state\n1 Main St,Mesa,AZ\n2 Oak Ave,Tempe,AZ\n')

        assert table.headers == ['address', 'city', 'state']
        assert len(table.records) == 2
        assert table.value(table.records[1], 'city') == 'Tempe'

    def test_values_kept_as_text(self):
        table = read_csv_text('address,zip\n1 Main St,01234\n')
        assert table.value(table.records[0], 'zip') == '01234'

    def test_quoted_multiline_field(self):
        text = 'address,city,state,description\n"1 Main St",Phoenix,AZ,"line one\nline two"\n'
        table = read_csv_text(text)

        assert len(table.records) == 1
        assert table.value(table.records[0], 'description') == 'line one\nline two'

    def test_blank_rows_dropped(self):
        table = read_csv_text('address,city\n\n,\n1 Main St,Mesa\n')
        assert len(table.records) == 1

    def test_empty_and_header_only(self):
        assert read_csv_text('').records == []
        assert read_csv_text('address,city,state\n').records == []

    def test_missing_column_value_is_empty(self):
        table = read_csv_text('address,city\n1 Main St,Mesa\n')
        assert table.value(table.records[0], 'state') == ''


class TestToCommaDelimited:
    """Tests for delimiter conversion before storage."""

    def test_comma_text_unchanged(self):
        text = 'address,city\n1 Main St,Mesa\n'
        assert to_comma_delimited(text) is text

    def test_tab_converted(self):
        converted = to_comma_delimited('address\tcity\n"1 Main St, Unit 2"\tMesa\n')
        table = read_csv_text(converted)

        assert table.delimiter == ','
        assert table.value(table.records[0], 'address') == '1 Main St, Unit 2'
        assert table.value(table.records[0], 'city') == 'Mesa'
