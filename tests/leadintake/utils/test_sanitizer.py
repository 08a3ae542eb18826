"""
Tests for Filename Sanitizer

Tests storage-safe filename and key generation.
"""
import pytest

from src.leadintake.utils.sanitizer import (
    sanitize_filename,
    sanitize_path_segment,
    build_storage_path,
    build_split_path,
)


MESSY_NAMES = [
    'Code_Violations_"Final".csv',
    'Data_(Q3-Q4).csv',
    'Report [2024].csv',
    "Owner's List.CSV",
    'phoenix  violations\t2024.csv',
    'weird<>:|?*name.csv',
    'a/b\\c.csv',
    'my.file.name.csv',
    '  ',
    '',
    '...csv',
    'no_extension',
]


class TestSanitizeFilename:
    """Tests for sanitize_filename."""

    def test_strips_quotes(self):
        assert sanitize_filename('Code_Violations_"Final".csv') == 'Code_Violations_Final.csv'

    def test_strips_parentheses(self):
        assert sanitize_filename('Data_(Q3-Q4).csv') == 'Data_Q3-Q4.csv'

    def test_strips_brackets_and_spaces(self):
        assert sanitize_filename('Report [2024].csv') == 'Report_2024.csv'

    def test_inner_dots_become_underscores(self):
        assert sanitize_filename('my.file.name.csv') == 'my_file_name.csv'

    def test_extension_lowercased(self):
        assert sanitize_filename('EXPORT.CSV') == 'EXPORT.csv'

    def test_path_characters_replaced(self):
        result = sanitize_filename('a/b\\c.csv')
        assert '/' not in result
        assert '\\' not in result
        assert result.endswith('.csv')

    def test_empty_name_gets_default(self):
        assert sanitize_filename('') == 'upload'
        assert sanitize_filename(None) == 'upload'
        assert sanitize_filename('"".csv') == 'upload.csv'

    def test_length_capped_with_extension(self):
        result = sanitize_filename('a' * 300 + '.csv', max_length=120)

        assert len(result) == 120
        assert result.endswith('.csv')

    @pytest.mark.parametrize('name', MESSY_NAMES)
    def test_idempotent(self, name):
        once = sanitize_filename(name)
        assert sanitize_filename(once) == once

    @pytest.mark.parametrize('name', MESSY_NAMES)
    def test_only_safe_characters(self, name):
        result = sanitize_filename(name)
        assert result
        assert all(ch.isalnum() or ch in '._-' for ch in result)


class TestStorageKeys:
    """Tests for blob key builders."""

    def test_build_storage_path(self):
        path = build_storage_path('user-1', 'Report [2024].csv', 1700000000000)
        assert path == 'user-1/1700000000000-Report_2024.csv'

    def test_build_split_path(self):
        path = build_split_path('user-1', 'St. Louis', 'MO', 1700000000000)
        assert path == 'user-1/splits/St_Louis_MO_split_1700000000000.csv'

    def test_path_segment_fallback(self):
        assert sanitize_path_segment('') == 'unknown'
        assert sanitize_path_segment('"()"') == 'unknown'
