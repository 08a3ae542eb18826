"""
Tests for City Splitter

Tests that a multi-city upload splits into complete, disjoint per-locality
payloads.
"""
from src.leadintake.parsing.location import parse_csv
from src.leadintake.parsing.splitter import split_by_locality

MULTI_CITY_CSV = (
    'address,city,state,violation\n'
    '1 Main St,Phoenix,AZ,Exterior\n'
    '2 Main St,Tempe,AZ,Structural\n'
    '3 Main St,phoenix,AZ,Yard\n'
    '4 Main St,Mesa,AZ,Exterior\n'
    ',Mesa,AZ,Exterior\n'
)


class TestSplitByLocality:
    """Tests for split_by_locality."""

    def test_groups_in_first_seen_order(self):
        groups = split_by_locality(parse_csv(MULTI_CITY_CSV))
        assert list(groups) == ['phoenix|az', 'tempe|az', 'mesa|az']

    def test_every_usable_row_lands_in_exactly_one_group(self):
        result = parse_csv(MULTI_CITY_CSV)
        groups = split_by_locality(result)

        row_nums = [row.row_num for group in groups.values() for row in group.rows]
        assert sorted(row_nums) == [row.row_num for row in result.rows]
        assert sum(group.row_count for group in groups.values()) == result.usable_rows

    def test_group_casing_from_first_row(self):
        groups = split_by_locality(parse_csv(MULTI_CITY_CSV))
        assert groups['phoenix|az'].city == 'Phoenix'

    def test_payload_has_header_and_only_own_rows(self):
        groups = split_by_locality(parse_csv(MULTI_CITY_CSV))
        payload = groups['phoenix|az'].csv_text

        assert payload.splitlines()[0] == 'address,city,state,violation'
        reparsed = parse_csv(payload)
        assert [row.address for row in reparsed.rows] == ['1 Main St', '3 Main St']
        assert reparsed.rows[1].city == 'phoenix'

    def test_rejected_rows_not_emitted(self):
        groups = split_by_locality(parse_csv(MULTI_CITY_CSV))
        assert groups['mesa|az'].row_count == 1


class TestSplitPayloadQuoting:
    """Tests that split payloads keep awkward values intact."""

    QUOTED_CSV = (
        'address,city,state,description\n'
        '"1 Main St, Unit 2",Phoenix,AZ,"He said ""fix it""\nnow"\n'
        '2 Oak Ave,Tempe,AZ,Peeling paint\n'
        '"3 Elm St, Apt B",Phoenix,AZ,"Line one\nLine two, with comma"\n'
    )

    def test_values_survive_split_and_reparse(self):
        source = parse_csv(self.QUOTED_CSV)
        groups = split_by_locality(source)

        reparsed = parse_csv(groups['phoenix|az'].csv_text)

        assert [row.address for row in reparsed.rows] == ['1 Main St, Unit 2', '3 Elm St, Apt B']
        assert reparsed.rows[0].description == 'He said "fix it"\nnow'
        assert reparsed.rows[1].description == 'Line one\nLine two, with comma'
        assert [row.raw for row in reparsed.rows] == [
            row.raw for row in source.rows if row.city == 'Phoenix'
        ]

    def test_each_payload_reparses_to_its_own_rows(self):
        groups = split_by_locality(parse_csv(self.QUOTED_CSV))

        for group in groups.values():
            reparsed = parse_csv(group.csv_text)
            assert reparsed.total_rows == group.row_count
            assert {row.locality_key for row in reparsed.rows} == {group.rows[0].locality_key}
