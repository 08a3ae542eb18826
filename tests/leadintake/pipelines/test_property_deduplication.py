"""
Tests for Property Deduplication Pipeline

Tests address-key normalization and resolution of staged rows onto
existing and new properties.
"""
from types import SimpleNamespace

import pytest

from src.leadintake.db import Base, build_engine, build_session_factory, Property
from src.leadintake.pipelines.deduplication import (
    PropertyDeduplicator,
    build_address_key,
    row_key,
)


@pytest.fixture
def test_db():
    """Create an in-memory SQLite database for testing."""
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)

    session = build_session_factory(engine)()

    yield session

    session.close()
    Base.metadata.drop_all(engine)


def staged(address, city='Phoenix', state='AZ', zip_code='85001'):
    return SimpleNamespace(address=address, city=city, state=state, zip=zip_code)


def add_property(session, address, city='Phoenix', state='AZ', zip_code='85001'):
    prop = Property(address=address, city=city, state=state, zip=zip_code, violation_types=[])
    session.add(prop)
    session.flush()
    return prop


class TestAddressKey:
    """Tests for build_address_key."""

    def test_normalized(self):
        key = build_address_key('  123 Main St ', 'PHOENIX', 'az', ' 85001 ')
        assert key == '123 main st|phoenix|az|85001'

    def test_zip_distinguishes(self):
        assert row_key(staged('1 Main St', zip_code='85001')) != row_key(staged('1 Main St', zip_code='85002'))

    def test_missing_parts(self):
        assert build_address_key('1 Main St', None, None, None) == '1 main st|||'


class TestPropertyDeduplicator:
    """Tests for PropertyDeduplicator.resolve."""

    def test_existing_property_reused(self, test_db):
        existing = add_property(test_db, '123 Main St')

        result = PropertyDeduplicator().resolve(test_db, [staged('123 MAIN ST', city='phoenix', state='az')])

        assert result.created == 0
        assert result.property_id_for(staged('123 main st')) == existing.id
        assert test_db.query(Property).count() == 1

    def test_legacy_duplicates_resolve_to_lowest_id(self, test_db):
        first = add_property(test_db, '123 Main St')
        add_property(test_db, '123 main st')

        result = PropertyDeduplicator().resolve(test_db, [staged('123 Main St')])

        assert result.property_id_for(staged('123 Main St')) == first.id

    def test_repeated_rows_share_one_new_property(self, test_db):
        rows = [staged('456 Oak Ave'), staged('456 oak ave'), staged('789 Elm Rd')]

        result = PropertyDeduplicator().resolve(test_db, rows, county='Maricopa')

        assert result.created == 2
        assert result.property_id_for(rows[0]) == result.property_id_for(rows[1])
        props = test_db.query(Property).order_by(Property.id).all()
        assert [p.address for p in props] == ['456 Oak Ave', '789 Elm Rd']
        assert props[0].county == 'Maricopa'
        assert props[0].total_violations == 0

    def test_different_zip_creates_new_property(self, test_db):
        add_property(test_db, '123 Main St', zip_code='85001')

        result = PropertyDeduplicator().resolve(test_db, [staged('123 Main St', zip_code='85002')])

        assert result.created == 1

    def test_rows_without_address_skipped(self, test_db):
        result = PropertyDeduplicator().resolve(test_db, [staged('  ')])

        assert result.created == 0
        assert result.key_to_id == {}

    def test_batches_report_progress(self, test_db):
        progress = []
        rows = [staged(f'{i} Main St') for i in range(3)]

        PropertyDeduplicator(lookup_batch_size=2, insert_batch_size=1).resolve(
            test_db, rows, on_batch=progress.append
        )

        assert progress == [1, 2, 3]

    def test_state_uppercased_on_create(self, test_db):
        PropertyDeduplicator().resolve(test_db, [staged('1 Main St', state='az')])
        assert test_db.query(Property).one().state == 'AZ'
