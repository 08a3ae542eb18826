"""
Property Deduplication Pipeline

Resolves staged upload rows to property ids by normalized address key,
creating only the properties that do not exist yet.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from sqlalchemy.orm import Session

from config.settings import settings
from src.leadintake.db.repository import PropertyRepository, chunked
from src.leadintake.utils.logger import get_logger

logger = get_logger(__name__)


def _part(value: Optional[str]) -> str:
    return (value or '').strip()


def build_address_key(address: Optional[str], city: Optional[str], state: Optional[str], zip_code: Optional[str]) -> str:
    """
    Normalized dedup key: ``lower(address)|lower(city)|lower(state)|zip``.

    Args:
        address: Street address
        city: City
        state: State code
        zip_code: ZIP code

    Returns:
        Address key string
    """
    return '|'.join([
        _part(address).lower(),
        _part(city).lower(),
        _part(state).lower(),
        _part(zip_code),
    ])


def row_key(row) -> str:
    """Address key of any object with address/city/state/zip attributes."""
    return build_address_key(row.address, row.city, row.state, row.zip)


@dataclass
class ResolutionResult:
    """Address key -> property id table for one job."""
    key_to_id: Dict[str, int] = field(default_factory=dict)
    created: int = 0
    existing: int = 0

    def property_id_for(self, row) -> Optional[int]:
        return self.key_to_id.get(row_key(row))


class PropertyDeduplicator:
    """
    Maps staged rows onto Property records.

    Existing properties are looked up only for the addresses present in the
    job, in batches. Rows sharing a key reuse the first row's property;
    legacy duplicates in the table resolve to the lowest id.
    """

    def __init__(
        self,
        repository: Optional[PropertyRepository] = None,
        lookup_batch_size: Optional[int] = None,
        insert_batch_size: Optional[int] = None,
    ):
        self.repository = repository or PropertyRepository()
        self.lookup_batch_size = lookup_batch_size or settings.property_lookup_batch_size
        self.insert_batch_size = insert_batch_size or settings.property_insert_batch_size

    def find_existing(self, session: Session, rows: Sequence) -> Dict[str, int]:
        """
        Load the key table for properties already stored.

        Args:
            session: Database session
            rows: Staged rows (anything with address/city/state/zip)

        Returns:
            Dict of address key to property id
        """
        addresses = sorted({_part(row.address).lower() for row in rows if _part(row.address)})
        existing: Dict[str, int] = {}

        for batch in chunked(addresses, self.lookup_batch_size):
            for prop in self.repository.find_by_addresses(session, batch):
                existing.setdefault(row_key(prop), prop.id)

        logger.debug("existing_properties_loaded", addresses=len(addresses), matched=len(existing))
        return existing

    def resolve(
        self,
        session: Session,
        rows: Sequence,
        county: Optional[str] = None,
        jurisdiction_id: Optional[int] = None,
        on_batch=None,
    ) -> ResolutionResult:
        """
        Build the complete key table, inserting missing properties.

        Args:
            session: Database session
            rows: Staged rows in file order
            county: County stamped onto new properties
            jurisdiction_id: Jurisdiction stamped onto new properties
            on_batch: Called after every insert batch (used to commit)

        Returns:
            ResolutionResult
        """
        result = ResolutionResult(key_to_id=self.find_existing(session, rows))
        result.existing = len(result.key_to_id)

        pending: Dict[str, dict] = {}
        for row in rows:
            if not _part(row.address):
                continue
            key = row_key(row)
            if key in result.key_to_id or key in pending:
                continue
            pending[key] = {
                'address': _part(row.address),
                'city': _part(row.city),
                'state': _part(row.state).upper(),
                'zip': _part(row.zip),
                'county': county,
                'jurisdiction_id': jurisdiction_id,
                'total_violations': 0,
                'open_violations': 0,
                'violation_types': [],
                'repeat_offender': False,
            }

        new_keys: List[str] = list(pending)
        for batch in chunked(new_keys, self.insert_batch_size):
            created = self.repository.bulk_create(session, [pending[key] for key in batch])
            for key, prop in zip(batch, created):
                result.key_to_id[key] = prop.id
            result.created += len(created)
            if on_batch:
                on_batch(result.created)

        logger.info(
            "property_resolution_complete",
            rows=len(rows),
            unique_keys=len(result.key_to_id),
            existing=result.existing,
            created=result.created,
        )
        return result
