"""
Pipelines Package

Property resolution and violation rollups used by the upload pipeline:
- Deduplication: address-key resolution and property creation
- Aggregation: per-property violation statistics and backfill
"""
from src.leadintake.pipelines.deduplication import PropertyDeduplicator, build_address_key
from src.leadintake.pipelines.aggregation import AggregationService, compute_aggregates

__all__ = ["PropertyDeduplicator", "build_address_key", "AggregationService", "compute_aggregates"]
