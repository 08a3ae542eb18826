"""
Lead Intake - Core Package

This package contains the violation CSV ingestion service: upload handling,
parsing and locality detection, property deduplication, violation
aggregation and job recovery.
"""

__version__ = "0.1.0"
