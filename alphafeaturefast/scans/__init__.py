"""Scan records and in-memory LC-MS runs.

This module provides:
- ScanRecord, one acquired scan with its retention time and MS level
- MsRun, scan lookups plus the parallel deconvolution / aggregation entry point
"""

from .run import (
    ScanRecord,
    is_ms1_scan,
    MsRun,
)

__all__ = [
    'ScanRecord',
    'is_ms1_scan',
    'MsRun',
]
