"""Per-scan deconvolution results and their parallel computation.

This module provides:
- IsotopicEnvelope, the unit produced by a deconvolver
- ScanDeconvolver, the interface an external deconvolver must satisfy
- ScanResults, a bounds-checked arena of per-scan results
- ParallelScanProcessor, which fills the arena on a thread pool
"""

from .envelopes import (
    IsotopicEnvelope,
    ScanDeconvolver,
)

from .parallel import (
    ScanResults,
    ParallelScanProcessor,
)

__all__ = [
    'IsotopicEnvelope',
    'ScanDeconvolver',
    'ScanResults',
    'ParallelScanProcessor',
]
