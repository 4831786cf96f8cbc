"""Cross-scan feature tracking.

This module provides:
- MassGroup and Feature, the mutable aggregates built from envelopes
- Isotope-offset-tolerant mass matching (exact, +/-1, +/-2, +/-3 spacings)
- FeatureAggregator, the streaming consumer with online eviction
- FeatureStream, the single-pass iterator handed to callers
"""

from .feature import (
    MassGroup,
    Feature,
)

from .aggregation import (
    match_isotope_offset,
    find_matching_feature,
    FeatureAggregator,
)

from .stream import FeatureStream

__all__ = [
    # Feature model
    'MassGroup',
    'Feature',

    # Aggregation
    'match_isotope_offset',
    'find_matching_feature',
    'FeatureAggregator',

    # Output
    'FeatureStream',
]
