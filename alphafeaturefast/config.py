"""Parameter sets for spectrum merging and feature aggregation.

Uses ppm-based tolerances for instrument-independent parameters, with
presets for common high-resolution instruments.
"""

from dataclasses import asdict, dataclass
from enum import Enum
from typing import Optional

from .constants import (
    DEFAULT_AGGREGATION_TOLERANCE,
    DEFAULT_DECONVOLUTION_TOLERANCE,
    DEFAULT_INTENSITY_RATIO_LIMIT,
    DEFAULT_MAX_CHARGE,
    DEFAULT_MAX_MISSED_SCANS,
    DEFAULT_MERGE_TOLERANCE,
    DEFAULT_MIN_CHARGE,
)


class InstrumentType(Enum):
    """Instrument types with different mass accuracy characteristics."""
    ORBITRAP = "orbitrap"  # ~240K resolution, 2-5 ppm
    MR_TOF = "mr_tof"      # >1M resolution, <1 ppm
    ASTRAL = "astral"      # Orbitrap-based, similar to Orbitrap
    TOF = "tof"            # Q-TOF, 10-20 ppm


@dataclass
class MergeParams:
    """Parameters for merging replicate spectra."""

    ppm_tolerance: float = DEFAULT_MERGE_TOLERANCE
    skip_empty: bool = False

    @classmethod
    def for_instrument(cls, instrument: InstrumentType) -> 'MergeParams':
        """Create merge parameters for a specific instrument type.

        Args:
            instrument: Instrument type enum

        Returns:
            MergeParams with instrument-specific defaults
        """
        if instrument == InstrumentType.MR_TOF:
            return cls(ppm_tolerance=2.0)
        elif instrument in (InstrumentType.ORBITRAP, InstrumentType.ASTRAL):
            return cls(ppm_tolerance=5.0)
        elif instrument == InstrumentType.TOF:
            return cls(ppm_tolerance=20.0)
        else:
            raise ValueError(f"Unknown instrument type: {instrument}")


@dataclass
class AggregationParams:
    """Parameters for parallel deconvolution plus feature aggregation.

    The charge range, deconvolution tolerance and intensity ratio limit are
    passed through to the deconvolver unchanged.
    """

    # Handed to the deconvolver
    min_charge: int = DEFAULT_MIN_CHARGE
    max_charge: int = DEFAULT_MAX_CHARGE
    deconvolution_tolerance_ppm: float = DEFAULT_DECONVOLUTION_TOLERANCE
    intensity_ratio_limit: float = DEFAULT_INTENSITY_RATIO_LIMIT

    # Feature aggregation
    aggregation_tolerance_ppm: float = DEFAULT_AGGREGATION_TOLERANCE
    max_missed_scans: int = DEFAULT_MAX_MISSED_SCANS

    # Parallel execution
    n_workers: int = -1
    chunk_size: Optional[int] = None
    timeout: Optional[float] = None
    fail_fast: bool = False

    def validate(self) -> 'AggregationParams':
        """Check parameter consistency.

        Raises:
            ValueError: if any parameter is out of range

        Returns:
            self, for chaining
        """
        if self.min_charge > self.max_charge:
            raise ValueError(
                f"min_charge ({self.min_charge}) > max_charge ({self.max_charge})"
            )
        if self.aggregation_tolerance_ppm < 0:
            raise ValueError(
                f"aggregation_tolerance_ppm must be >= 0, got {self.aggregation_tolerance_ppm}"
            )
        if self.max_missed_scans < 0:
            raise ValueError(f"max_missed_scans must be >= 0, got {self.max_missed_scans}")
        if self.n_workers == 0 or self.n_workers < -1:
            raise ValueError(f"n_workers must be positive or -1, got {self.n_workers}")
        if self.chunk_size is not None and self.chunk_size < 1:
            raise ValueError(f"chunk_size must be positive, got {self.chunk_size}")
        if self.timeout is not None and self.timeout <= 0:
            raise ValueError(f"timeout must be positive, got {self.timeout}")
        return self

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def for_instrument(cls, instrument: InstrumentType) -> 'AggregationParams':
        """Create parameters optimized for specific instrument type.

        Args:
            instrument: Instrument type enum

        Returns:
            AggregationParams with instrument-specific defaults
        """
        if instrument == InstrumentType.MR_TOF:
            return cls(
                deconvolution_tolerance_ppm=1.5,
                aggregation_tolerance_ppm=2.0,  # Ultra-tight for >1M resolution
            )
        elif instrument in (InstrumentType.ORBITRAP, InstrumentType.ASTRAL):
            return cls(
                deconvolution_tolerance_ppm=4.0,
                aggregation_tolerance_ppm=5.0,
            )
        elif instrument == InstrumentType.TOF:
            return cls(
                deconvolution_tolerance_ppm=15.0,
                aggregation_tolerance_ppm=20.0,
            )
        else:
            raise ValueError(f"Unknown instrument type: {instrument}")
