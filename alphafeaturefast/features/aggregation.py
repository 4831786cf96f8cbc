"""Streaming aggregation of per-scan envelopes into cross-scan features.

Scans are consumed strictly in increasing scan-index order. Every envelope
is matched against the open features under seven isotope-offset hypotheses
(exact, +/-1, +/-2, +/-3 isotope spacings); the first matching feature is
extended, otherwise a new feature is opened. After each scan, features that
have not been extended for more than ``max_missed_scans`` scans can no
longer grow and are evicted (emitted) in insertion order.

Single pass, single thread: the open-feature list is owned by one
FeatureAggregator and needs no locking.

Examples
--------
>>> aggregator = FeatureAggregator(aggregation_tolerance_ppm=10.0)
>>> for scan_index, rt, envelopes in per_scan_results:
...     for feature in aggregator.process_scan(scan_index, rt, envelopes):
...         print(feature)
>>> remaining = aggregator.flush()
"""

import logging
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np
from numba import njit

from alphafeaturefast.constants import (
    DEFAULT_AGGREGATION_TOLERANCE,
    DEFAULT_MAX_MISSED_SCANS,
    ISOTOPE_OFFSET_HYPOTHESES,
)
from ..deconvolution.envelopes import IsotopicEnvelope
from ..errors import OrderingViolationError
from .feature import Feature

logger = logging.getLogger(__name__)


@njit
def match_isotope_offset(
    mass: float,
    reference_mass: float,
    offsets: np.ndarray,
    tolerance_ppm: float,
) -> int:
    """Index of the first offset hypothesis under which ``mass`` matches.

    A hypothesis ``offset`` matches when
    ``|mass + offset - reference| / reference * 1e6 <= tolerance_ppm``.

    Returns
    -------
    int
        Index into ``offsets``, or -1 if no hypothesis matches
    """
    if not reference_mass > 0.0:
        return -1
    for i in range(len(offsets)):
        if abs(mass + offsets[i] - reference_mass) / reference_mass * 1e6 <= tolerance_ppm:
            return i
    return -1


@njit
def find_matching_feature(
    mass: float,
    feature_masses: np.ndarray,
    offsets: np.ndarray,
    tolerance_ppm: float,
) -> Tuple[int, int]:
    """First feature (in order) matching ``mass`` under any offset hypothesis.

    Returns
    -------
    feature_idx : int
        Index into ``feature_masses``, or -1
    offset_idx : int
        Index of the matching hypothesis, or -1
    """
    for j in range(len(feature_masses)):
        offset_idx = match_isotope_offset(mass, feature_masses[j], offsets, tolerance_ppm)
        if offset_idx >= 0:
            return j, offset_idx
    return -1, -1


class FeatureAggregator:
    """Group a scan-ordered stream of envelopes into features.

    Parameters
    ----------
    aggregation_tolerance_ppm : float
        Relative tolerance for matching an envelope to a feature mass
    max_missed_scans : int, default=1
        Scans a feature may go without an extension before it is evicted.
        With 0, a feature is evicted after the first scan that does not
        extend it, i.e. the strict ``max_scan_index < scan_index`` rule; the
        default of 1 keeps a feature open across a single-scan gap.

    Notes
    -----
    A feature is emitted only once ``max_scan_index < scan_cursor -
    max_missed_scans``; since later scans have larger indices, nothing can
    extend it any more. A feature extended in the current scan is never
    evicted by that scan.
    """

    def __init__(
        self,
        aggregation_tolerance_ppm: float = DEFAULT_AGGREGATION_TOLERANCE,
        max_missed_scans: int = DEFAULT_MAX_MISSED_SCANS,
    ):
        if max_missed_scans < 0:
            raise ValueError(f"max_missed_scans must be >= 0, got {max_missed_scans}")

        self.aggregation_tolerance_ppm = float(aggregation_tolerance_ppm)
        self.max_missed_scans = max_missed_scans
        self.open_features: List[Feature] = []
        self.scan_cursor: Optional[int] = None
        self.n_envelopes = 0
        self.n_emitted = 0
        self._open_masses = np.empty(0, dtype=np.float64)
        self._violation: Optional[OrderingViolationError] = None

    def process_scan(
        self,
        scan_index: int,
        elution_time: float,
        envelopes: Optional[Sequence[IsotopicEnvelope]],
    ) -> List[Feature]:
        """Consume one scan and return the features it makes final.

        Parameters
        ----------
        scan_index : int
            Must be greater than every previously processed index
        elution_time : float
            Retention time of the scan
        envelopes : Sequence[IsotopicEnvelope] or None
            None for a scan that was filtered out or failed upstream; the
            cursor still advances and eviction still runs

        Raises
        ------
        OrderingViolationError
            If ``scan_index`` does not increase. The aggregator then refuses
            all further input.
        """
        if self._violation is not None:
            raise self._violation
        if self.scan_cursor is not None and scan_index <= self.scan_cursor:
            self._violation = OrderingViolationError(scan_index, self.scan_cursor)
            raise self._violation
        self.scan_cursor = scan_index

        if envelopes is not None:
            for envelope in envelopes:
                self._assign(envelope, scan_index, elution_time)

        return self._evict(scan_index)

    def _assign(self, envelope: IsotopicEnvelope, scan_index: int, elution_time: float) -> None:
        feature_idx, _ = find_matching_feature(
            envelope.monoisotopic_mass,
            self._open_masses,
            ISOTOPE_OFFSET_HYPOTHESES,
            self.aggregation_tolerance_ppm,
        )
        if feature_idx >= 0:
            feature = self.open_features[feature_idx]
            feature.add_envelope(envelope, scan_index, elution_time)
            self._open_masses[feature_idx] = feature.mass
        else:
            feature = Feature.from_envelope(envelope, scan_index, elution_time)
            self.open_features.append(feature)
            self._open_masses = np.append(self._open_masses, feature.mass)
        self.n_envelopes += 1

    def _evict(self, scan_index: int) -> List[Feature]:
        horizon = scan_index - self.max_missed_scans
        keep = [feature.max_scan_index >= horizon for feature in self.open_features]
        if all(keep):
            return []

        evicted = [f for f, k in zip(self.open_features, keep) if not k]
        self.open_features = [f for f, k in zip(self.open_features, keep) if k]
        self._open_masses = self._open_masses[np.array(keep, dtype=np.bool_)]
        self.n_emitted += len(evicted)

        logger.debug(
            f"Scan {scan_index}: evicted {len(evicted)} features, "
            f"{len(self.open_features)} still open"
        )
        return evicted

    def flush(self) -> List[Feature]:
        """Emit every feature that is still open."""
        remaining = self.open_features
        self.open_features = []
        self._open_masses = np.empty(0, dtype=np.float64)
        self.n_emitted += len(remaining)
        return remaining

    def aggregate(
        self,
        scans: Iterable[Tuple[int, float, Optional[Sequence[IsotopicEnvelope]]]],
    ) -> Iterator[Feature]:
        """Lazily aggregate ``(scan_index, elution_time, envelopes)`` triples.

        Yields features as soon as they become final, then the remainder
        once the input is exhausted.
        """
        for scan_index, elution_time, envelopes in scans:
            yield from self.process_scan(scan_index, elution_time, envelopes)
        yield from self.flush()
        logger.info(
            f"✓ Aggregated {self.n_envelopes:,} envelopes into "
            f"{self.n_emitted:,} features"
        )
