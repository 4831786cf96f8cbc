"""Cross-scan features built from isotopic envelopes.

A Feature follows one molecular species across consecutive scans. Because
the per-scan deconvolution sometimes picks the wrong monoisotopic peak, the
envelopes of one feature can sit one, two or three isotope spacings apart.
Inside a Feature they are therefore bucketed into MassGroups (flat 0.5 Da
tolerance), and the feature's representative mass is the mass of the bucket
that has accumulated the most peaks.
"""

from typing import Iterator, List, Optional

from alphafeaturefast.constants import MASS_BUCKET_TOLERANCE_DA
from ..deconvolution.envelopes import IsotopicEnvelope


class MassGroup:
    """Envelopes of one feature sharing a nominal isotope offset."""

    __slots__ = ('envelopes', 'mass', 'num_peaks', '_mass_sum')

    def __init__(self):
        self.envelopes: List[IsotopicEnvelope] = []
        self.mass = 0.0
        self.num_peaks = 0
        self._mass_sum = 0.0

    def add(self, envelope: IsotopicEnvelope) -> None:
        self.envelopes.append(envelope)
        self._mass_sum += envelope.monoisotopic_mass
        self.mass = self._mass_sum / len(self.envelopes)
        self.num_peaks += envelope.num_peaks

    def __len__(self) -> int:
        return len(self.envelopes)

    def __repr__(self) -> str:
        return f"MassGroup(mass={self.mass:.4f}, envelopes={len(self.envelopes)}, num_peaks={self.num_peaks})"


class Feature:
    """A mass species tracked across scans.

    Attributes
    ----------
    min_scan_index, max_scan_index : int
        Inclusive scan-index span (None until the first envelope)
    min_elution_time, max_elution_time : float
        Retention-time span of the member envelopes
    total_intensity : float
        Summed envelope intensity; only ever grows
    mass_groups : List[MassGroup]
        Per-offset buckets in creation order
    """

    def __init__(self):
        self.mass_groups: List[MassGroup] = []
        self.min_scan_index: Optional[int] = None
        self.max_scan_index: Optional[int] = None
        self.min_elution_time: Optional[float] = None
        self.max_elution_time: Optional[float] = None
        self.total_intensity = 0.0
        self._charges = set()

    @classmethod
    def from_envelope(cls, envelope: IsotopicEnvelope, scan_index: int, elution_time: float) -> 'Feature':
        feature = cls()
        feature.add_envelope(envelope, scan_index, elution_time)
        return feature

    def _nearest_group(self, mass: float) -> Optional[MassGroup]:
        best = None
        best_distance = 0.0
        for group in self.mass_groups:
            distance = abs(group.mass - mass)
            if distance <= MASS_BUCKET_TOLERANCE_DA and (best is None or distance < best_distance):
                best = group
                best_distance = distance
        return best

    def add_envelope(self, envelope: IsotopicEnvelope, scan_index: int, elution_time: float) -> None:
        """Append an envelope observed at ``scan_index``/``elution_time``."""
        group = self._nearest_group(envelope.monoisotopic_mass)
        if group is None:
            group = MassGroup()
            self.mass_groups.append(group)
        group.add(envelope)

        if self.min_scan_index is None:
            self.min_scan_index = self.max_scan_index = scan_index
            self.min_elution_time = self.max_elution_time = elution_time
        else:
            self.min_scan_index = min(self.min_scan_index, scan_index)
            self.max_scan_index = max(self.max_scan_index, scan_index)
            self.min_elution_time = min(self.min_elution_time, elution_time)
            self.max_elution_time = max(self.max_elution_time, elution_time)

        self.total_intensity += envelope.total_intensity
        self._charges.add(envelope.charge)

    @property
    def representative_group(self) -> Optional[MassGroup]:
        """Bucket with the most peaks; the earliest bucket wins ties."""
        best = None
        for group in self.mass_groups:
            if best is None or group.num_peaks > best.num_peaks:
                best = group
        return best

    @property
    def mass(self) -> float:
        group = self.representative_group
        return group.mass if group is not None else float('nan')

    @property
    def num_peaks(self) -> int:
        return sum(group.num_peaks for group in self.mass_groups)

    @property
    def num_envelopes(self) -> int:
        return sum(len(group) for group in self.mass_groups)

    @property
    def charge_states(self) -> List[int]:
        return sorted(self._charges)

    @property
    def envelopes(self) -> Iterator[IsotopicEnvelope]:
        for group in self.mass_groups:
            yield from group.envelopes

    @property
    def num_scans(self) -> int:
        if self.min_scan_index is None:
            return 0
        return self.max_scan_index - self.min_scan_index + 1

    def __repr__(self) -> str:
        return (f"Feature(mass={self.mass:.4f}, scans={self.min_scan_index}-{self.max_scan_index}, "
                f"num_peaks={self.num_peaks}, charges={self.charge_states})")
