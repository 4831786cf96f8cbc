"""Isotopic envelopes and the deconvolver interface.

The per-scan deconvolution algorithm is not part of AlphaFeatureFast. Any
callable matching ``ScanDeconvolver`` can be plugged in; it must return
IsotopicEnvelope objects.
"""

from dataclasses import dataclass
from typing import Optional, Protocol, Sequence, Tuple

from alphafeaturefast.mass import neutral_mass_to_mz
from ..spectra.peaks import Peak, Spectrum


@dataclass(frozen=True)
class IsotopicEnvelope:
    """A cluster of peaks explained as isotopologues of one charged species.

    ``total_intensity`` defaults to the summed intensity of ``peaks``.
    """

    monoisotopic_mass: float  # Da, neutral
    charge: int               # signed
    peaks: Tuple[Peak, ...] = ()
    total_intensity: Optional[float] = None

    def __post_init__(self):
        peaks = tuple(Peak(float(mz), float(intensity)) for mz, intensity in self.peaks)
        object.__setattr__(self, 'peaks', peaks)
        if self.total_intensity is None:
            object.__setattr__(
                self, 'total_intensity', sum(p.intensity for p in peaks)
            )

    @property
    def num_peaks(self) -> int:
        return len(self.peaks)

    @property
    def monoisotopic_mz(self) -> float:
        """m/z of the monoisotopic peak at this envelope's charge."""
        return neutral_mass_to_mz(self.monoisotopic_mass, self.charge)


class ScanDeconvolver(Protocol):
    """Callable turning one spectrum into isotopic envelopes."""

    def __call__(
        self,
        spectrum: Spectrum,
        mz_window: Tuple[float, float],
        min_charge: int,
        max_charge: int,
        deconvolution_tolerance_ppm: float,
        intensity_ratio_limit: float,
    ) -> Sequence[IsotopicEnvelope]:
        ...
