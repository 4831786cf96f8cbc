"""Exception hierarchy for AlphaFeatureFast.

Error classes and where they are raised:

- EmptyInputError: zero-peak spectrum handed to the peak merger
- ScanLevelMismatchError: non-MS1 scan where an MS1 scan was required
- DeconvolutionFailure: one scan failed during parallel deconvolution
- PartialResultsError: parallel deconvolution was cancelled or timed out
- OrderingViolationError: scan indices not strictly increasing into the
  feature aggregator
"""

from typing import Dict, Optional, Sequence


class AlphaFeatureFastError(Exception):
    """Base class for all errors raised by AlphaFeatureFast."""


class EmptyInputError(AlphaFeatureFastError, ValueError):
    """A spectrum with no peaks (or no spectra at all) was passed to the merger."""

    def __init__(self, message: str, spectrum_index: Optional[int] = None):
        super().__init__(message)
        self.spectrum_index = spectrum_index


class ScanLevelMismatchError(AlphaFeatureFastError):
    """A scan of the wrong MS level was handed to code that requires MS1."""

    def __init__(self, scan_number: int, ms_level: int, required_level: int = 1):
        super().__init__(
            f"Scan {scan_number} has MS level {ms_level}, "
            f"expected MS{required_level}"
        )
        self.scan_number = scan_number
        self.ms_level = ms_level
        self.required_level = required_level


class DeconvolutionFailure(AlphaFeatureFastError):
    """Deconvolution of a single scan raised an exception.

    The original exception is kept as ``cause`` (and as ``__cause__`` when
    raised with ``raise ... from``).
    """

    def __init__(self, scan_index: int, cause: BaseException):
        super().__init__(
            f"Deconvolution failed for scan {scan_index}: "
            f"{type(cause).__name__}: {cause}"
        )
        self.scan_index = scan_index
        self.cause = cause


class PartialResultsError(AlphaFeatureFastError):
    """Parallel deconvolution stopped before every chunk was processed.

    ``results`` holds whatever was computed; ``pending`` lists the scan
    indices that were never attempted.
    """

    def __init__(self, message: str, results, pending: Sequence[int] = ()):
        super().__init__(message)
        self.results = results
        self.pending = list(pending)

    @property
    def failures(self) -> Dict[int, DeconvolutionFailure]:
        return self.results.failures


class OrderingViolationError(AlphaFeatureFastError):
    """Scan indices reached the feature aggregator out of order."""

    def __init__(self, scan_index: int, previous_index: int):
        super().__init__(
            f"Scan index {scan_index} is not greater than the previously "
            f"processed index {previous_index}"
        )
        self.scan_index = scan_index
        self.previous_index = previous_index
