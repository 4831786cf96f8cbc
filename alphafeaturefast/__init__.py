"""AlphaFeatureFast - Cross-scan spectral aggregation for LC-MS data.

Merges replicate spectra, runs a pluggable isotopic deconvolver over the
scans of a run in parallel, and aggregates the per-scan envelopes into
features that span consecutive scans, tolerating monoisotopic-peak
assignment errors of up to three isotope spacings.
"""

__version__ = "0.1.0"

# Import main submodules for convenient access
from alphafeaturefast import mass
from alphafeaturefast import spectra
from alphafeaturefast import deconvolution
from alphafeaturefast import features
from alphafeaturefast import scans
from alphafeaturefast import config
from alphafeaturefast import errors

from alphafeaturefast.scans import MsRun, ScanRecord
from alphafeaturefast.spectra import Spectrum, merge_spectra
from alphafeaturefast.deconvolution import IsotopicEnvelope, ParallelScanProcessor
from alphafeaturefast.features import Feature, FeatureAggregator, FeatureStream

__all__ = [
    "mass",
    "spectra",
    "deconvolution",
    "features",
    "scans",
    "config",
    "errors",
    "MsRun",
    "ScanRecord",
    "Spectrum",
    "merge_spectra",
    "IsotopicEnvelope",
    "ParallelScanProcessor",
    "Feature",
    "FeatureAggregator",
    "FeatureStream",
]
