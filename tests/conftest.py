"""Pytest configuration for AlphaFeatureFast tests.

This module provides common fixtures and configuration for all tests.
All runs are built in memory; no raw files are read.
"""

import threading

import numpy as np
import pytest


class TableDeconvolver:
    """Deconvolver returning pre-baked envelopes keyed by spectrum identity.

    Records every call (thread-safe) so tests can check which scans were
    attempted.
    """

    def __init__(self, envelopes_by_spectrum=None, failing=()):
        self.envelopes_by_spectrum = envelopes_by_spectrum or {}
        self.failing = set(failing)
        self.calls = []
        self.arguments = []
        self._lock = threading.Lock()

    def __call__(self, spectrum, mz_window, min_charge, max_charge,
                 deconvolution_tolerance_ppm, intensity_ratio_limit):
        with self._lock:
            self.calls.append(id(spectrum))
            self.arguments.append(
                (mz_window, min_charge, max_charge, deconvolution_tolerance_ppm, intensity_ratio_limit)
            )
        if id(spectrum) in self.failing:
            raise RuntimeError("simulated deconvolution crash")
        return self.envelopes_by_spectrum.get(id(spectrum), [])


def make_run(envelopes_per_scan, retention_times=None, ms_levels=None, failing_scans=()):
    """Build an MsRun plus a TableDeconvolver from per-scan envelope lists.

    Scan i (one-based) gets a tiny spectrum of its own and returns
    ``envelopes_per_scan[i - 1]`` when deconvolved.
    """
    from alphafeaturefast.scans import MsRun
    from alphafeaturefast.spectra import Spectrum

    n_scans = len(envelopes_per_scan)
    if retention_times is None:
        retention_times = [0.1 * i for i in range(n_scans)]
    spectra = [Spectrum([100.0 + i], [1.0]) for i in range(n_scans)]

    deconvolver = TableDeconvolver(
        {id(s): list(envs) for s, envs in zip(spectra, envelopes_per_scan)},
        failing={id(spectra[i - 1]) for i in failing_scans},
    )
    run = MsRun.from_spectra(spectra, retention_times, ms_levels=ms_levels, deconvolver=deconvolver)
    return run, deconvolver


@pytest.fixture
def run_factory():
    """``make_run`` as a fixture."""
    return make_run


@pytest.fixture
def envelope():
    """Factory for envelopes with synthetic peaks."""
    from alphafeaturefast.deconvolution import IsotopicEnvelope
    from alphafeaturefast.mass import neutral_mass_to_mz
    from alphafeaturefast.constants import C13_MASS_DIFF

    def _make(mass, charge=2, num_peaks=3, intensity=100.0):
        peaks = [
            (neutral_mass_to_mz(mass + k * C13_MASS_DIFF, charge), intensity)
            for k in range(num_peaks)
        ]
        return IsotopicEnvelope(mass, charge, peaks)

    return _make


@pytest.fixture
def five_scan_run(envelope):
    """Five scans: 1000 Da in scans 1 and 3; unrelated masses in scans 2, 4 and 5."""
    return make_run([
        [envelope(1000.0)],
        [envelope(2000.0)],
        [envelope(1000.0)],
        [envelope(3000.0)],
        [envelope(4000.0)],
    ])


@pytest.fixture
def proton_mass():
    """Proton mass constant."""
    from alphafeaturefast.constants import PROTON_MASS
    return PROTON_MASS


# Random seed for reproducibility
@pytest.fixture(scope="session", autouse=True)
def set_random_seed():
    """Set random seed for reproducible tests."""
    np.random.seed(42)
