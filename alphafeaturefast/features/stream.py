"""Single-pass stream of emitted features.

FeatureStream wraps the lazy aggregation generator so that a consumer can
tell normal completion (``completed``) from abnormal termination (``error``)
after the last feature it received. The stream is finite and cannot be
restarted: iterating it again after it ended yields nothing.
"""

from typing import Dict, Iterable, List, Optional

from ..errors import DeconvolutionFailure
from .feature import Feature


class FeatureStream:
    """Iterator over features emitted by a FeatureAggregator.

    Parameters
    ----------
    features : Iterable[Feature]
        Lazy source of features, usually ``FeatureAggregator.aggregate``
    failures : Dict[int, DeconvolutionFailure], optional
        Per-scan failures from the deconvolution phase, reported alongside
        the features
    """

    def __init__(
        self,
        features: Iterable[Feature],
        failures: Optional[Dict[int, DeconvolutionFailure]] = None,
    ):
        self._iterator = iter(features)
        self.failures: Dict[int, DeconvolutionFailure] = dict(failures or {})
        self.completed = False
        self.error: Optional[BaseException] = None
        self.emitted = 0

    def __iter__(self) -> 'FeatureStream':
        return self

    def __next__(self) -> Feature:
        if self.completed or self.error is not None:
            raise StopIteration
        try:
            feature = next(self._iterator)
        except StopIteration:
            self.completed = True
            raise
        except Exception as err:
            self.error = err
            raise
        self.emitted += 1
        return feature

    @property
    def finished(self) -> bool:
        """True once the stream ended, normally or not."""
        return self.completed or self.error is not None

    def collect(self) -> List[Feature]:
        """Drain the remaining features into a list."""
        return list(self)

    def __repr__(self) -> str:
        if self.error is not None:
            state = f"error={type(self.error).__name__}"
        elif self.completed:
            state = "completed"
        else:
            state = "open"
        return f"FeatureStream(emitted={self.emitted}, failures={len(self.failures)}, {state})"
