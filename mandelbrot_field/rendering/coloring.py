"""
Grayscale intensity policies for Mandelbrot rendering.

An intensity policy turns an escape-time result into a single byte. The
policy is replaceable: the renderer only requires a byte for the bounded case
and one per escape iteration.
"""

import numpy as np
from typing import Dict, List, Type, Union
from abc import ABC, abstractmethod
import logging

from ..core.math_functions import Bounded, EscapeResult, Escaped

logger = logging.getLogger(__name__)


class IntensityMapping(ABC):
    """Abstract base class for escape-result to intensity mappings."""

    name = "abstract"

    @abstractmethod
    def escaped(self, iteration: int) -> int:
        """Intensity (0-255) of a point that escaped at ``iteration``."""
        pass

    def bounded(self) -> int:
        """Intensity of a point assumed to be in the set."""
        return 0

    def __call__(self, result: EscapeResult) -> int:
        if isinstance(result, Escaped):
            return self.escaped(result.iteration)
        if isinstance(result, Bounded):
            return self.bounded()
        raise TypeError(f"Expected an escape result, got {result!r}")

    def lookup_table(self, limit: int) -> np.ndarray:
        """
        Precompute the escaped intensities for every possible iteration.

        Args:
            limit: Iteration limit of the render

        Returns:
            uint8 array where entry i is the intensity of Escaped(i)
        """
        return np.array([self.escaped(i) for i in range(limit)], dtype=np.uint8)

    def __eq__(self, other):
        return type(self) is type(other)

    def __hash__(self):
        return hash(type(self))

    def __repr__(self):
        return f"{type(self).__name__}()"


class CyclicIntensity(IntensityMapping):
    """Wrap the iteration count into a byte, producing cyclic banding."""

    name = "cyclic"

    def escaped(self, iteration: int) -> int:
        return iteration % 256


class InvertedIntensity(IntensityMapping):
    """Bright for fast escapes, darkening towards the set boundary."""

    name = "inverted"

    def escaped(self, iteration: int) -> int:
        return 255 - min(iteration, 255)


_INTENSITY_MAPPINGS: Dict[str, Type[IntensityMapping]] = {
    CyclicIntensity.name: CyclicIntensity,
    InvertedIntensity.name: InvertedIntensity,
}

DEFAULT_INTENSITY = CyclicIntensity.name


def get_intensity_mapping(mapping: Union[str, IntensityMapping, None] = None) -> IntensityMapping:
    """
    Resolve an intensity mapping by name.

    Args:
        mapping: Registered name, an IntensityMapping instance, or None for the default

    Returns:
        IntensityMapping instance
    """
    if mapping is None:
        mapping = DEFAULT_INTENSITY
    if isinstance(mapping, IntensityMapping):
        return mapping

    try:
        return _INTENSITY_MAPPINGS[mapping.lower()]()
    except KeyError:
        available = ', '.join(sorted(_INTENSITY_MAPPINGS))
        raise ValueError(f"Unknown intensity mapping '{mapping}'. Available: {available}") from None


def list_intensity_mappings() -> List[str]:
    """Get names of all registered intensity mappings."""
    return sorted(_INTENSITY_MAPPINGS)
