"""
Band decomposition and worker-side band rendering.

An image is split into horizontal bands one pixel row tall. Each band knows
the slice of the flat pixel buffer it owns and the sub-rectangle of the
complex plane it covers, so bands can be rendered independently by threads
or processes without any locking.
"""

import numpy as np
from typing import Any, List, Optional, Union
import multiprocessing as mp
import logging
import time
from dataclasses import dataclass

from ..core.math_functions import BoundsLike, ImageBounds, pixel_to_point
from ..core.raster import render_region
from ..rendering.coloring import IntensityMapping
from .numba_backend import render_region_jit

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BandSpec:
    """Specification for a single band of the pixel buffer."""
    row: int
    start: int
    stop: int
    upper_left: complex
    lower_right: complex

    @property
    def width(self) -> int:
        return self.stop - self.start

    @property
    def bounds(self) -> ImageBounds:
        return ImageBounds(self.width, 1)


@dataclass
class BandResult:
    """Pixels computed for a band by a worker process."""
    row: int
    pixels: bytes
    processing_time: float


def create_band_grid(bounds: BoundsLike, upper_left: complex, lower_right: complex) -> List[BandSpec]:
    """
    Create one band per pixel row.

    Args:
        bounds: (width, height) of the whole image
        upper_left: Complex point at the image's upper-left corner
        lower_right: Complex point at the image's lower-right corner

    Returns:
        List of BandSpec objects, top row first
    """
    bounds = ImageBounds.coerce(bounds)
    width, height = bounds

    bands = []
    for row in range(height):
        band_upper_left = pixel_to_point(bounds, (0, row), upper_left, lower_right)
        band_lower_right = pixel_to_point(bounds, (width, row + 1), upper_left, lower_right)
        bands.append(BandSpec(row=row,
                              start=row * width,
                              stop=(row + 1) * width,
                              upper_left=band_upper_left,
                              lower_right=band_lower_right))

    logger.debug(f"Created {len(bands)} bands of {width}x1 pixels")
    return bands


def split_bands(flat: np.ndarray, bands: List[BandSpec]) -> List[np.ndarray]:
    """Slice the flat buffer into one non-overlapping view per band."""
    views = []
    end = 0
    for band in bands:
        if band.start < end:
            raise ValueError(f"Band {band.row} overlaps the previous band")
        views.append(flat[band.start:band.stop])
        end = band.stop
    if end > flat.size:
        raise ValueError("Bands extend past the end of the pixel buffer")
    return views


def render_band(view: Any, band: BandSpec, iteration_limit: int,
                intensity: Union[str, IntensityMapping, None] = None,
                use_numba: bool = False,
                escaped_table: Optional[np.ndarray] = None) -> None:
    """
    Render a single band into its slice of the pixel buffer.

    Args:
        view: The band's writable slice
        band: Band specification
        iteration_limit: Maximum iterations per point
        intensity: Intensity mapping name or instance
        use_numba: Use the JIT kernel instead of the pure Python renderer
        escaped_table: Lookup table for the JIT kernel
    """
    if use_numba:
        render_region_jit(view, band.bounds, band.upper_left, band.lower_right,
                          iteration_limit, intensity, escaped_table)
    else:
        render_region(view, band.bounds, band.upper_left, band.lower_right,
                      iteration_limit, intensity)


def process_band(args) -> BandResult:
    """
    Render a band in a worker process.

    Args:
        args: Tuple of (band, iteration_limit, intensity, use_numba)

    Returns:
        BandResult carrying the band's pixels back to the parent
    """
    band, iteration_limit, intensity, use_numba = args

    start_time = time.time()
    pixels = bytearray(band.width)
    render_band(pixels, band, iteration_limit, intensity, use_numba)

    return BandResult(row=band.row,
                      pixels=bytes(pixels),
                      processing_time=time.time() - start_time)


def get_optimal_worker_count() -> int:
    """Get a sensible worker count for band rendering."""
    # Leave one core for the system
    return max(1, mp.cpu_count() - 1)
