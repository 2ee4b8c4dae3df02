"""
Numba JIT compilation backend for band rendering.

The compiled kernel performs the same arithmetic, in the same order, as
``escape_time`` and ``pixel_to_point`` so its output is byte-identical to the
pure Python renderer. It runs with the GIL released, which lets the thread
executor render bands on several cores at once.
"""

import numpy as np
from typing import Any, Optional, Union
import logging

from ..core.math_functions import ESCAPE_RADIUS_SQ, BoundsLike, ImageBounds
from ..core.raster import as_pixel_array, check_buffer
from ..rendering.coloring import IntensityMapping, get_intensity_mapping

logger = logging.getLogger(__name__)

try:
    import numba
    NUMBA_AVAILABLE = True
    logger.debug(f"Numba available: {numba.__version__}")
except ImportError:
    numba = None
    NUMBA_AVAILABLE = False
    logger.debug("Numba not available - JIT band kernel disabled")


def _region_kernel(out, width, height, ul_re, ul_im, lr_re, lr_im,
                   limit, escaped_table, bounded_value):
    span_re = lr_re - ul_re
    span_im = ul_im - lr_im

    for row in range(height):
        ci = ul_im - row * span_im / height
        for column in range(width):
            cr = ul_re + column * span_re / width

            zr = 0.0
            zi = 0.0
            value = bounded_value
            for i in range(limit):
                # z = z*z + c, expanded the way complex multiplication is
                zr, zi = zr * zr - zi * zi + cr, zr * zi + zi * zr + ci
                if zr * zr + zi * zi > ESCAPE_RADIUS_SQ:
                    value = escaped_table[i]
                    break

            out[row * width + column] = value


_compiled_kernel = None


def is_numba_available() -> bool:
    """Check if the Numba JIT backend can be used."""
    return NUMBA_AVAILABLE


def get_region_kernel():
    """Get the compiled region kernel, compiling it on first use."""
    global _compiled_kernel
    if not NUMBA_AVAILABLE:
        raise RuntimeError("Numba is required for the JIT band kernel")
    if _compiled_kernel is None:
        logger.info("Compiling Numba region kernel")
        _compiled_kernel = numba.njit(nogil=True, cache=True)(_region_kernel)
    return _compiled_kernel


def render_region_jit(pixels: Any, bounds: BoundsLike, upper_left: complex, lower_right: complex,
                      iteration_limit: int,
                      intensity: Optional[Union[str, IntensityMapping]] = None,
                      escaped_table: Optional[np.ndarray] = None) -> None:
    """
    JIT-compiled counterpart of ``render_region``.

    Args:
        pixels: Writable grayscale buffer of width * height bytes
        bounds: (width, height) of the buffer
        upper_left: Complex point at the buffer's upper-left corner
        lower_right: Complex point at the buffer's lower-right corner
        iteration_limit: Maximum iterations per point
        intensity: Intensity mapping name or instance
        escaped_table: Precomputed ``intensity.lookup_table(iteration_limit)``
    """
    if iteration_limit <= 0:
        raise ValueError("Iteration limit must be positive")

    bounds = ImageBounds.coerce(bounds)
    flat = as_pixel_array(pixels)
    check_buffer(flat, bounds)
    mapping = get_intensity_mapping(intensity)
    if escaped_table is None:
        escaped_table = mapping.lookup_table(iteration_limit)

    kernel = get_region_kernel()
    kernel(flat, bounds.width, bounds.height,
           float(upper_left.real), float(upper_left.imag),
           float(lower_right.real), float(lower_right.imag),
           int(iteration_limit), escaped_table, np.uint8(mapping.bounded()))
