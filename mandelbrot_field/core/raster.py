"""
Pixel buffer handling and the sequential region renderer.

A pixel buffer is a flat, row-major run of grayscale bytes owned by the
caller. Everything here works on a one-dimensional uint8 view of that buffer
so writes land in the caller's memory without copying.
"""

import numpy as np
from typing import Any, Optional, Union
import logging

from .math_functions import (DEFAULT_ITERATION_LIMIT, BoundsLike, ImageBounds,
                             escape_time, pixel_to_point)
from ..rendering.coloring import IntensityMapping, get_intensity_mapping

logger = logging.getLogger(__name__)


class BufferSizeError(ValueError):
    """The pixel buffer does not hold exactly width * height bytes."""


def as_pixel_array(pixels: Any) -> np.ndarray:
    """
    Get a flat, writable uint8 view of a pixel buffer.

    Args:
        pixels: bytearray, writable memoryview, or C-contiguous uint8 ndarray

    Returns:
        One-dimensional numpy view sharing memory with ``pixels``
    """
    if isinstance(pixels, np.ndarray):
        if pixels.dtype != np.uint8:
            raise TypeError(f"Pixel buffer must have dtype uint8, got {pixels.dtype}")
        if not pixels.flags.c_contiguous:
            raise TypeError("Pixel buffer must be C-contiguous")
        flat = pixels.reshape(-1)
    else:
        try:
            flat = np.frombuffer(pixels, dtype=np.uint8)
        except TypeError:
            raise TypeError(f"Pixel buffer must support the buffer protocol, "
                            f"got {type(pixels).__name__}") from None

    if not flat.flags.writeable:
        raise TypeError("Pixel buffer must be writable")
    return flat


def check_buffer(flat: np.ndarray, bounds: ImageBounds) -> None:
    """Raise BufferSizeError unless the buffer holds exactly one byte per pixel."""
    if flat.size != bounds.pixel_count:
        raise BufferSizeError(f"Pixel buffer holds {flat.size} bytes, expected "
                              f"{bounds.width}x{bounds.height} = {bounds.pixel_count}")


def render_region(pixels: Any, bounds: BoundsLike, upper_left: complex, lower_right: complex,
                  iteration_limit: int = DEFAULT_ITERATION_LIMIT,
                  intensity: Optional[Union[str, IntensityMapping]] = None) -> None:
    """
    Render a rectangle of the Mandelbrot set into a buffer, one pixel at a time.

    Args:
        pixels: Writable grayscale buffer of width * height bytes
        bounds: (width, height) of the buffer
        upper_left: Complex point at the buffer's upper-left corner
        lower_right: Complex point at the buffer's lower-right corner
        iteration_limit: Maximum iterations per point
        intensity: Intensity mapping name or instance (default cyclic)
    """
    bounds = ImageBounds.coerce(bounds)
    flat = as_pixel_array(pixels)
    check_buffer(flat, bounds)
    mapping = get_intensity_mapping(intensity)

    width, height = bounds
    for row in range(height):
        for column in range(width):
            point = pixel_to_point(bounds, (column, row), upper_left, lower_right)
            flat[row * width + column] = mapping(escape_time(point, iteration_limit))
