"""
Mandelbrot field rendering library.

This library renders grayscale escape-time views of the Mandelbrot set. A
region of the complex plane is mapped onto a caller-owned pixel buffer, which
is split into one-row bands that are rendered in parallel without locking.

Key Features:
- Exact pixel to complex-plane coordinate mapping
- Escape-time evaluation with an explicit Escaped / Bounded outcome
- Band-parallel rendering over thread or process pools
- Optional Numba JIT band kernel
- Grids of sub-region fields rendered into a single reused buffer
- PNG/TIFF/JPEG grayscale export with embedded render metadata

Example usage:
    >>> from mandelbrot_field import render
    >>> pixels = bytearray(64 * 48)
    >>> render(pixels, (64, 48), complex(-2.0, 1.0), complex(1.0, -1.0))
"""

__version__ = "1.0.0"
__author__ = "Mandelbrot Field Team"

from mandelbrot_field.core.math_functions import (
    BOUNDED,
    Bounded,
    Escaped,
    ImageBounds,
    PlaneRectangle,
    escape_time,
    map_pixel_to_point,
    pixel_to_point,
)
from mandelbrot_field.rendering.coloring import CyclicIntensity, InvertedIntensity, get_intensity_mapping
from mandelbrot_field.core.raster import BufferSizeError, render_region
from mandelbrot_field.tools.tiling import RenderTimeoutError, TileRenderer, render
from mandelbrot_field.rendering.image_output import ImageExporter, RenderMetadata

# Main API classes
from mandelbrot_field.api import FieldRenderer, RenderConfig

__all__ = [
    "BOUNDED",
    "Bounded",
    "BufferSizeError",
    "CyclicIntensity",
    "Escaped",
    "FieldRenderer",
    "ImageBounds",
    "ImageExporter",
    "InvertedIntensity",
    "PlaneRectangle",
    "RenderConfig",
    "RenderMetadata",
    "RenderTimeoutError",
    "TileRenderer",
    "escape_time",
    "get_intensity_mapping",
    "map_pixel_to_point",
    "pixel_to_point",
    "render",
    "render_region",
]
