"""
Core mathematical functions for Mandelbrot field rendering.

This module provides the coordinate mapping between image pixels and the
complex plane, and the escape-time iteration that decides (up to an
iteration limit) whether a point belongs to the Mandelbrot set.
"""

from typing import Iterator, List, Tuple, Union
from dataclasses import dataclass
import numbers
import logging

logger = logging.getLogger(__name__)

ESCAPE_RADIUS_SQ = 4.0
DEFAULT_ITERATION_LIMIT = 255

BoundsLike = Union['ImageBounds', Tuple[int, int]]


@dataclass(frozen=True)
class ImageBounds:
    """Width and height of an image in pixels."""
    width: int
    height: int

    def __post_init__(self):
        """Validate image dimensions."""
        if not isinstance(self.width, numbers.Integral) or not isinstance(self.height, numbers.Integral):
            raise ValueError(f"Image bounds must be whole pixel counts, got {self.width}x{self.height}")
        object.__setattr__(self, 'width', int(self.width))
        object.__setattr__(self, 'height', int(self.height))
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image bounds must be positive, got {self.width}x{self.height}")

    def __iter__(self) -> Iterator[int]:
        return iter((self.width, self.height))

    @property
    def pixel_count(self) -> int:
        """Number of pixels (and bytes) in a grayscale buffer of these bounds."""
        return self.width * self.height

    @classmethod
    def coerce(cls, bounds: BoundsLike) -> 'ImageBounds':
        """Accept either an ImageBounds or a (width, height) pair."""
        if isinstance(bounds, cls):
            return bounds
        width, height = bounds
        return cls(width, height)


@dataclass(frozen=True)
class GridCell:
    """One sub-region of a subdivided plane rectangle."""
    row: int
    col: int
    rectangle: 'PlaneRectangle'


@dataclass(frozen=True)
class PlaneRectangle:
    """Region of the complex plane given by its upper-left and lower-right corners."""
    upper_left: complex
    lower_right: complex

    def __post_init__(self):
        object.__setattr__(self, 'upper_left', complex(self.upper_left))
        object.__setattr__(self, 'lower_right', complex(self.lower_right))

    def validate(self) -> None:
        """
        Check the corner ordering.

        The real axis grows to the right and the imaginary axis grows upwards,
        so the upper-left corner must have the smaller real part and the
        larger imaginary part.
        """
        if not self.upper_left.real < self.lower_right.real:
            raise ValueError(f"Invalid rectangle: upper_left.real ({self.upper_left.real}) "
                             f"must be less than lower_right.real ({self.lower_right.real})")
        if not self.upper_left.imag > self.lower_right.imag:
            raise ValueError(f"Invalid rectangle: upper_left.imag ({self.upper_left.imag}) "
                             f"must be greater than lower_right.imag ({self.lower_right.imag})")

    @property
    def width(self) -> float:
        return self.lower_right.real - self.upper_left.real

    @property
    def height(self) -> float:
        return self.upper_left.imag - self.lower_right.imag

    @property
    def center(self) -> complex:
        return complex((self.upper_left.real + self.lower_right.real) / 2,
                       (self.upper_left.imag + self.lower_right.imag) / 2)

    def subdivide(self, rows: int, cols: int) -> List[GridCell]:
        """
        Split the rectangle into a grid of equally sized cells.

        Args:
            rows: Number of cells along the imaginary axis
            cols: Number of cells along the real axis

        Returns:
            List of GridCell objects in row-major order
        """
        if rows <= 0 or cols <= 0:
            raise ValueError("Grid rows and cols must be positive")

        cell_width = self.width / cols
        cell_height = self.height / rows

        cells = []
        for row in range(rows):
            for col in range(cols):
                upper_left = complex(self.upper_left.real + col * cell_width,
                                     self.upper_left.imag - row * cell_height)
                lower_right = upper_left + complex(cell_width, -cell_height)
                cells.append(GridCell(row, col, PlaneRectangle(upper_left, lower_right)))
        return cells


@dataclass(frozen=True)
class Escaped:
    """The orbit left the escape radius at the given zero-based iteration."""
    iteration: int


@dataclass(frozen=True)
class Bounded:
    """The orbit stayed inside the escape radius for the whole iteration limit."""


BOUNDED = Bounded()

EscapeResult = Union[Escaped, Bounded]


def pixel_to_point(bounds: BoundsLike, pixel: Tuple[int, int],
                   upper_left: complex, lower_right: complex) -> complex:
    """
    Convert a pixel location to the corresponding point on the complex plane.

    Args:
        bounds: (width, height) of the image in pixels
        pixel: (column, row) of the pixel
        upper_left: Complex point at the image's upper-left corner
        lower_right: Complex point at the image's lower-right corner

    Returns:
        The complex point the pixel represents
    """
    bounds_width, bounds_height = bounds
    column, row = pixel
    width = lower_right.real - upper_left.real
    height = upper_left.imag - lower_right.imag
    # Rows grow downwards while the imaginary axis grows upwards.
    return complex(upper_left.real + column * width / bounds_width,
                   upper_left.imag - row * height / bounds_height)


map_pixel_to_point = pixel_to_point


def escape_time(c: complex, limit: int = DEFAULT_ITERATION_LIMIT) -> EscapeResult:
    """
    Decide whether c appears to be in the Mandelbrot set.

    Iterates z = z*z + c from z = 0 for at most ``limit`` steps.

    Args:
        c: Point on the complex plane
        limit: Maximum number of iterations

    Returns:
        Escaped(i) if |z| exceeded 2 after iteration i, otherwise BOUNDED
    """
    if limit <= 0:
        raise ValueError("Iteration limit must be positive")

    z = 0j
    for i in range(limit):
        z = z * z + c
        if z.real * z.real + z.imag * z.imag > ESCAPE_RADIUS_SQ:
            return Escaped(i)

    return BOUNDED
