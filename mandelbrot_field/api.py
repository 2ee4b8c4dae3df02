"""
Main API classes for Mandelbrot field rendering.

This module provides the high-level interface: a validated render
configuration and a FieldRenderer that owns one pixel buffer and reuses it
for every region it renders, including whole grids of sub-regions written
out as numbered image files.
"""

import numpy as np
from typing import Any, Callable, Dict, List, Optional, Tuple
from dataclasses import dataclass
from pathlib import Path
import logging
import time

from .core.math_functions import GridCell, ImageBounds, PlaneRectangle
from .rendering.coloring import get_intensity_mapping
from .rendering.image_output import ImageExporter, RenderMetadata
from .tools.tiling import EXECUTORS, TileRenderer

logger = logging.getLogger(__name__)


@dataclass
class RenderConfig:
    """Configuration for Mandelbrot field rendering."""

    # Image parameters
    width: int = 800
    height: int = 800
    upper_left: Tuple[float, float] = (-2.25, 1.5)  # re, im
    lower_right: Tuple[float, float] = (0.75, -1.5)  # re, im

    # Escape-time parameters
    iteration_limit: int = 255
    intensity: str = 'cyclic'

    # Performance
    executor: str = 'thread'
    num_workers: Optional[int] = None
    use_numba: bool = True
    timeout: Optional[float] = None

    # Grid output
    grid_rows: int = 1
    grid_cols: int = 1
    filename_template: str = 'field_{row:03d}_{col:03d}_0.png'

    # Output
    compression: Optional[str] = None
    save_metadata: bool = True

    def __post_init__(self):
        self.upper_left = tuple(self.upper_left)
        self.lower_right = tuple(self.lower_right)

    def validate(self):
        """Validate configuration parameters."""
        if self.width <= 0 or self.height <= 0:
            raise ValueError("Width and height must be positive")

        if self.iteration_limit <= 0:
            raise ValueError("iteration_limit must be positive")

        if len(self.upper_left) != 2 or len(self.lower_right) != 2:
            raise ValueError("upper_left and lower_right must be (re, im) pairs")

        self.rectangle.validate()

        get_intensity_mapping(self.intensity)

        if self.executor not in EXECUTORS:
            raise ValueError(f"executor must be one of: {', '.join(EXECUTORS)}")

        if self.num_workers is not None and self.num_workers < 1:
            raise ValueError("num_workers must be >= 1")

        if self.timeout is not None and self.timeout <= 0:
            raise ValueError("timeout must be positive")

        if self.grid_rows < 1 or self.grid_cols < 1:
            raise ValueError("grid_rows and grid_cols must be >= 1")

        try:
            self.filename_template.format(row=0, col=0)
        except (KeyError, IndexError, ValueError) as e:
            raise ValueError(f"Invalid filename_template '{self.filename_template}': {e}") from None

    @property
    def bounds(self) -> ImageBounds:
        return ImageBounds(self.width, self.height)

    @property
    def rectangle(self) -> PlaneRectangle:
        return PlaneRectangle(complex(*self.upper_left), complex(*self.lower_right))


class FieldRenderer:
    """Renders Mandelbrot regions into a single reused pixel buffer."""

    def __init__(self, config: Optional[RenderConfig] = None):
        """
        Initialize the field renderer.

        Args:
            config: Rendering configuration (uses defaults if None)
        """
        self.config = config or RenderConfig()
        self.config.validate()

        self.bounds = self.config.bounds
        # Allocated once and overwritten by every render
        self.pixels = np.zeros(self.bounds.pixel_count, dtype=np.uint8)

        self.tile_renderer = self._create_tile_renderer()
        self.image_exporter = ImageExporter()

        logger.info(f"FieldRenderer initialized: {self.bounds.width}x{self.bounds.height}, "
                    f"limit={self.config.iteration_limit}, executor={self.config.executor}")

    def _create_tile_renderer(self, executor: Optional[str] = None) -> TileRenderer:
        return TileRenderer(num_workers=self.config.num_workers,
                            executor=executor or self.config.executor,
                            iteration_limit=self.config.iteration_limit,
                            intensity=self.config.intensity,
                            use_numba=self.config.use_numba,
                            timeout=self.config.timeout)

    def render(self, rectangle: Optional[PlaneRectangle] = None,
               progress_callback: Optional[Callable[[int, int], None]] = None) -> np.ndarray:
        """
        Render a region into the shared buffer.

        Args:
            rectangle: Region to render (defaults to the configured one)
            progress_callback: Called with (completed_bands, total_bands)

        Returns:
            The renderer's buffer as a (height, width) view; it is overwritten
            by the next render, so copy it to keep it
        """
        rectangle = rectangle or self.config.rectangle
        self.tile_renderer.render(self.pixels, self.bounds,
                                  rectangle.upper_left, rectangle.lower_right,
                                  progress_callback)
        return self.pixels.reshape(self.bounds.height, self.bounds.width)

    def render_to_file(self, output_path: Path, rectangle: Optional[PlaneRectangle] = None,
                       grid_cell: Optional[Tuple[int, int]] = None) -> Path:
        """
        Render a region and write it as a grayscale image.

        Args:
            output_path: Output image path
            rectangle: Region to render (defaults to the configured one)
            grid_cell: (row, col) recorded in the metadata for grid renders

        Returns:
            The path written
        """
        rectangle = rectangle or self.config.rectangle

        start_time = time.time()
        self.render(rectangle)
        render_time = time.time() - start_time

        metadata = None
        if self.config.save_metadata:
            metadata = RenderMetadata(
                upper_left=(rectangle.upper_left.real, rectangle.upper_left.imag),
                lower_right=(rectangle.lower_right.real, rectangle.lower_right.imag),
                resolution=(self.bounds.width, self.bounds.height),
                iteration_limit=self.config.iteration_limit,
                intensity=self.tile_renderer.intensity.name,
                executor=self.tile_renderer.executor,
                num_workers=self.tile_renderer.num_workers,
                render_time_seconds=render_time,
                grid_cell=grid_cell,
            )

        return self.image_exporter.save_grayscale(self.pixels, self.bounds, output_path,
                                                  metadata, compression=self.config.compression)

    def plan_grid(self, rows: Optional[int] = None, cols: Optional[int] = None) -> List[GridCell]:
        """Subdivide the configured region into grid cells without rendering."""
        rows = rows if rows is not None else self.config.grid_rows
        cols = cols if cols is not None else self.config.grid_cols
        return self.config.rectangle.subdivide(rows, cols)

    def cell_filename(self, cell: GridCell) -> str:
        return self.config.filename_template.format(row=cell.row, col=cell.col)

    def render_grid(self, output_dir: Path, rows: Optional[int] = None, cols: Optional[int] = None,
                    progress_callback: Optional[Callable[[int, int, Path], None]] = None) -> List[Path]:
        """
        Render every cell of a grid over the configured region to its own file.

        Args:
            output_dir: Directory for the cell images
            rows: Grid rows (defaults to config.grid_rows)
            cols: Grid columns (defaults to config.grid_cols)
            progress_callback: Called with (completed_cells, total_cells, path)

        Returns:
            Paths written, in row-major order
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        cells = self.plan_grid(rows, cols)
        logger.info(f"Rendering {len(cells)} fields into {output_dir}")

        start_time = time.time()
        paths = []
        for completed, cell in enumerate(cells, start=1):
            output_path = output_dir / self.cell_filename(cell)
            logger.info(f"Generate {cell.row}_{cell.col} {cell.rectangle.upper_left} "
                        f"{cell.rectangle.lower_right}")

            paths.append(self.render_to_file(output_path, cell.rectangle, (cell.row, cell.col)))

            if progress_callback:
                progress_callback(completed, len(cells), output_path)

        logger.info(f"Grid complete: {len(paths)} files in {time.time() - start_time:.2f}s")
        return paths

    def benchmark_performance(self) -> Dict[str, Any]:
        """
        Compare sequential and parallel rendering of the configured region.

        Returns:
            Timing results and whether both renders produced identical bytes
        """
        logger.info("Starting performance benchmark")
        rectangle = self.config.rectangle
        pixel_count = self.bounds.pixel_count

        results = {
            'config': {
                'resolution': f"{self.bounds.width}x{self.bounds.height}",
                'iteration_limit': self.config.iteration_limit,
                'num_workers': self.tile_renderer.num_workers,
                'numba': self.tile_renderer.use_numba,
            },
            'benchmarks': {},
        }

        outputs = {}
        for executor in ('sequential', self.config.executor):
            if executor in outputs:
                continue
            renderer = self._create_tile_renderer(executor)
            pixels = np.zeros(pixel_count, dtype=np.uint8)

            start_time = time.time()
            renderer.render(pixels, self.bounds, rectangle.upper_left, rectangle.lower_right)
            elapsed = time.time() - start_time

            outputs[executor] = pixels
            results['benchmarks'][executor] = {
                'time': elapsed,
                'pixels_per_second': pixel_count / elapsed if elapsed > 0 else float('inf'),
            }

        sequential_time = results['benchmarks']['sequential']['time']
        parallel_time = results['benchmarks'][self.config.executor]['time']
        if self.config.executor != 'sequential' and parallel_time > 0:
            results['benchmarks'][self.config.executor]['speedup'] = sequential_time / parallel_time

        results['identical'] = all(np.array_equal(outputs['sequential'], pixels)
                                   for pixels in outputs.values())
        return results
