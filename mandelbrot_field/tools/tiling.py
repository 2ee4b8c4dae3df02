"""
Parallel band rendering of Mandelbrot regions.

The TileRenderer splits a caller-owned pixel buffer into one-row bands before
dispatching any work. Each band task owns its slice exclusively, so bands run
concurrently without locks and the result does not depend on the order in
which they complete.
"""

import numpy as np
from typing import Any, Callable, List, Optional, Union
from concurrent.futures import (Executor, Future, ProcessPoolExecutor, ThreadPoolExecutor,
                                TimeoutError as FuturesTimeoutError, as_completed)
import logging
import time

from ..core.math_functions import (DEFAULT_ITERATION_LIMIT, BoundsLike, ImageBounds,
                                   PlaneRectangle)
from ..core.raster import as_pixel_array, check_buffer
from ..rendering.coloring import IntensityMapping, get_intensity_mapping
from ..acceleration.multiprocessing import (BandSpec, create_band_grid, get_optimal_worker_count,
                                            process_band, render_band, split_bands)
from ..acceleration.numba_backend import is_numba_available

logger = logging.getLogger(__name__)

EXECUTORS = ('sequential', 'thread', 'process')

ProgressCallback = Callable[[int, int], None]


class RenderTimeoutError(TimeoutError):
    """The render did not finish before its deadline; the buffer is incomplete."""


class TileRenderer:
    """Renders Mandelbrot regions band by band over a worker pool."""

    def __init__(self, num_workers: Optional[int] = None, executor: str = 'thread',
                 iteration_limit: int = DEFAULT_ITERATION_LIMIT,
                 intensity: Union[str, IntensityMapping, None] = None,
                 use_numba: bool = True, timeout: Optional[float] = None):
        """
        Initialize the band renderer.

        Args:
            num_workers: Number of worker threads/processes (None for CPU count - 1)
            executor: 'sequential', 'thread' or 'process'
            iteration_limit: Maximum iterations per point
            intensity: Intensity mapping name or instance (default cyclic)
            use_numba: Use the JIT band kernel when numba is installed
            timeout: Seconds to wait for all bands before giving up (None waits forever)
        """
        if executor not in EXECUTORS:
            raise ValueError(f"Unknown executor '{executor}'. Choose from: {', '.join(EXECUTORS)}")
        if iteration_limit <= 0:
            raise ValueError("iteration_limit must be positive")
        if timeout is not None and timeout <= 0:
            raise ValueError("timeout must be positive")
        if num_workers is not None and num_workers < 1:
            raise ValueError("num_workers must be >= 1")

        if num_workers is None:
            self.num_workers = get_optimal_worker_count()
        else:
            self.num_workers = num_workers

        self.executor = executor
        self.iteration_limit = iteration_limit
        self.intensity = get_intensity_mapping(intensity)
        self.timeout = timeout

        self.use_numba = use_numba and is_numba_available()
        if use_numba and not self.use_numba:
            logger.info("Numba not installed, using the pure Python band kernel")

        logger.debug(f"TileRenderer: executor={executor}, workers={self.num_workers}, "
                     f"limit={iteration_limit}, intensity={self.intensity.name}, "
                     f"numba={self.use_numba}")

    def render(self, pixels: Any, bounds: BoundsLike, upper_left: complex, lower_right: complex,
               progress_callback: Optional[ProgressCallback] = None) -> None:
        """
        Render a rectangle of the Mandelbrot set into ``pixels`` in place.

        Args:
            pixels: Writable grayscale buffer of width * height bytes
            bounds: (width, height) of the buffer
            upper_left: Complex point at the buffer's upper-left corner
            lower_right: Complex point at the buffer's lower-right corner
            progress_callback: Called with (completed_bands, total_bands)

        Raises:
            BufferSizeError: The buffer length is not width * height
            RenderTimeoutError: The deadline expired before all bands finished
        """
        bounds = ImageBounds.coerce(bounds)
        flat = as_pixel_array(pixels)
        check_buffer(flat, bounds)
        PlaneRectangle(upper_left, lower_right).validate()

        start_time = time.time()

        bands = create_band_grid(bounds, upper_left, lower_right)
        views = split_bands(flat, bands)
        escaped_table = self.intensity.lookup_table(self.iteration_limit) if self.use_numba else None

        logger.info(f"Rendering {bounds.width}x{bounds.height} as {len(bands)} bands "
                    f"({self.executor}, {self.num_workers} workers)")

        if self.executor == 'sequential':
            self._render_sequential(bands, views, escaped_table, progress_callback)
        elif self.executor == 'thread':
            pool = ThreadPoolExecutor(max_workers=self.num_workers)
            self._render_pool(pool, bands, views, progress_callback,
                              lambda band, view: pool.submit(render_band, view, band,
                                                             self.iteration_limit, self.intensity,
                                                             self.use_numba, escaped_table))
        else:
            pool = ProcessPoolExecutor(max_workers=self.num_workers)
            self._render_pool(pool, bands, views, progress_callback,
                              lambda band, view: pool.submit(process_band,
                                                             (band, self.iteration_limit,
                                                              self.intensity, self.use_numba)))

        logger.info(f"Render complete: {time.time() - start_time:.2f}s")

    def _render_sequential(self, bands: List[BandSpec], views: List[np.ndarray],
                           escaped_table: Optional[np.ndarray],
                           progress_callback: Optional[ProgressCallback]) -> None:
        """Render bands in row order on the calling thread."""
        deadline = None if self.timeout is None else time.monotonic() + self.timeout

        for completed, (band, view) in enumerate(zip(bands, views), start=1):
            if deadline is not None and time.monotonic() > deadline:
                raise RenderTimeoutError(f"Render timed out after {self.timeout}s "
                                         f"with {len(bands) - completed + 1} bands unfinished")
            render_band(view, band, self.iteration_limit, self.intensity,
                        self.use_numba, escaped_table)
            if progress_callback:
                progress_callback(completed, len(bands))

    def _render_pool(self, pool: Executor, bands: List[BandSpec], views: List[np.ndarray],
                     progress_callback: Optional[ProgressCallback],
                     submit: Callable[[BandSpec, np.ndarray], Future]) -> None:
        """Dispatch every band to the pool and collect them as they complete."""
        completed = 0
        try:
            future_to_index = {submit(band, view): i
                               for i, (band, view) in enumerate(zip(bands, views))}

            for future in as_completed(future_to_index, timeout=self.timeout):
                index = future_to_index[future]
                try:
                    result = future.result()
                except Exception as e:
                    logger.error(f"Band {bands[index].row} failed: {e}")
                    raise

                # Process workers hand their pixels back; only this thread writes them
                if result is not None:
                    views[index][:] = np.frombuffer(result.pixels, dtype=np.uint8)

                completed += 1
                if progress_callback:
                    progress_callback(completed, len(bands))

        except FuturesTimeoutError:
            raise RenderTimeoutError(f"Render timed out after {self.timeout}s with "
                                     f"{len(bands) - completed} bands unfinished") from None
        finally:
            # Bands still running hold views into the caller's buffer
            pool.shutdown(wait=True, cancel_futures=True)


def render(pixels: Any, bounds: BoundsLike, upper_left: complex, lower_right: complex) -> None:
    """
    Render a rectangle of the Mandelbrot set into a grayscale buffer.

    Uses parallel bands, an iteration limit of 255 and the cyclic intensity
    mapping (Bounded -> 0, Escaped(i) -> i mod 256).
    """
    TileRenderer().render(pixels, bounds, upper_left, lower_right)
