"""
Image export for rendered Mandelbrot fields.

This module writes grayscale pixel buffers as 8-bit images (PNG, TIFF, JPEG)
with Pillow, embedding the render parameters where the format allows it.
"""

from typing import Any, Dict, Optional, Tuple
from pathlib import Path
from dataclasses import dataclass, asdict
import json
import logging
from datetime import datetime

from PIL import Image, PngImagePlugin

from .. import __version__
from ..core.math_functions import BoundsLike, ImageBounds
from ..core.raster import as_pixel_array, check_buffer

logger = logging.getLogger(__name__)


@dataclass
class RenderMetadata:
    """Metadata for Mandelbrot field renders."""

    # Region
    upper_left: Tuple[float, float]  # re, im
    lower_right: Tuple[float, float]  # re, im
    resolution: Tuple[int, int]  # width, height
    iteration_limit: int

    # Rendering parameters
    intensity: str
    executor: str
    num_workers: int

    # Timing
    render_time_seconds: float

    # Grid position when rendered as part of a field grid
    grid_cell: Optional[Tuple[int, int]] = None

    # Generation info
    timestamp: str = ""
    software_version: str = __version__

    def __post_init__(self):
        """Set default timestamp if not provided."""
        if not self.timestamp:
            self.timestamp = datetime.now().isoformat()

        self.upper_left = tuple(self.upper_left)
        self.lower_right = tuple(self.lower_right)
        self.resolution = tuple(self.resolution)
        if self.grid_cell is not None:
            self.grid_cell = tuple(self.grid_cell)

    def to_dict(self) -> Dict[str, Any]:
        """Convert metadata to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RenderMetadata':
        """Create metadata from dictionary."""
        return cls(**data)

    def to_json(self, indent: int = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent)

    @classmethod
    def from_json(cls, json_str: str) -> 'RenderMetadata':
        """Create metadata from JSON string."""
        return cls.from_dict(json.loads(json_str))


class ImageExporter:
    """Grayscale image export with metadata support."""

    def __init__(self):
        self.supported_formats = {
            '.png': self._save_png,
            '.tiff': self._save_tiff,
            '.tif': self._save_tiff,
            '.jpg': self._save_jpeg,
            '.jpeg': self._save_jpeg,
        }

    def save_grayscale(self, pixels: Any, bounds: BoundsLike, filepath: Path,
                       metadata: Optional[RenderMetadata] = None,
                       quality: int = 95, compression: Optional[str] = None) -> Path:
        """
        Save a grayscale pixel buffer as an 8-bit image.

        Args:
            pixels: Row-major buffer of width * height bytes
            bounds: (width, height) of the buffer
            filepath: Output file path; the suffix selects the format
            metadata: Render metadata to embed
            quality: JPEG quality (1-100)
            compression: Compression method ('none', 'fast', 'high' for PNG;
                'lzw', 'deflate', 'none' for TIFF)

        Returns:
            The path written
        """
        filepath = Path(filepath)
        suffix = filepath.suffix.lower()

        if suffix not in self.supported_formats:
            supported = ', '.join(self.supported_formats.keys())
            raise ValueError(f"Unsupported format '{suffix}'. Supported: {supported}")

        bounds = ImageBounds.coerce(bounds)
        flat = as_pixel_array(pixels)
        check_buffer(flat, bounds)

        # Pillow copies the bytes, so the caller may reuse the buffer right away
        pil_image = Image.frombytes('L', (bounds.width, bounds.height), flat.tobytes())

        save_method = self.supported_formats[suffix]
        save_method(pil_image, filepath, metadata, quality, compression)

        logger.info(f"Saved image: {filepath} ({bounds.width}x{bounds.height})")
        return filepath

    def _save_png(self, pil_image: Image.Image, filepath: Path,
                  metadata: Optional[RenderMetadata], quality: int, compression: Optional[str]) -> None:
        """Save as PNG with metadata."""
        pnginfo = PngImagePlugin.PngInfo()

        if metadata:
            pnginfo.add_text("Title", "Mandelbrot field")
            pnginfo.add_text("Software", f"mandelbrot-field v{metadata.software_version}")
            pnginfo.add_text("Creation Time", metadata.timestamp)
            pnginfo.add_text("RenderMetadata", metadata.to_json())

        # PNG compression levels: 0 (no compression) to 9 (max compression)
        compress_level = 6
        if compression:
            if compression.lower() in ['none', '0']:
                compress_level = 0
            elif compression.lower() in ['fast', 'low']:
                compress_level = 1
            elif compression.lower() in ['high', 'max']:
                compress_level = 9

        pil_image.save(filepath, "PNG", pnginfo=pnginfo, compress_level=compress_level)

    def _save_tiff(self, pil_image: Image.Image, filepath: Path,
                   metadata: Optional[RenderMetadata], quality: int, compression: Optional[str]) -> None:
        """Save as TIFF, with the metadata in the ImageDescription tag."""
        compression_map = {
            'none': None,
            'lzw': 'tiff_lzw',
            'deflate': 'tiff_deflate',
            'zip': 'tiff_deflate',
        }
        tiff_compression = compression_map.get((compression or 'lzw').lower(), 'tiff_lzw')

        save_kwargs = {'format': 'TIFF'}
        if tiff_compression:
            save_kwargs['compression'] = tiff_compression
        if metadata:
            save_kwargs['description'] = metadata.to_json()
            save_kwargs['software'] = f"mandelbrot-field v{metadata.software_version}"

        pil_image.save(filepath, **save_kwargs)

    def _save_jpeg(self, pil_image: Image.Image, filepath: Path,
                   metadata: Optional[RenderMetadata], quality: int, compression: Optional[str]) -> None:
        """Save as JPEG with a companion JSON metadata file."""
        pil_image.save(filepath, "JPEG", quality=quality, optimize=True)

        if metadata:
            json_path = filepath.with_suffix('.json')
            with open(json_path, 'w') as f:
                f.write(metadata.to_json())
            logger.info(f"Saved metadata: {json_path}")

    def load_metadata(self, filepath: Path) -> Optional[RenderMetadata]:
        """
        Read render metadata back from a saved image.

        Args:
            filepath: Image written by save_grayscale

        Returns:
            RenderMetadata, or None if the file carries none
        """
        filepath = Path(filepath)
        suffix = filepath.suffix.lower()

        if suffix in ('.jpg', '.jpeg'):
            json_path = filepath.with_suffix('.json')
            if not json_path.exists():
                return None
            return RenderMetadata.from_json(json_path.read_text())

        with Image.open(filepath) as img:
            if suffix == '.png':
                raw = img.info.get("RenderMetadata")
            else:
                raw = img.tag_v2.get(270) if hasattr(img, 'tag_v2') else None

        if not raw:
            return None
        return RenderMetadata.from_json(raw)
