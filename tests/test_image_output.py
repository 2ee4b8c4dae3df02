import json

import numpy as np
import pytest
from PIL import Image

from mandelbrot_field.core.raster import BufferSizeError, render_region
from mandelbrot_field.rendering.image_output import ImageExporter, RenderMetadata


@pytest.fixture
def pixels():
    buffer = bytearray(12 * 8)
    render_region(buffer, (12, 8), complex(-2.0, 1.0), complex(1.0, -1.0), 64)
    return buffer


@pytest.fixture
def metadata():
    return RenderMetadata(upper_left=(-2.0, 1.0), lower_right=(1.0, -1.0), resolution=(12, 8),
                          iteration_limit=64, intensity='cyclic', executor='thread',
                          num_workers=2, render_time_seconds=0.01, grid_cell=(1, 2))


def test_png_is_grayscale_copy_of_buffer(tmp_path, pixels, metadata):
    path = ImageExporter().save_grayscale(pixels, (12, 8), tmp_path / "field.png", metadata)

    with Image.open(path) as img:
        assert img.mode == 'L'
        assert img.size == (12, 8)
        assert img.tobytes() == bytes(pixels)


def test_png_metadata_round_trip(tmp_path, pixels, metadata):
    exporter = ImageExporter()
    path = exporter.save_grayscale(pixels, (12, 8), tmp_path / "field.png", metadata)
    assert exporter.load_metadata(path) == metadata


def test_png_without_metadata(tmp_path, pixels):
    exporter = ImageExporter()
    path = exporter.save_grayscale(pixels, (12, 8), tmp_path / "plain.png", compression='none')
    assert exporter.load_metadata(path) is None


def test_tiff(tmp_path, pixels, metadata):
    exporter = ImageExporter()
    path = exporter.save_grayscale(pixels, (12, 8), tmp_path / "field.tiff", metadata)

    with Image.open(path) as img:
        assert img.mode == 'L'
        assert img.tobytes() == bytes(pixels)
    assert exporter.load_metadata(path) == metadata


def test_jpeg_writes_sidecar(tmp_path, pixels, metadata):
    exporter = ImageExporter()
    path = exporter.save_grayscale(pixels, (12, 8), tmp_path / "field.jpg", metadata)

    with Image.open(path) as img:
        assert img.mode == 'L'
        assert img.size == (12, 8)

    sidecar = tmp_path / "field.json"
    assert json.loads(sidecar.read_text())['iteration_limit'] == 64
    assert exporter.load_metadata(path) == metadata


def test_accepts_numpy_buffer(tmp_path):
    array = np.arange(6 * 4, dtype=np.uint8).reshape(4, 6)
    path = ImageExporter().save_grayscale(array, (6, 4), tmp_path / "ramp.png")
    with Image.open(path) as img:
        assert np.array_equal(np.asarray(img), array)


def test_unsupported_format(tmp_path, pixels):
    with pytest.raises(ValueError, match="Unsupported format"):
        ImageExporter().save_grayscale(pixels, (12, 8), tmp_path / "field.bmp")


def test_size_mismatch(tmp_path, pixels):
    with pytest.raises(BufferSizeError):
        ImageExporter().save_grayscale(pixels, (10, 8), tmp_path / "field.png")
    assert not (tmp_path / "field.png").exists()


def test_metadata_json_round_trip(metadata):
    restored = RenderMetadata.from_json(metadata.to_json())
    assert restored == metadata
    assert restored.grid_cell == (1, 2)
