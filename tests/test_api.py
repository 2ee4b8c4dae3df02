import numpy as np
import pytest
from PIL import Image

from mandelbrot_field.api import FieldRenderer, RenderConfig
from mandelbrot_field.core.math_functions import PlaneRectangle
from mandelbrot_field.core.raster import render_region


def small_config(**overrides):
    values = dict(width=16, height=12, upper_left=(-2.0, 1.25), lower_right=(1.0, -1.25),
                  iteration_limit=60, executor='sequential', use_numba=False)
    values.update(overrides)
    return RenderConfig(**values)


class TestRenderConfig:

    def test_defaults_are_valid(self):
        config = RenderConfig()
        config.validate()
        assert config.iteration_limit == 255
        assert config.intensity == 'cyclic'
        assert config.filename_template == 'field_{row:03d}_{col:03d}_0.png'

    def test_pairs_become_tuples(self):
        config = RenderConfig(upper_left=[-1.0, 1.0], lower_right=[1.0, -1.0])
        assert config.rectangle == PlaneRectangle(complex(-1.0, 1.0), complex(1.0, -1.0))

    @pytest.mark.parametrize("overrides", [
        {'width': 0},
        {'iteration_limit': 0},
        {'upper_left': (1.0, 1.0), 'lower_right': (-1.0, -1.0)},
        {'intensity': 'rainbow'},
        {'executor': 'gpu'},
        {'num_workers': 0},
        {'timeout': -1.0},
        {'grid_rows': 0},
        {'filename_template': 'field_{missing}.png'},
    ])
    def test_invalid_configs(self, overrides):
        with pytest.raises(ValueError):
            small_config(**overrides).validate()


class TestFieldRenderer:

    def test_render_matches_region_renderer(self):
        renderer = FieldRenderer(small_config())
        image = renderer.render()

        expected = bytearray(16 * 12)
        render_region(expected, (16, 12), complex(-2.0, 1.25), complex(1.0, -1.25), 60)

        assert image.shape == (12, 16)
        assert image.tobytes() == bytes(expected)

    def test_buffer_is_reused_between_renders(self):
        renderer = FieldRenderer(small_config())
        buffer = renderer.pixels

        first = renderer.render().copy()
        second = renderer.render(PlaneRectangle(complex(-0.8, 0.3), complex(-0.6, 0.1)))

        assert renderer.pixels is buffer
        assert np.shares_memory(second, buffer)
        assert not np.array_equal(first, second)

    def test_render_to_file(self, tmp_path):
        renderer = FieldRenderer(small_config())
        path = renderer.render_to_file(tmp_path / "view.png")

        with Image.open(path) as img:
            assert img.size == (16, 12)
            assert img.tobytes() == renderer.pixels.tobytes()

        metadata = renderer.image_exporter.load_metadata(path)
        assert metadata.resolution == (16, 12)
        assert metadata.iteration_limit == 60
        assert metadata.grid_cell is None

    def test_plan_grid(self):
        renderer = FieldRenderer(small_config(grid_rows=2, grid_cols=3))
        cells = renderer.plan_grid()
        assert len(cells) == 6
        assert renderer.cell_filename(cells[4]) == 'field_001_001_0.png'

    @pytest.mark.parametrize("rows,cols", [(0, 2), (2, 0)])
    def test_plan_grid_rejects_empty_override(self, rows, cols):
        renderer = FieldRenderer(small_config(grid_rows=2, grid_cols=2))
        with pytest.raises(ValueError):
            renderer.plan_grid(rows, cols)

    def test_render_grid(self, tmp_path):
        renderer = FieldRenderer(small_config(grid_rows=2, grid_cols=2))
        progress = []
        paths = renderer.render_grid(tmp_path / "fields",
                                     progress_callback=lambda done, total, path: progress.append(done))

        assert [p.name for p in paths] == ['field_000_000_0.png', 'field_000_001_0.png',
                                           'field_001_000_0.png', 'field_001_001_0.png']
        assert progress == [1, 2, 3, 4]

        # Each file holds its own cell, not the last render left in the buffer
        for cell, path in zip(renderer.plan_grid(), paths):
            expected = bytearray(16 * 12)
            render_region(expected, (16, 12), cell.rectangle.upper_left,
                          cell.rectangle.lower_right, 60)
            with Image.open(path) as img:
                assert img.tobytes() == bytes(expected)

            metadata = renderer.image_exporter.load_metadata(path)
            assert metadata.grid_cell == (cell.row, cell.col)

    def test_render_grid_override(self, tmp_path):
        renderer = FieldRenderer(small_config(save_metadata=False))
        paths = renderer.render_grid(tmp_path, rows=1, cols=3)
        assert len(paths) == 3
        assert renderer.image_exporter.load_metadata(paths[0]) is None

    def test_benchmark_reports_identical_output(self):
        renderer = FieldRenderer(small_config(executor='thread', num_workers=2))
        results = renderer.benchmark_performance()

        assert results['identical'] is True
        assert set(results['benchmarks']) == {'sequential', 'thread'}
        assert results['config']['resolution'] == '16x12'
