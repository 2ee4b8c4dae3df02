import pytest
from click.testing import CliRunner
from PIL import Image

from mandelbrot_field import __version__
from mandelbrot_field.cli.main import main

SMALL = ['--width', '16', '--height', '12', '--limit', '50',
         '--executor', 'sequential', '--no-numba']


@pytest.fixture
def runner():
    return CliRunner()


def test_version(runner):
    result = runner.invoke(main, ['--version'])
    assert result.exit_code == 0
    assert f"Mandelbrot Field v{__version__}" in result.output


def test_escape_bounded(runner):
    result = runner.invoke(main, ['escape', '--point=0,0', '--limit', '100'])
    assert result.exit_code == 0
    assert "bounded after 100 iterations" in result.output


def test_escape_immediately(runner):
    result = runner.invoke(main, ['escape', '--point=3,0'])
    assert result.exit_code == 0
    assert "escaped at iteration 0" in result.output


def test_escape_invalid_point(runner):
    result = runner.invoke(main, ['escape', '--point=abc'])
    assert result.exit_code == 1


def test_render(runner, tmp_path):
    output = tmp_path / "view.png"
    result = runner.invoke(main, ['render', str(output), *SMALL,
                                  '--upper-left=-2,1', '--lower-right=1,-1'])
    assert result.exit_code == 0, result.output
    assert f"Saved: {output}" in result.output

    with Image.open(output) as img:
        assert img.mode == 'L'
        assert img.size == (16, 12)


def test_render_invalid_corner(runner, tmp_path):
    result = runner.invoke(main, ['render', str(tmp_path / "x.png"), *SMALL,
                                  '--upper-left=-2;1'])
    assert result.exit_code == 2


def test_render_degenerate_region(runner, tmp_path):
    output = tmp_path / "x.png"
    result = runner.invoke(main, ['render', str(output), *SMALL,
                                  '--upper-left=1,1', '--lower-right=-1,-1'])
    assert result.exit_code == 1
    assert not output.exists()


def test_grid_dry_run(runner, tmp_path):
    result = runner.invoke(main, ['grid', str(tmp_path), *SMALL,
                                  '--rows', '2', '--cols', '3', '--dry-run'])
    assert result.exit_code == 0, result.output
    assert result.output.count("Would render:") == 6
    assert "field_001_002_0.png" in result.output
    assert "Dry run complete. 6 fields would be rendered." in result.output
    assert not list(tmp_path.iterdir())


def test_grid(runner, tmp_path):
    result = runner.invoke(main, ['grid', str(tmp_path / "out"), *SMALL,
                                  '--rows', '2', '--cols', '2'])
    assert result.exit_code == 0, result.output
    names = sorted(p.name for p in (tmp_path / "out").iterdir())
    assert names == ['field_000_000_0.png', 'field_000_001_0.png',
                     'field_001_000_0.png', 'field_001_001_0.png']


def test_init_and_validate_config(runner, tmp_path):
    path = tmp_path / "settings.yaml"
    result = runner.invoke(main, ['init-config', '-o', str(path), '--with-examples'])
    assert result.exit_code == 0, result.output
    assert path.exists()

    result = runner.invoke(main, ['validate-config', str(path)])
    assert result.exit_code == 0
    assert "Configuration file is valid" in result.output


def test_validate_config_reports_errors(runner, tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("render:\n  width: -5\n")
    result = runner.invoke(main, ['validate-config', str(path)])
    assert result.exit_code == 1
    assert "render:" in result.output


def test_list_presets(runner):
    result = runner.invoke(main, ['list-presets'])
    assert result.exit_code == 0
    assert "Available presets:" in result.output
    assert "deep-field" in result.output


def test_preset_from_config_file(runner, tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text("presets:\n  tiny:\n    width: 8\n    height: 4\n")
    output = tmp_path / "tiny.png"

    result = runner.invoke(main, ['--config', str(path), '--preset', 'tiny',
                                  'render', str(output), '--limit', '20',
                                  '--executor', 'sequential', '--no-numba'])
    assert result.exit_code == 0, result.output
    with Image.open(output) as img:
        assert img.size == (8, 4)


def test_system_info(runner):
    result = runner.invoke(main, ['system-info'])
    assert result.exit_code == 0
    assert "CPU cores:" in result.output
