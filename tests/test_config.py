import json

import pytest
import yaml

from mandelbrot_field.api import RenderConfig
from mandelbrot_field.io.config import (
    ConfigManager,
    EnvironmentConfig,
    load_config_from_args,
    parse_pair,
)


def test_defaults_produce_default_render_config():
    manager = ConfigManager()
    config = manager.create_render_config(manager.load_config())
    assert config == RenderConfig()


def test_builtin_presets_are_valid():
    manager = ConfigManager()
    config_dict = manager.load_config()
    assert manager.list_presets(config_dict) == ['deep-field', 'default', 'preview']
    assert manager.validate_config(config_dict) == []


def test_deep_field_preset():
    manager = ConfigManager()
    config = manager.create_render_config(manager.load_config(), 'deep-field')
    assert (config.width, config.height) == (6400, 6400)
    assert (config.grid_rows, config.grid_cols) == (10, 10)
    assert config.upper_left == (-1.16, 0.29)
    assert config.lower_right == (-1.14, 0.275)


def test_load_yaml(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump({'render': {'width': 64, 'upper_left': [-1.5, 1.0],
                                               'lower_right': '0.5,-1.0',
                                               'intensity': 'inverted'}}))
    manager = ConfigManager()
    config = manager.create_render_config(manager.load_config(path))

    assert config.width == 64
    assert config.height == RenderConfig().height
    assert config.upper_left == (-1.5, 1.0)
    assert config.lower_right == (0.5, -1.0)
    assert config.intensity == 'inverted'


def test_load_json_with_custom_preset(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({'presets': {'tiny': {'width': 8, 'height': 8}}}))

    manager = ConfigManager()
    config_dict = manager.load_config(path)
    assert 'tiny' in manager.list_presets(config_dict)
    assert 'preview' in manager.list_presets(config_dict)

    config = manager.create_render_config(config_dict, 'tiny')
    assert (config.width, config.height) == (8, 8)


def test_unknown_preset():
    manager = ConfigManager()
    with pytest.raises(ValueError, match="Unknown preset"):
        manager.create_render_config(manager.load_config(), 'missing')


def test_unknown_setting():
    manager = ConfigManager()
    with pytest.raises(ValueError, match="Unknown render settings"):
        manager.create_render_config({'render': {'colour': 'red'}})


def test_unsupported_file_format(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text("width = 3")
    with pytest.raises(ValueError, match="Unsupported config format"):
        ConfigManager().load_config(path)


def test_validate_reports_errors():
    manager = ConfigManager()
    config_dict = manager.load_config()
    config_dict['render']['upper_left'] = [1.0, -1.0]
    config_dict['presets']['broken'] = {'iteration_limit': 0}

    errors = manager.validate_config(config_dict)
    assert any(e.startswith('render:') for e in errors)
    assert any(e.startswith("preset 'broken'") for e in errors)


@pytest.mark.parametrize("suffix", ['.yaml', '.json'])
def test_template_round_trip(tmp_path, suffix):
    manager = ConfigManager()
    path = manager.export_config_template(tmp_path / f"template{suffix}", with_examples=True)

    config_dict = manager.load_config(path)
    assert manager.validate_config(config_dict) == []
    assert manager.list_presets(config_dict) == ['deep-field', 'default', 'preview']


def test_environment_overrides():
    environ = {
        'MANDELBROT_FIELD_WIDTH': '32',
        'MANDELBROT_FIELD_UPPER_LEFT': '-1.0,0.5',
        'MANDELBROT_FIELD_USE_NUMBA': 'false',
        'MANDELBROT_FIELD_TIMEOUT': '2.5',
        'MANDELBROT_FIELD_BOGUS': '1',
        'UNRELATED': 'x',
    }
    assert EnvironmentConfig.overrides(environ) == {
        'width': '32', 'upper_left': '-1.0,0.5', 'use_numba': 'false', 'timeout': '2.5'}

    config = load_config_from_args(environ=environ)
    assert config.width == 32
    assert config.upper_left == (-1.0, 0.5)
    assert config.use_numba is False
    assert config.timeout == 2.5


def test_environment_wins_over_preset():
    config = load_config_from_args(preset='preview', environ={'MANDELBROT_FIELD_WIDTH': '50'})
    assert config.width == 50
    assert config.height == 240


def test_parse_pair():
    assert parse_pair('-0.5, 0.25') == (-0.5, 0.25)
    assert parse_pair([1, 2]) == (1.0, 2.0)
    with pytest.raises(ValueError):
        parse_pair('1,2,3')


def test_system_capabilities():
    capabilities = EnvironmentConfig.detect_system_capabilities()
    assert capabilities['cpu_count'] >= 1
    assert capabilities['recommended_workers'] >= 1
    assert isinstance(capabilities['numba_available'], bool)
