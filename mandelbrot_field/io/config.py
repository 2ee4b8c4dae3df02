"""
Configuration management for Mandelbrot field rendering.

Configuration lives in JSON or YAML files with a ``render`` section and an
optional ``presets`` section. Built-in defaults are merged under the file,
a preset is merged over the ``render`` section, and ``MANDELBROT_FIELD_*``
environment variables are applied last.
"""

from typing import Any, Dict, List, Optional, Tuple
from dataclasses import asdict, fields
from pathlib import Path
import copy
import json
import logging
import os

import yaml

from ..api import RenderConfig
from ..acceleration.multiprocessing import get_optimal_worker_count
from ..acceleration.numba_backend import is_numba_available

logger = logging.getLogger(__name__)

ENV_PREFIX = 'MANDELBROT_FIELD_'

DEFAULT_CONFIG: Dict[str, Any] = {
    'render': {k: (list(v) if isinstance(v, tuple) else v)
               for k, v in asdict(RenderConfig()).items()},
    'presets': {
        'preview': {
            '_description': 'Small, fast view of the whole set',
            'width': 320,
            'height': 240,
            'upper_left': [-2.25, 1.125],
            'lower_right': [0.75, -1.125],
            'iteration_limit': 100,
        },
        'default': {
            '_description': 'Whole set at moderate resolution',
            'width': 800,
            'height': 800,
            'upper_left': [-2.25, 1.5],
            'lower_right': [0.75, -1.5],
            'iteration_limit': 255,
        },
        'deep-field': {
            '_description': '10x10 grid of 6400x6400 fields near -1.15+0.28i',
            'width': 6400,
            'height': 6400,
            'upper_left': [-1.16, 0.29],
            'lower_right': [-1.14, 0.275],
            'iteration_limit': 255,
            'grid_rows': 10,
            'grid_cols': 10,
        },
    },
}

_FIELD_NAMES = {f.name for f in fields(RenderConfig)}
_PAIR_KEYS = ('upper_left', 'lower_right')
_INT_KEYS = ('width', 'height', 'iteration_limit', 'num_workers', 'grid_rows', 'grid_cols')
_FLOAT_KEYS = ('timeout',)
_BOOL_KEYS = ('use_numba', 'save_metadata')


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge ``override`` into a copy of ``base``."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def parse_pair(value: Any) -> Tuple[float, float]:
    """Parse an (re, im) pair from a sequence or a 're,im' string."""
    if isinstance(value, str):
        value = value.split(',')
    parts = [float(x) for x in value]
    if len(parts) != 2:
        raise ValueError(f"Expected two coordinates 're,im', got {value!r}")
    return parts[0], parts[1]


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ('1', 'true', 'yes', 'on'):
        return True
    if text in ('0', 'false', 'no', 'off'):
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def coerce_render_value(key: str, value: Any) -> Any:
    """Convert a raw config value (possibly a string) to the RenderConfig field type."""
    if value is None:
        return None
    if key in _PAIR_KEYS:
        return parse_pair(value)
    if key in _INT_KEYS:
        return int(value)
    if key in _FLOAT_KEYS:
        return float(value)
    if key in _BOOL_KEYS:
        return parse_bool(value)
    return value


class ConfigManager:
    """Loads, validates and templates render configuration."""

    def __init__(self, defaults: Optional[Dict[str, Any]] = None):
        self.defaults = defaults or DEFAULT_CONFIG

    def load_config(self, config_path: Optional[Path] = None) -> Dict[str, Any]:
        """
        Load configuration, merged over the built-in defaults.

        Args:
            config_path: JSON or YAML file (None for defaults only)

        Returns:
            Configuration dictionary
        """
        if config_path is None:
            return copy.deepcopy(self.defaults)

        data = self._read_file(Path(config_path))
        logger.info(f"Loaded configuration: {config_path}")
        return _merge(self.defaults, data)

    def _read_file(self, path: Path) -> Dict[str, Any]:
        suffix = path.suffix.lower()
        with open(path, 'r', encoding='utf-8') as f:
            if suffix == '.json':
                data = json.load(f)
            elif suffix in ('.yaml', '.yml'):
                data = yaml.safe_load(f)
            else:
                raise ValueError(f"Unsupported config format '{suffix}'. Use .json, .yaml or .yml")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file {path} must contain a mapping")
        return data

    def list_presets(self, config_dict: Dict[str, Any]) -> List[str]:
        """Get preset names defined in a configuration."""
        return sorted(config_dict.get('presets', {}))

    def resolve_render_section(self, config_dict: Dict[str, Any],
                               preset: Optional[str] = None) -> Dict[str, Any]:
        """Get the ``render`` section with a preset applied over it."""
        render = dict(config_dict.get('render', {}))

        if preset:
            presets = config_dict.get('presets', {})
            if preset not in presets:
                available = ', '.join(sorted(presets)) or 'none'
                raise ValueError(f"Unknown preset '{preset}'. Available: {available}")
            render.update(presets[preset])

        return {k: v for k, v in render.items() if not k.startswith('_')}

    def create_render_config(self, config_dict: Dict[str, Any],
                             preset: Optional[str] = None) -> RenderConfig:
        """
        Build a validated RenderConfig from a configuration dictionary.

        Args:
            config_dict: Configuration as returned by load_config
            preset: Optional preset to apply over the render section

        Returns:
            RenderConfig
        """
        render = self.resolve_render_section(config_dict, preset)

        unknown = set(render) - set(_FIELD_NAMES)
        if unknown:
            raise ValueError(f"Unknown render settings: {', '.join(sorted(unknown))}")

        values = {k: coerce_render_value(k, v) for k, v in render.items()}
        config = RenderConfig(**values)
        config.validate()
        return config

    def validate_config(self, config_dict: Dict[str, Any]) -> List[str]:
        """
        Validate a configuration dictionary.

        Returns:
            List of error messages (empty if valid)
        """
        errors = []

        if not isinstance(config_dict.get('render', {}), dict):
            return ["'render' section must be a mapping"]

        try:
            self.create_render_config(config_dict)
        except (TypeError, ValueError) as e:
            errors.append(f"render: {e}")

        presets = config_dict.get('presets', {})
        if not isinstance(presets, dict):
            errors.append("'presets' section must be a mapping")
            return errors

        for name in sorted(presets):
            try:
                self.create_render_config(config_dict, name)
            except (TypeError, ValueError) as e:
                errors.append(f"preset '{name}': {e}")

        return errors

    def export_config_template(self, output_path: Path, with_examples: bool = False) -> Path:
        """
        Write a configuration template file.

        Args:
            output_path: Target path; .json writes JSON, anything else YAML
            with_examples: Include the built-in presets

        Returns:
            The path written
        """
        output_path = Path(output_path)
        template = {'render': copy.deepcopy(self.defaults['render'])}
        if with_examples:
            template['presets'] = copy.deepcopy(self.defaults['presets'])

        with open(output_path, 'w', encoding='utf-8') as f:
            if output_path.suffix.lower() == '.json':
                json.dump(template, f, indent=2)
            else:
                f.write("# mandelbrot-field configuration\n")
                f.write("# upper_left / lower_right are [re, im] corners of the rendered region\n")
                yaml.safe_dump(template, f, sort_keys=False)

        logger.info(f"Wrote configuration template: {output_path}")
        return output_path


class EnvironmentConfig:
    """Environment-based overrides and system capability detection."""

    @staticmethod
    def overrides(environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Collect ``MANDELBROT_FIELD_<KEY>`` render overrides."""
        environ = os.environ if environ is None else environ
        result = {}
        for name, value in environ.items():
            if not name.startswith(ENV_PREFIX):
                continue
            key = name[len(ENV_PREFIX):].lower()
            if key not in _FIELD_NAMES:
                logger.warning(f"Ignoring unknown environment setting {name}")
                continue
            result[key] = value
        return result

    @classmethod
    def apply_overrides(cls, config_dict: Dict[str, Any],
                        environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
        """Return a copy of ``config_dict`` with environment overrides in its render section."""
        overrides = cls.overrides(environ)
        if overrides:
            logger.debug(f"Environment overrides: {sorted(overrides)}")
        return _merge(config_dict, {'render': overrides})

    @staticmethod
    def detect_system_capabilities() -> Dict[str, Any]:
        capabilities = {
            'cpu_count': os.cpu_count() or 1,
            'recommended_workers': get_optimal_worker_count(),
            'numba_available': is_numba_available(),
        }
        if capabilities['numba_available']:
            import numba
            capabilities['numba_version'] = numba.__version__
        return capabilities


def load_config_from_args(config_file: Optional[str] = None, preset: Optional[str] = None,
                          environ: Optional[Dict[str, str]] = None) -> RenderConfig:
    """
    Build the effective RenderConfig for a command-line invocation.

    Args:
        config_file: Optional JSON/YAML configuration file
        preset: Optional preset name
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated RenderConfig
    """
    manager = ConfigManager()
    config_dict = manager.load_config(config_file)

    # Environment wins over the preset, so resolve the preset first
    render = manager.resolve_render_section(config_dict, preset)
    config_dict = EnvironmentConfig.apply_overrides({'render': render,
                                                     'presets': config_dict.get('presets', {})},
                                                    environ)
    return manager.create_render_config(config_dict)
