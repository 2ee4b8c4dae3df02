"""
Command-line interface for Mandelbrot field rendering.

This module provides the ``mandelbrot-field`` command: single renders, grids
of numbered field images, single-point escape queries, benchmarks and
configuration helpers.
"""

import click
import sys
from pathlib import Path
from typing import Any, Dict
import logging
import time

from .. import __version__
from ..api import FieldRenderer, RenderConfig
from ..core.math_functions import escape_time, Escaped
from ..rendering.coloring import list_intensity_mappings
from ..tools.tiling import EXECUTORS
from ..io.config import ConfigManager, EnvironmentConfig, load_config_from_args, parse_pair
from ..acceleration.numba_backend import is_numba_available

logger = logging.getLogger(__name__)


def _fail(ctx, message: str):
    click.echo(f"Error: {message}", err=True)
    if ctx.obj.get('verbose'):
        import traceback
        traceback.print_exc()
    sys.exit(1)


def _build_config(ctx, overrides: Dict[str, Any]) -> RenderConfig:
    """Load the configured RenderConfig and apply command-line overrides."""
    config = load_config_from_args(ctx.obj.get('config_file'), ctx.obj.get('preset'))

    for key, value in overrides.items():
        if value is None:
            continue
        if key in ('upper_left', 'lower_right'):
            try:
                value = parse_pair(value)
            except ValueError:
                raise click.BadParameter(f"Invalid {key.replace('_', '-')} '{value}'. Use 're,im'")
        setattr(config, key, value)

    config.validate()
    return config


def render_options(func):
    """Options shared by the commands that render."""
    options = [
        click.option('--width', '-W', type=int, help='Image width in pixels'),
        click.option('--height', '-H', type=int, help='Image height in pixels'),
        click.option('--upper-left', type=str, help='Upper-left corner "re,im"'),
        click.option('--lower-right', type=str, help='Lower-right corner "re,im"'),
        click.option('--limit', 'iteration_limit', type=int, help='Iteration limit'),
        click.option('--intensity', type=click.Choice(list_intensity_mappings()),
                     help='Escape-time to grayscale mapping'),
        click.option('--executor', type=click.Choice(EXECUTORS), help='Band executor'),
        click.option('--workers', 'num_workers', type=int, help='Number of band workers'),
        click.option('--timeout', type=float, help='Seconds to wait for a render'),
        click.option('--no-numba', is_flag=True, default=False, help='Disable the JIT band kernel'),
    ]
    for option in reversed(options):
        func = option(func)
    return func


def _render_overrides(kwargs: Dict[str, Any]) -> Dict[str, Any]:
    overrides = dict(kwargs)
    if overrides.pop('no_numba', False):
        overrides['use_numba'] = False
    return overrides


@click.group(invoke_without_command=True)
@click.option('--version', is_flag=True, help='Show version information')
@click.option('--config', type=click.Path(exists=True), help='Configuration file path')
@click.option('--preset', help='Configuration preset to use')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--quiet', '-q', is_flag=True, help='Suppress most output')
@click.pass_context
def main(ctx, version, config, preset, verbose, quiet):
    """
    Mandelbrot Field - grayscale escape-time renders of the Mandelbrot set.

    Renders single regions or grids of sub-regions in parallel horizontal bands.
    """
    if quiet:
        logging.basicConfig(level=logging.ERROR)
    elif verbose:
        logging.basicConfig(level=logging.DEBUG,
                            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    else:
        logging.basicConfig(level=logging.INFO,
                            format='%(levelname)s: %(message)s')

    if version:
        click.echo(f"Mandelbrot Field v{__version__}")
        click.echo(f"Python: {sys.version}")
        click.echo(f"Numba acceleration: {'Available' if is_numba_available() else 'Not available'}")

        if ctx.invoked_subcommand is None:
            sys.exit(0)

    ctx.ensure_object(dict)
    ctx.obj['config_file'] = config
    ctx.obj['preset'] = preset
    ctx.obj['verbose'] = verbose


@main.command()
@click.argument('output', type=click.Path())
@render_options
@click.pass_context
def render(ctx, output, **kwargs):
    """
    Render a single region to an image file.

    OUTPUT: Output image path (.png, .tif, .tiff, .jpg, .jpeg)
    """
    try:
        config = _build_config(ctx, _render_overrides(kwargs))
        renderer = FieldRenderer(config)

        click.echo(f"Rendering {config.width}x{config.height} "
                   f"{complex(*config.upper_left)} .. {complex(*config.lower_right)}")
        start_time = time.time()

        path = renderer.render_to_file(Path(output))

        click.echo(f"Render complete: {time.time() - start_time:.2f}s")
        click.echo(f"Saved: {path}")

    except click.BadParameter:
        raise
    except Exception as e:
        _fail(ctx, str(e))


@main.command()
@click.argument('output_dir', type=click.Path())
@render_options
@click.option('--rows', type=int, help='Grid rows')
@click.option('--cols', type=int, help='Grid columns')
@click.option('--template', 'filename_template', type=str,
              help='Filename template with {row} and {col} fields')
@click.option('--dry-run', is_flag=True, help='List the fields without rendering')
@click.pass_context
def grid(ctx, output_dir, rows, cols, filename_template, dry_run, **kwargs):
    """
    Render a grid of sub-regions, one image per field.

    OUTPUT_DIR: Directory for the field images
    """
    try:
        overrides = _render_overrides(kwargs)
        overrides.update(grid_rows=rows, grid_cols=cols, filename_template=filename_template)
        config = _build_config(ctx, overrides)
        renderer = FieldRenderer(config)
        output_path = Path(output_dir)

        cells = renderer.plan_grid()
        if dry_run:
            for cell in cells:
                click.echo(f"Would render: {cell.row}_{cell.col} {cell.rectangle.upper_left} "
                           f"{cell.rectangle.lower_right} -> {output_path / renderer.cell_filename(cell)}")
            click.echo(f"Dry run complete. {len(cells)} fields would be rendered.")
            return

        click.echo(f"Starting grid render: {config.grid_rows}x{config.grid_cols} fields "
                   f"of {config.width}x{config.height}")

        def progress_callback(completed, total, path):
            click.echo(f"Completed {completed}/{total}: {path}")

        start_time = time.time()
        paths = renderer.render_grid(output_path, progress_callback=progress_callback)
        click.echo(f"\nGrid complete: {len(paths)} fields in {time.time() - start_time:.2f}s")

    except click.BadParameter:
        raise
    except Exception as e:
        _fail(ctx, str(e))


@main.command()
@click.option('--point', required=True, type=str, help='Point on the complex plane "re,im"')
@click.option('--limit', type=int, default=255, show_default=True, help='Iteration limit')
@click.pass_context
def escape(ctx, point, limit):
    """Report the escape time of a single point."""
    try:
        c = complex(*parse_pair(point))
        result = escape_time(c, limit)
        if isinstance(result, Escaped):
            click.echo(f"{c}: escaped at iteration {result.iteration}")
        else:
            click.echo(f"{c}: bounded after {limit} iterations")
    except Exception as e:
        _fail(ctx, str(e))


@main.command()
@click.option('--size', type=str, default='400x400', help='Benchmark image size (widthxheight)')
@click.option('--limit', type=int, default=255, help='Iteration limit')
@click.option('--executor', type=click.Choice(['thread', 'process']), default='thread',
              help='Parallel executor to compare against sequential')
@click.option('--workers', type=int, help='Number of band workers')
@click.option('--no-numba', is_flag=True, help='Disable the JIT band kernel')
@click.pass_context
def benchmark(ctx, size, limit, executor, workers, no_numba):
    """Compare sequential and parallel band rendering."""
    try:
        try:
            width, height = map(int, size.split('x'))
        except ValueError:
            click.echo("Error: Invalid size format. Use 'widthxheight'", err=True)
            sys.exit(1)

        config = RenderConfig(width=width, height=height, iteration_limit=limit,
                              executor=executor, num_workers=workers, use_numba=not no_numba)
        renderer = FieldRenderer(config)

        click.echo("Mandelbrot Field Performance Benchmark")
        click.echo(f"Image size: {width}x{height} ({width*height:,} pixels)")
        click.echo(f"Iteration limit: {limit}")
        click.echo("")

        results = renderer.benchmark_performance()

        click.echo("Configuration:")
        for key, value in results['config'].items():
            click.echo(f"  {key}: {value}")

        click.echo("\nPerformance Results:")
        for method, result in results['benchmarks'].items():
            click.echo(f"  {method.upper()}: {result['time']:.2f}s "
                       f"({result['pixels_per_second']:,.0f} pixels/sec)")
            if 'speedup' in result:
                click.echo(f"    Speedup: {result['speedup']:.2f}x")

        click.echo(f"\nIdentical output: {'yes' if results['identical'] else 'NO'}")
        if not results['identical']:
            sys.exit(1)

    except Exception as e:
        _fail(ctx, str(e))


@main.command()
@click.option('--output', '-o', type=click.Path(), default='mandelbrot_field.yaml',
              help='Output file path (.yaml, .yml or .json)')
@click.option('--with-examples', is_flag=True, help='Include the built-in presets')
@click.pass_context
def init_config(ctx, output, with_examples):
    """Create a configuration template file."""
    try:
        output_path = Path(output)
        if not output_path.suffix:
            output_path = output_path.with_suffix('.yaml')

        ConfigManager().export_config_template(output_path, with_examples)
        click.echo(f"Configuration template created: {output_path}")

    except Exception as e:
        _fail(ctx, str(e))


@main.command()
@click.argument('config_file', type=click.Path(exists=True))
@click.pass_context
def validate_config(ctx, config_file):
    """Validate a configuration file."""
    try:
        manager = ConfigManager()
        config_dict = manager.load_config(config_file)
        errors = manager.validate_config(config_dict)

        if not errors:
            click.echo(f"Configuration file is valid: {config_file}")
        else:
            click.echo(f"Configuration file has errors: {config_file}")
            for error in errors:
                click.echo(f"  Error: {error}")
            sys.exit(1)

    except Exception as e:
        _fail(ctx, f"validating config: {e}")


@main.command()
@click.pass_context
def list_presets(ctx):
    """List available configuration presets."""
    try:
        manager = ConfigManager()
        config_dict = manager.load_config(ctx.obj.get('config_file'))
        presets = manager.list_presets(config_dict)

        if not presets:
            click.echo("No presets available.")
            return

        click.echo("Available presets:")
        for preset in presets:
            click.echo(f"  {preset}")

            if ctx.obj.get('verbose'):
                preset_config = config_dict['presets'][preset]
                if '_description' in preset_config:
                    click.echo(f"    Description: {preset_config['_description']}")
                for key, value in preset_config.items():
                    if not key.startswith('_'):
                        click.echo(f"    {key}: {value}")

    except Exception as e:
        _fail(ctx, str(e))


@main.command()
@click.pass_context
def system_info(ctx):
    """Display system capabilities."""
    try:
        capabilities = EnvironmentConfig.detect_system_capabilities()

        click.echo("System Information:")
        click.echo(f"  CPU cores: {capabilities['cpu_count']}")
        click.echo(f"  Recommended workers: {capabilities['recommended_workers']}")
        click.echo(f"  Numba: {'Available' if capabilities['numba_available'] else 'Not available'}")
        if capabilities['numba_available']:
            click.echo(f"    Version: {capabilities.get('numba_version', 'Unknown')}")

    except Exception as e:
        _fail(ctx, str(e))


if __name__ == '__main__':
    main()
