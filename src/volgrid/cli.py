"""CLI entry point for volgrid."""

from __future__ import annotations

import logging
import time
from pathlib import Path

import numpy as np
import typer
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from volgrid import __version__
from volgrid._console import configure_logging, console, err_console
from volgrid.core.errors import ResampleError, TransformNotInvertibleError
from volgrid.core.grid import VolumetricGrid
from volgrid.core.types import ResampleConfig

app = typer.Typer(
    name="volgrid",
    help="Resample calibrated 3-D grids through geometric transforms.",
    add_completion=False,
)

logger = logging.getLogger("volgrid")


def version_callback(value: bool):
    if value:
        console.print(f"volgrid {__version__}")
        raise typer.Exit()


def list_transforms_callback(value: bool):
    if value:
        from volgrid.transforms import list_transforms

        console.print("\n[bold]Available transforms:[/bold]\n")
        for t in list_transforms():
            console.print(f"  [bold]{t['name']:<12}[/bold] {t['description']}")
        console.print()
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    do_list_transforms: bool = typer.Option(
        False,
        "--list-transforms",
        callback=list_transforms_callback,
        is_eager=True,
        help="List available transforms and exit.",
    ),
):
    """Resample calibrated 3-D grids through geometric transforms."""


def _parse_triple(text: str | None, name: str) -> tuple[float, float, float] | None:
    if text is None:
        return None
    parts = [p.strip() for p in text.split(",")]
    if len(parts) != 3:
        raise ValueError(f"--{name} needs three comma-separated values, got '{text}'")
    try:
        return tuple(float(p) for p in parts)
    except ValueError:
        raise ValueError(f"--{name} values must be numbers, got '{text}'")


def _parse_params(params: list[str] | None) -> dict:
    """Parse ``key=value`` transform parameters.

    Values with commas become float tuples, numbers become floats, anything
    else stays a string.
    """
    parsed = {}
    for item in params or []:
        if "=" not in item:
            raise ValueError(f"Invalid parameter '{item}'. Use key=value.")
        key, value = (s.strip() for s in item.split("=", 1))
        if "," in value:
            parsed[key] = _parse_triple(value, key)
            continue
        try:
            parsed[key] = float(value)
        except ValueError:
            parsed[key] = value
    return parsed


def build_transform(name: str, params: dict):
    """Build a registered transform, reporting bad parameter names as ValueError."""
    from volgrid.transforms import get_transform

    try:
        return get_transform(name, **params)
    except TypeError as e:
        raise ValueError(f"Invalid parameters for '{name}': {e}") from e


def load_grid(
    path: Path,
    spacing: tuple[float, float, float] | None = None,
    origin: tuple[float, float, float] | None = None,
) -> VolumetricGrid:
    """Load a ``[Z, Y, X]`` array from ``.npy`` or ``.npz`` into a grid.

    ``.npz`` archives hold ``volume`` and optionally ``spacing`` and
    ``origin``; explicit arguments take precedence over stored values.
    """
    if not path.exists():
        raise FileNotFoundError(f"Input not found: {path}")
    if path.suffix == ".npz":
        with np.load(path) as data:
            if "volume" not in data:
                raise ValueError(f"{path.name} has no 'volume' array")
            volume = data["volume"]
            if spacing is None and "spacing" in data:
                spacing = tuple(float(s) for s in data["spacing"])
            if origin is None and "origin" in data:
                origin = tuple(float(o) for o in data["origin"])
    elif path.suffix == ".npy":
        volume = np.load(path)
    else:
        raise ValueError(f"Unsupported input format: {path.suffix}. Use .npy or .npz.")
    return VolumetricGrid.from_array(volume, spacing=spacing, origin=origin)


def save_grid(grid: VolumetricGrid, path: Path) -> None:
    """Write a grid as an ``.npz`` archive readable by :func:`load_grid`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savez_compressed(
        path,
        volume=grid.as_array(),
        spacing=np.asarray(grid.spacing),
        origin=np.asarray(grid.origin),
    )


def _geometry_table(title: str, rows: list[tuple[str, VolumetricGrid]]) -> Table:
    table = Table(title=title)
    table.add_column("Grid", style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Spacing", style="cyan")
    table.add_column("Origin", style="green")
    table.add_column("Range", style="yellow")
    for label, grid in rows:
        vmin, vmax = grid.value_range()
        table.add_row(
            label,
            "x".join(str(n) for n in grid.size),
            ", ".join(f"{s:g}" for s in grid.spacing),
            ", ".join(f"{o:g}" for o in grid.origin),
            f"{vmin:g} : {vmax:g}",
        )
    return table


@app.command()
def info(
    input_path: Path = typer.Argument(..., help="Grid file (.npy or .npz).", exists=True),
):
    """Show size, calibration and value range of a grid file."""
    try:
        grid = load_grid(input_path)
    except ValueError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    console.print(_geometry_table(str(input_path), [("input", grid)]))


@app.command()
def resample(
    input_path: Path = typer.Argument(..., help="Grid file (.npy or .npz).", exists=True),
    output: Path = typer.Option(
        None,
        "-o",
        "--output",
        help="Output .npz path (default: <input_name>_resampled.npz).",
    ),
    transform: str = typer.Option(
        "identity",
        "-t",
        "--transform",
        help="Transform name (see --list-transforms).",
    ),
    param: list[str] = typer.Option(
        None,
        "-p",
        "--param",
        help="Transform parameter as key=value, repeatable (e.g. -p axis=z -p degrees=90).",
    ),
    about_center: bool = typer.Option(
        False,
        "--about-center",
        help="Rotate/scale about the physical center of the grid.",
    ),
    spacing: str = typer.Option(
        None,
        "--spacing",
        help="Input spacing as sx,sy,sz (overrides stored spacing).",
    ),
    origin: str = typer.Option(
        None,
        "--origin",
        help="Input origin as ox,oy,oz (overrides stored origin).",
    ),
    threads: int = typer.Option(
        None,
        "--threads",
        help="Worker threads (default: VOLGRID_NUM_THREADS or CPU count).",
        min=1,
    ),
    fill: float = typer.Option(
        0.0,
        "--fill",
        help="Value for samples that fall outside the input volume.",
    ),
    verbose: bool = typer.Option(
        False,
        "-v",
        "--verbose",
        help="Show detailed processing information.",
    ),
):
    """Resample a grid through a transform and write the result."""
    configure_logging(verbose)

    if output is None:
        output = input_path.parent / f"{input_path.stem}_resampled.npz"

    try:
        from volgrid.resample import apply_transform
        grid = load_grid(
            input_path,
            spacing=_parse_triple(spacing, "spacing"),
            origin=_parse_triple(origin, "origin"),
        )
        params = _parse_params(param)
        if about_center:
            params["center"] = grid.index_to_physical(
                *((n - 1) / 2 for n in grid.size)
            )
        xform = build_transform(transform, params)
        before = grid.clone()

        start = time.time()
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task(f"Applying '{transform}'...", total=None)
            apply_transform(grid, xform, ResampleConfig(num_threads=threads, fill_value=fill))
            progress.update(task, description="Writing output...")
            save_grid(grid, output)
        elapsed = time.time() - start
    except TransformNotInvertibleError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=2)
    except ResampleError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=3)
    except ValueError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=1)
    except FileNotFoundError as e:
        err_console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(code=4)

    console.print(_geometry_table(transform, [("input", before), ("output", grid)]))
    console.print(f"[green]Wrote {output}[/green] ({elapsed:.2f}s)")
