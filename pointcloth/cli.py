"""Command-line interface for pointcloth.

Commands run trials headless on a simulated refresh clock, open a live
window, sweep parameters in batch, validate configurations and list the
registered components.

Example:
    $ pointcloth run trial.yml cloth.csv --output results/
    $ pointcloth display trial.yml cloth.csv
    $ pointcloth batch trial.yml cloth.csv --sweep isi.isi_ms=0,50,100 --repetitions 3
    $ pointcloth validate trial.yml
    $ pointcloth list-components
"""

import argparse
import sys
from typing import Any, Dict, List, Optional

import yaml

from pointcloth.config.yaml_utils import load_config_file
from pointcloth.core.batch_executor import BatchExecutor
from pointcloth.core.engine import TrialEngine, run_headless, sink_from_config
from pointcloth.core.trajectory import load_cloth
from pointcloth.errors import PointClothError
from pointcloth.registry import SINK_REGISTRY, SIZE_MODE_REGISTRY, SURFACE_REGISTRY


def parse_sweep(items: Optional[List[str]]) -> Dict[str, List[Any]]:
    """Parse ``key=v1,v2`` sweep arguments.

    Values are read as YAML scalars, so ``50`` is an int, ``1.5`` a float
    and ``true`` a bool.

    Raises:
        ValueError: If an item has no ``=``.
    """
    sweep: Dict[str, List[Any]] = {}
    for item in items or []:
        if "=" not in item:
            raise ValueError(f"Sweep must look like key=v1,v2 (got '{item}')")
        key, raw = item.split("=", 1)
        sweep[key.strip()] = [yaml.safe_load(v) for v in raw.split(",") if v.strip()]
    return sweep


def _print_summary(summary: Dict[str, Any]) -> None:
    print(f"  Shown ticks: {summary['shown_ticks']}")
    print(f"  Blank ticks: {summary['blank_ticks']}")
    print(f"  Distinct frames: {summary['distinct_frames']}")
    print(f"  Duration: {summary['measured_duration_s']:.3f} s")
    print(f"  Scale range: [{summary['min_scale']:.3f}, {summary['max_scale']:.3f}]")
    if summary["degeneracies"]:
        print(f"  Degeneracies: {', '.join(summary['degeneracies'])}")


def cmd_run(args: argparse.Namespace) -> int:
    """Run one trial headless.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    try:
        config = load_config_file(args.config)
        if args.output:
            config.output.directory = args.output
        if args.format:
            config.output.format = args.format
        if args.seed is not None:
            config.seed = args.seed
        config.validate()

        surface = None
        if args.frames_dir:
            surface = SURFACE_REGISTRY.create(
                "matplotlib",
                width=config.display.screen_width,
                height=config.display.screen_height,
                frames_dir=args.frames_dir,
                background=tuple(config.display.background),
            )

        print(f"Loading trajectories from {args.data}...")
        engine = TrialEngine.from_config(
            config, args.data, surface=surface, sink=sink_from_config(config)
        )
        print(f"Running trial ({engine.params.total_frames} frames, "
              f"{engine.params.duration_s:.3f} s)...")
        result = run_headless(engine, refresh_hz=args.refresh_hz)
        if surface is not None:
            surface.close()

        print("\nTrial completed successfully!")
        _print_summary(result.summary)
        if result.output_path:
            print(f"Telemetry saved to {result.output_path}")
        return 0

    except (PointClothError, ValueError, OSError, ImportError) as e:
        print(f"Error running trial: {e}", file=sys.stderr)
        return 1


def cmd_display(args: argparse.Namespace) -> int:
    """Run one trial in a live window.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    try:
        config = load_config_file(args.config)
        if args.seed is not None:
            config.seed = args.seed
        cloth = load_cloth(args.data)
    except (PointClothError, ValueError, OSError) as e:
        print(f"Error loading trial: {e}", file=sys.stderr)
        return 1

    from PyQt5 import QtWidgets
    from pointcloth.gui.display_window import DisplayWindow

    app = QtWidgets.QApplication.instance() or QtWidgets.QApplication(sys.argv)

    def engine_factory(surface, on_complete):
        return TrialEngine(
            config, cloth, surface=surface, sink=sink_from_config(config), on_complete=on_complete
        )

    try:
        window = DisplayWindow(
            engine_factory,
            width=config.display.screen_width,
            height=config.display.screen_height,
            background=tuple(config.display.background),
        )
    except (PointClothError, ValueError) as e:
        print(f"Error setting up trial: {e}", file=sys.stderr)
        return 1

    window.trial_finished.connect(lambda _result: window.close())
    window.show()
    window.start()
    app.exec_()

    if window.result is not None:
        print("\nTrial finished" + (" (cancelled)" if window.result.cancelled else ""))
        _print_summary(window.result.summary)
    return 0


def cmd_batch(args: argparse.Namespace) -> int:
    """Run a parameter sweep.

    Returns:
        Exit code (0 for success, 1 for error).
    """
    try:
        config = load_config_file(args.config)
        sweep = parse_sweep(args.sweep)

        executor = BatchExecutor(
            config,
            args.data,
            sweep=sweep,
            repetitions=args.repetitions,
            base_seed=args.seed,
            output_dir=args.output,
            refresh_hz=args.refresh_hz,
        )

        if args.dry_run:
            print("\nBatch Execution Plan:")
            print("=" * 60)
            print(f"Batch ID: {executor.batch_id}")
            print(f"Total trials: {len(executor.trial_configs)}")
            print(f"Output directory: {executor.output_dir}")
            print("\nFirst 5 trials:")
            for i, trial in enumerate(executor.trial_configs[:5]):
                print(f"  {i + 1}. {trial['trial_id']} (seed {trial['seed']})")
            if len(executor.trial_configs) > 5:
                print(f"  ... and {len(executor.trial_configs) - 5} more")
            print("\n✓ Batch configuration is valid (dry run complete)")
            return 0

        results = executor.execute(resume_from=args.resume)

        print("\n" + "=" * 60)
        print("BATCH EXECUTION SUMMARY")
        print("=" * 60)
        print(f"Batch ID: {results['batch_id']}")
        print(f"Trials executed: {results['num_trials']}")
        print(f"Summary file: {results['summary_path']}")
        if results["failed_trials"]:
            print(f"\n⚠ Warning: {len(results['failed_trials'])} trials failed")
            print(f"Failed indices: {results['failed_trials'][:10]}")
            return 1
        print("\n✓ All trials completed successfully")
        return 0

    except (PointClothError, ValueError, OSError) as e:
        print(f"Error running batch: {e}", file=sys.stderr)
        return 1


def cmd_validate(args: argparse.Namespace) -> int:
    """Validate a configuration file without running.

    Returns:
        Exit code (0 for valid, 1 for invalid).
    """
    try:
        config = load_config_file(args.config)
    except FileNotFoundError as e:
        print(f"❌ {e}", file=sys.stderr)
        return 1
    except (PointClothError, ValueError) as e:
        print(f"❌ Configuration validation failed: {args.config}", file=sys.stderr)
        print(str(e), file=sys.stderr)
        return 1

    print(f"✓ Configuration is valid: {args.config}")
    print(f"  Grid: {config.sampling.grid_x} x {config.sampling.grid_y}")
    size_mode = config.size.mode if config.size.enabled else "none"
    print(f"  Size variation: {size_mode}")
    print(f"  ISI: {config.isi.isi_ms} ms ({config.isi.mode})")
    print(f"  Output: {config.output.format} -> {config.output.directory}")
    return 0


def cmd_list_components(args: argparse.Namespace) -> int:
    """List registered size modes, surfaces and sinks."""
    print("Available pointcloth components:")
    print("=" * 50)
    print("\nSize variation modes:")
    for name in SIZE_MODE_REGISTRY.list_registered():
        print(f"  - {name}")
    print("\nDrawing surfaces:")
    for name in SURFACE_REGISTRY.list_registered():
        print(f"  - {name}")
    print("\nExport sinks:")
    for name in SINK_REGISTRY.list_registered():
        print(f"  - {name}")
    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="pointcloth",
        description="pointcloth: point-light cloth stimulus engine",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Run a trial headless on a simulated clock")
    run_parser.add_argument("config", help="Path to YAML configuration file")
    run_parser.add_argument("data", help="Trajectory file (.csv or .json)")
    run_parser.add_argument("--output", help="Override output directory from config")
    run_parser.add_argument("--format", choices=["csv", "hdf5", "memory"], help="Override output format")
    run_parser.add_argument("--refresh-hz", type=float, help="Simulated display refresh rate")
    run_parser.add_argument("--seed", type=int, help="Override random seed")
    run_parser.add_argument("--frames-dir", help="Write every presented frame as PNG to this directory")

    display_parser = subparsers.add_parser("display", help="Run a trial in a live window")
    display_parser.add_argument("config", help="Path to YAML configuration file")
    display_parser.add_argument("data", help="Trajectory file (.csv or .json)")
    display_parser.add_argument("--seed", type=int, help="Override random seed")

    batch_parser = subparsers.add_parser("batch", help="Run a parameter sweep")
    batch_parser.add_argument("config", help="Path to YAML configuration file")
    batch_parser.add_argument("data", help="Trajectory file (.csv or .json)")
    batch_parser.add_argument(
        "--sweep",
        action="append",
        metavar="KEY=V1,V2",
        help="Dotted config key and values, e.g. isi.isi_ms=0,50 (repeatable)",
    )
    batch_parser.add_argument("--repetitions", type=int, default=1, help="Runs per combination (default: 1)")
    batch_parser.add_argument("--seed", type=int, help="Base seed of the sweep")
    batch_parser.add_argument("--output", help="Override output directory from config")
    batch_parser.add_argument("--refresh-hz", type=float, help="Simulated display refresh rate")
    batch_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate configuration and show execution plan without running",
    )
    batch_parser.add_argument("--resume", help="Resume from checkpoint file (path to checkpoint.json)")

    validate_parser = subparsers.add_parser("validate", help="Validate YAML config without running")
    validate_parser.add_argument("config", help="Path to YAML configuration file")

    subparsers.add_parser("list-components", help="List registered size modes, surfaces and sinks")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "run": cmd_run,
        "display": cmd_display,
        "batch": cmd_batch,
        "validate": cmd_validate,
        "list-components": cmd_list_components,
    }
    handler = commands.get(args.command)
    if handler:
        return handler(args)
    print(f"Unknown command: {args.command}", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
