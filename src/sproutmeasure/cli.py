"""
Command-line interface for Sprout Measure.

Provides commands for batch measurement, single-mask measurement and
writing a default configuration file.
"""

import argparse
import sys

from sproutmeasure.config import load_config, save_default_config
from sproutmeasure.errors import SproutMeasureError
from sproutmeasure.tracer import configure_tracer, get_tracer


def _add_common_arguments(parser):
    parser.add_argument(
        "--out", "-o",
        required=True,
        help="Output directory",
    )
    parser.add_argument(
        "--config", "-c",
        default=None,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Save per-seed debug overlays",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Enable runtime tracing",
    )
    parser.add_argument(
        "--trace-level",
        default="INFO",
        choices=["ERROR", "WARN", "INFO", "DEBUG"],
        help="Trace log level",
    )
    parser.add_argument(
        "--trace-file",
        default=None,
        help="Path to write trace logs",
    )
    parser.add_argument(
        "--trace-json",
        action="store_true",
        help="Enable JSON trace output",
    )


def build_parser():
    parser = argparse.ArgumentParser(
        prog="sproutmeasure",
        description="Sprout Measure: quantify sprouts of bead-sprouting assays from segmentation masks",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    run_parser = subparsers.add_parser("run", help="Measure every image pair of two directories")
    run_parser.add_argument(
        "--images", "-i",
        required=True,
        help="Directory containing the raw images",
    )
    run_parser.add_argument(
        "--probabilities", "-p",
        required=True,
        help="Directory containing the probability images",
    )
    run_parser.add_argument(
        "--workers", "-w",
        type=int,
        default=None,
        help="Worker processes for seeds within an image",
    )
    _add_common_arguments(run_parser)

    measure_parser = subparsers.add_parser("measure", help="Measure a single segmentation file")
    measure_parser.add_argument(
        "--mask", "-m",
        required=True,
        help="Binary or probability segmentation image",
    )
    measure_parser.add_argument(
        "--raw", "-r",
        default=None,
        help="Raw image used for debug overlays",
    )
    _add_common_arguments(measure_parser)

    init_parser = subparsers.add_parser("init-config", help="Create default config file")
    init_parser.add_argument(
        "--out", "-o",
        default="sproutmeasure_config.yaml",
        help="Output path for config file",
    )

    return parser


def main(argv=None):
    """Main entry point for the CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.command == "run":
        return handle_run(args)
    elif args.command == "measure":
        return handle_measure(args)
    elif args.command == "init-config":
        return handle_init_config(args)

    return 0


def _configure(args):
    configure_tracer(
        enabled=args.trace,
        level=args.trace_level,
        file_path=args.trace_file,
        json_output=args.trace_json,
    )
    config = load_config(args.config)
    config.debug.enabled = args.debug or config.debug.enabled
    return config


def _print_summary(report, out_dir, config):
    print("\nMeasurement completed.")
    print(f"  Images processed: {report.images_processed} of {report.images_total}")
    print(f"  Seeds measured: {len(report.rows)}")
    print(f"  Issues: {len(report.issues)}")
    if report.unassigned_endpoint_count:
        print(f"  Unassigned endpoints: {report.unassigned_endpoint_count}")
    if report.interrupted:
        print("  [!] Interrupted: results cover the completed images only")
    print(f"\nOutputs saved to: {out_dir}/")
    print(f"  - {config.output.results_name}")
    print(f"  - {config.output.report_name}")


def handle_run(args):
    """Handle the run command."""
    tracer = get_tracer()

    try:
        config = _configure(args)
        if args.workers is not None:
            config.batch.workers = args.workers

        from sproutmeasure.pipeline import run_batch

        with tracer.span("cli_run", module="cli"):
            report = run_batch(args.images, args.probabilities, args.out, config=config)

        _print_summary(report, args.out, config)
        return 130 if report.interrupted else 0

    except (SproutMeasureError, OSError) as e:
        tracer.event(f"Batch failed: {str(e)}", level="ERROR")
        print(f"\nError: {str(e)}", file=sys.stderr)
        return 1


def handle_measure(args):
    """Handle the measure command."""
    tracer = get_tracer()

    try:
        config = _configure(args)

        from sproutmeasure.pipeline import run_mask_file

        with tracer.span("cli_measure", module="cli"):
            report = run_mask_file(args.mask, args.out, config=config, raw_path=args.raw)

        _print_summary(report, args.out, config)
        return 0 if report.rows or not report.issues else 1

    except (SproutMeasureError, OSError, ValueError) as e:
        tracer.event(f"Measurement failed: {str(e)}", level="ERROR")
        print(f"\nError: {str(e)}", file=sys.stderr)
        return 1


def handle_init_config(args):
    """Handle the init-config command."""
    save_default_config(args.out)
    print(f"Default configuration saved to: {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
