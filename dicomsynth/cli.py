import argparse
import sys
from typing import List, Optional

from .config_manager import ConfigLoader, MANIFEST_FORMATS
from .errors import DicomSynthError
from .logger import configure_logger, get_logger
from .population import PopulationDriver


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dicomsynth",
        description="Generate a reproducible synthetic DICOM population from a YAML/JSON configuration.",
    )
    parser.add_argument("--config", required=True, help="Path to the configuration file (YAML or JSON)")
    parser.add_argument("--output-root", help="Override the configured output root")
    parser.add_argument("--seed", type=int, help="Override the configured random seed")
    parser.add_argument("--log-file", help="Log file path (default: $DICOMSYNTH_LOG_FILE or dicomsynth.log)")
    parser.add_argument("--manifest", choices=MANIFEST_FORMATS, help="Write a manifest of all generated files")
    parser.add_argument("--report", help="Write a Markdown run report to this path")
    parser.add_argument("--no-progress", action="store_true", help="Disable the progress bar")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    try:
        args = parser.parse_args(argv)
    except SystemExit as e:
        # argparse exits with 2 on usage errors and 0 on --help
        return e.code if isinstance(e.code, int) else 2

    configure_logger(args.log_file)
    logger = get_logger()

    try:
        config = ConfigLoader.load(args.config)
        if args.output_root:
            config.output_root = args.output_root
        if args.seed is not None:
            config.seed = args.seed
        if args.manifest:
            config.manifest_format = args.manifest
        if args.report:
            config.report_path = args.report

        result = PopulationDriver(config, show_progress=not args.no_progress).run()
    except (DicomSynthError, OSError, ValueError) as e:
        logger.error(f"Generation failed: {e}")
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    print()
    for line in result.metrics.summary_lines():
        print(line)
    print()
    print(f"Done in {result.metrics.elapsed_seconds:.3f}s. Output at: {result.output_root}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
