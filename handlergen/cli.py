"""CLI entrypoint for handlergen."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError
from .logging import configure_logging
from .orchestrator import GenerationError, Orchestrator


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="handlergen",
        description=(
            "Generate VContainer registrations for every query and command handler "
            "found in a folder of C# sources."
        ),
    )
    parser.add_argument(
        "input_folder",
        nargs="?",
        help="Path to the input folder containing .cs files.",
    )
    parser.add_argument(
        "output_folder",
        nargs="?",
        help="Path to the output folder for generated registrations.",
    )
    parser.add_argument(
        "namespace",
        nargs="?",
        help="Namespace for the generated code.",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=False,
        help="Increase log verbosity for troubleshooting.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to a .handlergen.yml file (defaults to the one in the input folder).",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Print the generated module instead of writing it.",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write logs to this file.",
    )
    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for handlergen."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if not (args.input_folder and args.output_folder and args.namespace):
        parser.print_help()
        return

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    orchestrator = Orchestrator()
    try:
        result = orchestrator.run(
            args.input_folder,
            args.output_folder,
            args.namespace,
            config_path=args.config,
            dry_run=bool(args.dry_run),
        )
    except (FileNotFoundError, NotADirectoryError) as exc:
        parser.exit(1, f"{exc}\n")
    except ConfigError as exc:
        parser.exit(1, f"Invalid configuration: {exc}\n")
    except GenerationError as exc:
        parser.exit(1, f"handlergen failed: {exc}\n")
    except OSError as exc:
        parser.exit(1, f"handlergen failed: {exc}\nRun with --verbose for more details.\n")

    if result.written:
        print(f"Generated registrations saved to {_relativize(result.path)}")
    else:
        sys.stdout.write(result.module.text)


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
