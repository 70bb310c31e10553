"""CLI entrypoints for depaudit commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError, load_config
from .engine import DepsAnalysis
from .logging import configure_logging
from .report import write_document, write_summary


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    kwargs["default"] = argparse.SUPPRESS if suppress_default else False
    parser.add_argument("-v", "--verbose", **kwargs)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="depaudit",
        description="Audit how JavaScript/TypeScript projects use their dependencies.",
    )
    _add_verbose_option(parser)
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze",
        help="Analyse the configured scan sources and write the result document.",
    )
    _add_verbose_option(analyze_parser, suppress_default=True)
    analyze_parser.add_argument(
        "config",
        nargs="?",
        default=".",
        help="Path to .depaudit.yml or the directory holding it (defaults to current directory).",
    )
    analyze_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Where to write the JSON document (overrides the configured output).",
    )
    analyze_parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Also render a Markdown summary to this path.",
    )
    analyze_parser.add_argument(
        "--incremental",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Reuse cached per-file results for unchanged files.",
    )
    analyze_parser.add_argument(
        "--cache-dir",
        type=Path,
        default=None,
        help="Directory for the incremental cache (relative to the config root).",
    )

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service.")
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for depaudit commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    if args.command == "analyze":
        try:
            config = load_config(Path(args.config))
        except ConfigError as exc:
            parser.exit(1, f"{exc}\n")
        if args.incremental is not None:
            config.incremental = args.incremental
        if args.cache_dir is not None:
            config.cache_dir = args.cache_dir
        if not config.scan_sources:
            parser.exit(1, f"No scan_source configured under {config.root}\n")

        try:
            result = DepsAnalysis(config).run()
        except (RuntimeError, ValueError) as exc:
            parser.exit(1, f"depaudit analyze failed: {exc}\nRun with --verbose for more details.\n")

        output = args.output or config.resolve(config.output)
        write_document(result, output)
        print(f"Analysis written to {_relativize(output)}")
        summary = args.summary or (config.resolve(config.summary) if config.summary else None)
        if summary is not None:
            write_summary(result, summary)
            print(f"Summary written to {_relativize(summary)}")
        print(
            f"{result.ghost_count} ghost dependencies, "
            f"{len(result.buckets.diagnostics)} diagnostics, "
            f"{result.blacklist_hits} blacklisted APIs in use"
        )
        if result.skipped_sources:
            parser.exit(2, f"Skipped scan sources: {', '.join(result.skipped_sources)}\n")
    elif args.command == "serve":
        from .service.app import run_service

        run_service(host=args.host, port=args.port)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
