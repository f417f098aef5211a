"""Command line entry point for the AI Code Tutor engine.

This module provides the ``ai-code-tutor`` command. It handles:
- Configuration loading
- Logging setup with secret sanitization
- Engine construction
- The run, scan, translate, mistakes and history subcommands
"""

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

from ai_code_tutor._version import __version__
from ai_code_tutor.config.loader import CONFIG_ENV_VAR, load_config
from ai_code_tutor.config.schema import TutorConfig
from ai_code_tutor.utils.async_helpers import TutorError
from ai_code_tutor.utils.logging import LogLevel, configure_from_config, configure_logging
from ai_code_tutor.utils.metrics import get_metrics

log = structlog.get_logger()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Returns:
        Parsed argument namespace
    """
    parser = argparse.ArgumentParser(
        prog="ai-code-tutor",
        description="AI Code Tutor - compile, diagnose and fix learner Java/C programs",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help=f"Path to configuration file (default: ${CONFIG_ENV_VAR} or config/config.yaml)",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--log-format",
        choices=["json", "console"],
        default=None,
        help="Log output format (default: from configuration)",
    )
    parser.add_argument(
        "--no-persist",
        action="store_true",
        help="Keep mistake counts and history in memory only",
    )
    parser.add_argument(
        "--metrics",
        action="store_true",
        help="Print engine metrics in Prometheus text format to stderr on exit",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    run = commands.add_parser("run", help="Compile and run a source file")
    run.add_argument("file", type=Path)
    run.add_argument(
        "-i",
        "--stdin",
        action="append",
        default=[],
        metavar="VALUE",
        help="Input value fed to the program, repeatable",
    )
    run.add_argument("--explain", action="store_true", help="Explain the result and propose a fix")
    run.add_argument("--fix", action="store_true", help="Apply the proposed fix to the file")

    scan = commands.add_parser("scan", help="Statically scan a source file")
    scan.add_argument("file", type=Path)

    translate = commands.add_parser("translate", help="Translate a source file to Java")
    translate.add_argument("file", type=Path)
    translate.add_argument("--from", dest="language", required=True, help="Source language")

    mistakes = commands.add_parser("mistakes", help="Show or reset the mistake histogram")
    group = mistakes.add_mutually_exclusive_group()
    group.add_argument("--reset", metavar="SYMBOL", help="Forget one symbol")
    group.add_argument("--reset-all", action="store_true", help="Forget everything")

    history = commands.add_parser("history", help="Show recent runs")
    history.add_argument("--clear", action="store_true", help="Delete the history")

    return parser.parse_args(argv)


async def run_command(args: argparse.Namespace, config: TutorConfig) -> int:
    """Execute one subcommand.

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    from ai_code_tutor.adapters.storage.memory import MemoryStore
    from ai_code_tutor.core.engine import create_engine

    engine = create_engine(config, store=MemoryStore() if args.no_persist else None)

    text = ""
    if args.command in ("run", "scan", "translate"):
        try:
            text = args.file.read_text()
        except OSError as e:
            log.error("source_unreadable", path=str(args.file), error=str(e))
            return 1

    if args.command == "run":
        result = await engine.run_source(text, args.stdin)
        print(result.output_text)
        if result.is_foreign_language:
            print(f"\nDetected {result.detected_foreign_language}. Try: translate --from ...")
            return result.exit_code or 1
        for diagnostic in sorted(result.diagnostics, key=lambda d: d.line):
            print(
                f"{args.file.name}:{diagnostic.line}: {diagnostic.severity.value}: "
                f"[{diagnostic.category.value}] {diagnostic.message}"
            )
        if args.explain or args.fix:
            explanation = await engine.explain(text, result)
            print(f"\n{explanation.summary}\n\n{explanation.detailed_explanation}")
            print(f"\nFix: {explanation.fix_summary}")
            if args.fix and explanation.has_fix:
                patched = engine.patch_source(text, explanation.patch_spec, result)
                args.file.write_text(patched.document.text)
                print(f"Patched lines: {', '.join(map(str, patched.changed_lines))}")
        return result.exit_code

    if args.command == "scan":
        diagnostics = engine.scan_source(text)
        for diagnostic in diagnostics:
            print(
                f"{args.file.name}:{diagnostic.line}: {diagnostic.severity.value}: "
                f"[{diagnostic.category.value}] {diagnostic.message}"
            )
        return 1 if diagnostics else 0

    if args.command == "translate":
        print(await engine.translate_source(text, args.language))
        return 0

    if args.command == "mistakes":
        if args.reset_all:
            engine.mistakes.reset_all()
        elif args.reset:
            engine.mistakes.reset(args.reset)
        for record in engine.mistakes.records():
            seen = f"{record.last_seen:%Y-%m-%d %H:%M}"
            print(f"{record.symbol!r:>6}  {record.count:>4}  last seen {seen}")
        return 0

    if args.command == "history":
        if args.clear:
            engine.history.clear()
        for entry in engine.history.records():
            first_line = entry.source_text.strip().split("\n", 1)[0][:60]
            print(f"{entry.timestamp:%Y-%m-%d %H:%M:%S}  {entry.status:<5}  {first_line}")
        return 0

    return 2


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)
    # Until the configuration is read, only warnings and errors are shown
    configure_logging(
        level=LogLevel.DEBUG if args.debug else LogLevel.WARNING,
        log_format=args.log_format or "console",
    )

    try:
        config = load_config(args.config)
    except FileNotFoundError as e:
        log.error("configuration_file_not_found", error=str(e))
        return 1
    except ValueError as e:
        # pydantic ValidationError is a ValueError
        log.error("configuration_invalid", error=str(e))
        return 1

    configure_from_config(config.logging, debug=args.debug, log_format=args.log_format)

    try:
        code = asyncio.run(run_command(args, config))
    except KeyboardInterrupt:
        log.info("interrupted")
        code = 130
    except TutorError as e:
        log.error("command_failed", command=args.command, error=str(e))
        code = 1

    if args.metrics:
        print(get_metrics().to_prometheus_format(), file=sys.stderr)
    return code


if __name__ == "__main__":
    sys.exit(main())
