#!/usr/bin/env python3
"""
Order Matching Engine - Command Line Entry Point

Usage:
    ome serve                         # Start the API with defaults/env
    ome serve --config ome.yaml       # Use a configuration file
    ome serve --dry-run               # Validate configuration and exit
    ome doctor                        # Check SSL_CERT_FILE and toolchain
    ome doctor --project-dir ../ome-rs --json
"""

import argparse
import json
import sys
from pathlib import Path

import uvicorn

from . import __version__
from .common.config import DEFAULT_CONFIG_PATH, Settings, load_settings
from .common.exceptions import ConfigError
from .common.logging_setup import configure_root
from .diagnostics import CheckStatus, exit_code, run_checks

STATUS_LABELS = {
    CheckStatus.OK: "[OK]",
    CheckStatus.WARNING: "[WARN]",
    CheckStatus.ERROR: "[FAIL]",
}


def print_startup_banner(settings: Settings) -> None:
    print()
    print("=" * 60)
    print(f"  ORDER MATCHING ENGINE v{__version__}")
    print("=" * 60)
    print(f"  Environment: {settings.environment}")
    print(f"  Listening:   http://{settings.host}:{settings.port}")
    print(f"  Executioner: {settings.executioner_url or 'not configured'}")
    if settings.executioner_url:
        print(f"  Order check: {'on' if settings.check_orders else 'off'}")
    print("=" * 60)
    print()


def cmd_serve(args: argparse.Namespace) -> int:
    config_path = args.config
    if config_path is None and Path(DEFAULT_CONFIG_PATH).is_file():
        config_path = DEFAULT_CONFIG_PATH

    try:
        settings = load_settings(
            config_path,
            host=args.host,
            port=args.port,
            log_level="DEBUG" if args.verbose else None,
            log_format="text" if args.verbose else None,
        )
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    configure_root(settings.log_level, settings.json_logs)
    print_startup_banner(settings)

    if args.dry_run:
        print("Dry run mode - configuration valid")
        return 0

    # Imported late so logging is configured before module loggers are built
    from .api.main import create_app

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


def cmd_doctor(args: argparse.Namespace) -> int:
    configure_root("DEBUG" if args.verbose else "ERROR", json_format=False)
    results = run_checks(args.project_dir)

    if args.json:
        print(json.dumps([r.to_dict() for r in results], indent=2))
        return exit_code(results)

    for result in results:
        print(f"{STATUS_LABELS[result.status]:7} {result.name}: {result.message}")
        if result.hint:
            print(f"        hint: {result.hint}")

    code = exit_code(results)
    print()
    print("[ALL CHECKS PASSED]" if code == 0 else "[CHECKS FAILED]")
    return code


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ome",
        description="Order Matching Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    ome serve --config ome.yaml
    ome serve --port 9000 -v
    ome doctor --project-dir .
        """,
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"ome v{__version__}",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--config", "-c", type=str, default=None, help=f"Path to YAML configuration file (default: ./{DEFAULT_CONFIG_PATH} if present)")
    serve.add_argument("--host", type=str, default=None, help="Bind address (overrides config)")
    serve.add_argument("--port", "-p", type=int, default=None, help="Bind port (overrides config)")
    serve.add_argument("--dry-run", action="store_true", help="Validate configuration and exit without starting")
    serve.add_argument("--verbose", "-v", action="store_true", help="Enable verbose (debug) text logging")
    serve.set_defaults(func=cmd_serve)

    doctor = subparsers.add_parser("doctor", help="Diagnose the build/runtime environment")
    doctor.add_argument("--project-dir", "-d", type=str, default=".", help="Crate directory to inspect (default: .)")
    doctor.add_argument("--json", action="store_true", help="Print results as JSON")
    doctor.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    doctor.set_defaults(func=cmd_doctor)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
