import argparse
import os
import tempfile
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence

LOG_LEVELS = ("debug", "info", "warning", "error")


def default_test_database_url(tmp_dir: Optional[str] = None) -> str:
    """SQLite file used by ``--test`` runs when no database URL is given."""
    path = Path(tmp_dir or tempfile.gettempdir()) / "sidechain_console" / "console-test.db"
    path.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{path.as_posix()}"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m sidechain_console",
        description="Serve the sidechain setup console.",
    )
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", default=8080, type=int)
    parser.add_argument("--log-level", choices=LOG_LEVELS, default=None)
    parser.add_argument(
        "--test",
        action="store_true",
        help="Skip backend calls and accept the test verification code.",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy database URL (overrides CONSOLE_DATABASE_URL).",
    )
    parser.add_argument(
        "--api-url",
        default=None,
        help="Sidechain backend URL (overrides CONSOLE_API_URL).",
    )
    parser.add_argument(
        "--test-verification-code",
        default=None,
        help="Login code accepted in test mode (overrides CONSOLE_TEST_VERIFICATION_CODE).",
    )
    return parser


def console_env(args: argparse.Namespace, environ: Mapping[str, str]) -> Dict[str, str]:
    """
    Environment overrides for the parsed arguments.

    Explicit flags always win. ``--test`` only fills in what the environment
    leaves unset, so a configured database is never swapped for SQLite.
    """
    env: Dict[str, str] = {}
    if args.database_url:
        env["CONSOLE_DATABASE_URL"] = args.database_url
    if args.api_url:
        env["CONSOLE_API_URL"] = args.api_url
    if args.log_level:
        env["CONSOLE_LOG_LEVEL"] = args.log_level.upper()

    if args.test:
        env["CONSOLE_TEST_MODE"] = "1"
        if "CONSOLE_DATABASE_URL" not in env and not environ.get("CONSOLE_DATABASE_URL"):
            env["CONSOLE_DATABASE_URL"] = default_test_database_url()
        if args.test_verification_code:
            env["CONSOLE_TEST_VERIFICATION_CODE"] = args.test_verification_code
    elif args.test_verification_code:
        raise SystemExit("--test-verification-code requires --test")
    return env


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    os.environ.update(console_env(args, os.environ))

    # Configuration is read at import, so uvicorn loads the app after the env is set.
    import uvicorn

    uvicorn.run(
        "sidechain_console.main:app",
        host=args.host,
        port=args.port,
        log_level=args.log_level or "info",
        reload=False,
    )


if __name__ == "__main__":
    main()
