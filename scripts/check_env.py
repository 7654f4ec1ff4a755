"""Operator check for the session layer's environment file.

Loads ``AppSettings`` from an env file so a missing backend URL or encryption
secret is caught before the client starts, and optionally pins the file's
SHA-256 so later edits are noticed::

    python -m scripts.check_env check --env-file .env
    python -m scripts.check_env record --env-file .env --hash-file .env.sha256
    python -m scripts.check_env verify --env-file .env --hash-file .env.sha256
"""

from __future__ import annotations

import argparse
import hashlib
import sys
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError

from marketplace_session.core.config import AppSettings, _load_env_file
from marketplace_session.core.logging import configure_logging

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_CHECKSUM_ERROR = 3
EXIT_RUNTIME_ERROR = 5

REQUIRED_KEYS = ("MARKETPLACE_API_BASE_URL", "TOKEN_ENCRYPTION_SECRET")


def file_digest(env_file: Path) -> str:
    return hashlib.sha256(env_file.read_bytes()).hexdigest()


def load_settings(env_file: Path) -> AppSettings:
    """Export ``env_file`` into the process environment and build the settings."""
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def describe(settings: AppSettings) -> str:
    return (
        f"environment={settings.environment} "
        f"api={settings.api.root_url} "
        f"storage={settings.storage.db_path} "
        f"log_level={settings.log_level} "
        f"update_in_place={settings.push.update_in_place}"
    )


def record(env_file: Path, hash_file: Path) -> int:
    digest = file_digest(env_file)
    hash_file.write_text(f"{digest}\n", encoding="utf-8")
    print(f"Baseline written to {hash_file}: {digest}")
    return EXIT_OK


def verify(env_file: Path, hash_file: Path) -> int:
    if not hash_file.exists():
        print(
            f"No baseline at {hash_file}; run 'record' first.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    expected = hash_file.read_text(encoding="utf-8").strip()
    actual = file_digest(env_file)
    if actual != expected:
        print(
            f"{env_file} changed since the baseline was recorded\n"
            f"  baseline: {expected}\n"
            f"  current:  {actual}",
            file=sys.stderr,
        )
        return EXIT_CHECKSUM_ERROR
    print("Checksum matches baseline.")
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate session layer settings and detect env file drift."
    )
    commands = parser.add_subparsers(dest="command", required=True)

    for name, help_text, needs_hash in (
        ("check", "Validate settings only.", False),
        ("record", "Validate settings and write the checksum baseline.", True),
        ("verify", "Validate settings and compare against the baseline.", True),
    ):
        sub = commands.add_parser(name, help=help_text)
        sub.add_argument("--env-file", type=Path, default=Path(".env"))
        if needs_hash:
            sub.add_argument("--hash-file", type=Path, required=True)
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.is_file():
        print(f"Env file {env_file} not found.", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    try:
        settings = load_settings(env_file)
    except ValidationError as exc:
        print(
            f"Invalid settings (required: {', '.join(REQUIRED_KEYS)}):\n{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR
    except Exception as exc:  # pylint: disable=broad-except
        print(f"Could not load settings: {exc}", file=sys.stderr)
        return EXIT_RUNTIME_ERROR

    configure_logging(settings.log_level)
    print(f"Settings OK: {describe(settings)}")
    if args.command == "record":
        return record(env_file, args.hash_file)
    if args.command == "verify":
        return verify(env_file, args.hash_file)
    return EXIT_OK


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
