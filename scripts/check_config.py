"""Preflight check for the robot's configuration and stores.

Run it before starting the service (or from a deploy hook) to catch missing
Graph credentials, a malformed notification URL, or a store the process cannot
write to::

    # Validate settings only.
    python -m scripts.check_config check --env-file /opt/robot/.env

    # Validate settings and round-trip a probe item through both stores.
    python -m scripts.check_config storage --env-file /opt/robot/.env
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from pydantic import ValidationError

from app.clients.keyed_store import KeyedStore, StoreError
from app.core.config import AppSettings, _load_env_file
from app.core.context import build_storage_context

EXIT_OK = 0
EXIT_VALIDATION_ERROR = 2
EXIT_STORE_ERROR = 4
EXIT_RUNTIME_ERROR = 5

PROBE_PARTITION = "preflight"
PROBE_SORT_KEY = "probe"


def _load_settings(env_file: Path) -> AppSettings:
    """Load ``env_file`` into the environment and build the settings from it."""
    _load_env_file(str(env_file))
    return AppSettings()  # type: ignore[call-arg]


def _probe_store(name: str, store: KeyedStore) -> None:
    store.put_item({"pk": PROBE_PARTITION, "sk": PROBE_SORT_KEY, "check": name})
    if store.get_item(partition_key=PROBE_PARTITION, sort_key=PROBE_SORT_KEY) is None:
        raise StoreError(f"{name} store did not return the probe item it just wrote")
    store.delete_item(partition_key=PROBE_PARTITION, sort_key=PROBE_SORT_KEY)


def _check_storage(settings: AppSettings) -> int:
    context = build_storage_context(settings.storage)
    for name, store in (
        ("token cache", context.token_cache_store),
        ("sync state", context.sync_state_store),
    ):
        try:
            _probe_store(name, store)
        except StoreError as exc:
            print(f"The {name} store is not usable: {exc}", file=sys.stderr)
            return EXIT_STORE_ERROR
    print(f"Stores OK ({settings.storage.backend}).")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Validate robot settings and optionally probe its stores."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    for command, help_text in (
        ("check", "Validate settings only."),
        ("storage", "Validate settings and write a probe item to each store."),
    ):
        subparser = subparsers.add_parser(command, help=help_text)
        subparser.add_argument(
            "--env-file",
            default=".env",
            type=Path,
            help="Path to the environment file (default: .env in the repo root).",
        )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    env_file: Path = args.env_file

    if not env_file.exists():
        print(
            f"Environment file {env_file} does not exist. "
            "Ensure the path is correct or create it before running this tool.",
            file=sys.stderr,
        )
        return EXIT_RUNTIME_ERROR

    try:
        settings = _load_settings(env_file)
    except ValidationError as exc:
        print(
            "Settings validation failed. Missing or invalid values detected:\n"
            f"{exc.json(indent=2)}",
            file=sys.stderr,
        )
        return EXIT_VALIDATION_ERROR

    if args.command == "check":
        print("Settings OK.")
        return EXIT_OK

    try:
        return _check_storage(settings)
    except (StoreError, ValueError) as exc:
        print(f"Unable to open the configured stores: {exc}", file=sys.stderr)
        return EXIT_STORE_ERROR


if __name__ == "__main__":  # pragma: no cover - script entry point
    sys.exit(main())
