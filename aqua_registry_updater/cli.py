"""CLI entry point for aqua-registry-updater."""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from importlib.metadata import version as pkg_version
from pathlib import Path

from aqua_registry_updater.config import CONFIG_FILE, load_config, load_environment
from aqua_registry_updater.errors import RunCancelled, UpdaterError
from aqua_registry_updater.github import GhPullRequests
from aqua_registry_updater.pipeline import Updater, initialize
from aqua_registry_updater.redirect import RedirectDetector
from aqua_registry_updater.shell import CommandTools, fatal
from aqua_registry_updater.state import OrasStateStore

__version__ = pkg_version("aqua-registry-updater")

logger = logging.getLogger(__name__)


def _cancel(signum: int, _frame: object) -> None:
    raise RunCancelled(f"received signal {signal.Signals(signum).name}")


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def cmd_update(args: argparse.Namespace) -> None:
    """Update a batch of packages (usually called from a scheduled workflow)."""
    root = Path(args.root)
    try:
        env = load_environment()
        config = load_config(root / args.config, env.repository)
    except UpdaterError as exc:
        fatal(str(exc))
        return

    store = OrasStateStore(config.container_registry, env.registry_token, timeout=args.timeout)
    tools = CommandTools(root, env.repository, timeout=args.timeout)
    pull_requests = GhPullRequests(env.repository, timeout=args.timeout)
    with RedirectDetector(root, timeout=args.timeout) as redirects:
        updater = Updater(root, config, store, tools, pull_requests, redirects)
        try:
            updater.run()
        except UpdaterError as exc:
            fatal(f"aqua-registry-updater failed: {exc}")


def cmd_init(args: argparse.Namespace) -> None:
    """Push an empty package list to the container registry."""
    root = Path(args.root)
    try:
        env = load_environment(registry_token_required=False)
        config = load_config(root / args.config, env.repository)
    except UpdaterError as exc:
        fatal(str(exc))
        return

    token = env.registry_token or env.github_token
    if not token:
        fatal("a container registry token is required")
        return
    try:
        initialize(OrasStateStore(config.container_registry, token, timeout=args.timeout))
    except UpdaterError as exc:
        fatal(f"aqua-registry-updater failed: {exc}")
        return
    print(f"✓ Pushed an empty package list to {config.container_registry.reference}")


def cli(argv: list[str] | None = None) -> None:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="aqua-registry-updater",
        description="Keep an aqua registry up to date, a few packages per run.",
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument(
        "--log-level",
        default="info",
        choices=["debug", "info", "warning", "error"],
        help="Log level. (default: %(default)s)",
    )

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--root",
        default=".",
        help="Root of the registry checkout. (default: %(default)s)",
    )
    common.add_argument(
        "-c",
        "--config",
        default=CONFIG_FILE,
        help="Configuration file, relative to --root. (default: %(default)s)",
    )
    common.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Timeout in seconds for each external command. (default: none)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    update_parser = subparsers.add_parser(
        "update", parents=[common], help="Update the next batch of packages."
    )
    update_parser.set_defaults(func=cmd_update)

    init_parser = subparsers.add_parser(
        "init", parents=[common], help="Push an empty package list to the registry."
    )
    init_parser.set_defaults(func=cmd_init)

    args = parser.parse_args(argv)
    _setup_logging(args.log_level)
    signal.signal(signal.SIGTERM, _cancel)
    try:
        args.func(args)
    except (KeyboardInterrupt, RunCancelled) as exc:
        print(f"Interrupted: {exc or 'SIGINT'}", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    cli()
