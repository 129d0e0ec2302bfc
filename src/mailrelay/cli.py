"""Command-line entry point for the relay.

Options given on the command line override the settings read from the
environment and ``.env``; omitted options leave them untouched.

Usage::

    mailrelay --email-address me@example.com --webhook-url https://discord.com/api/webhooks/...
    python -m mailrelay --only-build-email-cache
"""

from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Any

import structlog
from pydantic import SecretStr

from mailrelay import __version__
from mailrelay.config import Settings, get_settings
from mailrelay.domain.errors import RelayError

logger = structlog.get_logger()


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser.

    Returns:
        A configured :class:`argparse.ArgumentParser`.
    """
    parser = argparse.ArgumentParser(
        prog="mailrelay",
        description="Relay Gmail conversations into Discord forum threads",
    )

    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--credentials-path",
        type=Path,
        help="Path to the Gmail OAuth client secrets file",
    )
    parser.add_argument(
        "--email-address",
        type=str,
        help="Gmail address to read from",
    )
    parser.add_argument(
        "--webhook-url",
        type=str,
        help="Discord forum channel webhook URL",
    )
    parser.add_argument(
        "--fetching-interval",
        type=int,
        metavar="MINUTES",
        help="Minutes between two polling cycles",
    )
    parser.add_argument(
        "--email-cache",
        type=Path,
        help="Path of the fetched message cache",
    )
    parser.add_argument(
        "--id-mapping-cache",
        type=Path,
        help="Path of the Message-ID to Discord thread id cache",
    )
    parser.add_argument(
        "--only-build-email-cache",
        action="store_true",
        default=None,
        help="Fetch every message into the cache and exit without forwarding",
    )
    parser.add_argument(
        "--keep-history",
        action="store_true",
        default=None,
        help="Keep quoted reply history in forwarded messages",
    )
    parser.add_argument(
        "--production",
        action="store_true",
        default=None,
        help="JSON logs and strict startup checks",
    )

    return parser


def settings_from_args(args: argparse.Namespace, base: Settings | None = None) -> Settings:
    """Overlay parsed command-line options on *base* settings.

    Args:
        args: Parsed arguments from :func:`build_parser`.
        base: Settings to start from.  Defaults to ``get_settings()``.

    Returns:
        A new ``Settings`` instance.
    """
    if base is None:
        base = get_settings()

    overrides: dict[str, Any] = {}
    if args.credentials_path is not None:
        overrides["gmail_credentials_path"] = args.credentials_path
    if args.email_address is not None:
        overrides["email_address"] = args.email_address
    if args.webhook_url is not None:
        overrides["discord_webhook_url"] = SecretStr(args.webhook_url)
    if args.fetching_interval is not None:
        overrides["fetching_interval_minutes"] = args.fetching_interval
    if args.email_cache is not None:
        overrides["email_cache_path"] = args.email_cache
    if args.id_mapping_cache is not None:
        overrides["id_mapping_cache_path"] = args.id_mapping_cache
    if args.only_build_email_cache:
        overrides["only_build_email_cache"] = True
    if args.keep_history:
        overrides["strip_quoted_history"] = False
    if args.production:
        overrides["production"] = True

    return base.model_copy(update=overrides)


def main(argv: list[str] | None = None) -> int:
    """Run the relay until it is interrupted.

    Args:
        argv: Command-line arguments (defaults to ``sys.argv[1:]``).

    Returns:
        Process exit code.
    """
    from mailrelay.app import run

    parser = build_parser()
    args = parser.parse_args(argv)
    settings = settings_from_args(args)

    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        return 130
    except RelayError:
        logger.exception("Relay stopped on an unrecoverable error")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
