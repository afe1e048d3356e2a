"""CLI entry point for Graph Session."""

import argparse
import asyncio
import sys
from pathlib import Path

# Initialize SSL truststore early, before any HTTPS connection
from .utils.ssl_utils import init_ssl
init_ssl()

from .api.graph_client import GraphApiClient
from .auth.engine import AuthenticationService
from .auth.token_cache import TokenCacheManager
from .config import AppConfig, load_config
from .utils.exceptions import GraphSessionError
from .utils.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Graph Session - Sign in to Microsoft Graph and keep the session cached"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML configuration file (overrides environment settings)",
    )
    action = parser.add_mutually_exclusive_group()
    action.add_argument(
        "--status",
        action="store_true",
        help="Check for a cached session without prompting",
    )
    action.add_argument(
        "--sign-in",
        action="store_true",
        help="Sign in (silently if possible, interactively otherwise)",
    )
    action.add_argument(
        "--sign-out",
        action="store_true",
        help="Remove cached accounts",
    )
    action.add_argument(
        "--me",
        action="store_true",
        help="Show the signed-in user's Graph profile",
    )
    action.add_argument(
        "--clear-cache",
        action="store_true",
        help="Delete the persisted token cache file",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Verbose output",
    )
    return parser


async def run(args: argparse.Namespace, app_config: AppConfig) -> int:
    service = AuthenticationService.from_config(app_config)

    if args.status:
        signed_in = await service.is_authenticated()
        print("Signed in" if signed_in else "Not signed in")
        return 0 if signed_in else 1

    if args.sign_in:
        if await service.sign_in():
            print("✓ Signed in")
            return 0
        print("Sign-in did not complete")
        return 1

    if args.sign_out:
        await service.sign_out()
        print("Signed out")
        return 0

    if args.me:
        client = GraphApiClient(service, base_url=app_config.auth.graph_base_url)
        profile = await client.get_me()
        print(f"{profile.get('displayName', '')} <{profile.get('userPrincipalName', '')}>")
        return 0

    return 0


def main() -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    try:
        app_config = load_config(args.config)
    except GraphSessionError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    log_level = "DEBUG" if args.verbose else app_config.log_level
    logger = setup_logging(level=log_level, log_file=app_config.log_file)

    try:
        if args.clear_cache:
            TokenCacheManager(app_config.storage).clear_cache()
            return 0

        if not (args.status or args.sign_in or args.sign_out or args.me):
            parser.print_help()
            return 0

        return asyncio.run(run(args, app_config))

    except GraphSessionError as e:
        logger.error(f"Graph session error: {e}")
        return 1
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
