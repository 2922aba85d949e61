"""CLI entry point and argument parsing"""

import argparse
import logging
import sys

from rich.console import Console

import settings
from cli.auth_handlers import authenticate_with_token
from cli.cli_app import GitPortalCLI
from cli.debug_setup import configure_logging
from oauth.validators import token_format_error
from providers.session import ProviderType

console = Console()
logger = logging.getLogger(__name__)


def main():
    """Entry point for the CLI"""
    parser = argparse.ArgumentParser(description="Git Portal: connect a device to GitHub, GitLab or Gitee")
    parser.add_argument("--debug", "-d", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--radio",
        choices=["nmcli", "loopback"],
        default=None,
        help="Override the radio backend (default: from config)"
    )
    parser.add_argument(
        "--simulated-oauth",
        action="store_true",
        help="Offer the simulated OAuth provider (development only)"
    )
    parser.add_argument(
        "--provider",
        choices=[p.value for p in ProviderType if p != ProviderType.DEMO],
        default=None,
        help="Provider for --token"
    )
    parser.add_argument(
        "--token",
        type=str,
        default=None,
        help="Authenticate with a token obtained out-of-band, then open the menu"
    )

    args = parser.parse_args()

    if args.token and not args.provider:
        parser.error("--token requires --provider")

    debug_logger = configure_logging(args.debug)

    # Apply overrides to runtime modules
    if args.radio:
        settings.RADIO_BACKEND = args.radio
    if args.simulated_oauth:
        settings.SIMULATED_OAUTH = True

    try:
        cli = GitPortalCLI(debug=args.debug, debug_logger=debug_logger)

        if args.token:
            error = token_format_error(args.token)
            if error:
                console.print(f"[red]ERROR:[/red] {error}")
                sys.exit(1)
            if not authenticate_with_token(
                cli.current, cli.config_store, ProviderType(args.provider), args.token, cli.console
            ):
                sys.exit(1)

        cli.run()

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        console.print("Goodbye!")
    except Exception as e:
        console.print(f"\n[red]Fatal error:[/red] {e}")
        logger.exception("Fatal error")
        if args.debug:
            import traceback
            traceback.print_exc()
        sys.exit(1)


if __name__ == "__main__":
    main()
