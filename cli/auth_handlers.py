"""Authentication handlers for CLI

Every path ends the same way: a token is pushed into the current provider
with begin(), which checks it against the backend once. Only a token that
passes is saved. Tokens are never printed.
"""

import logging
import secrets
import threading
from typing import Optional

from rich.console import Console
from rich.prompt import Confirm, Prompt

from settings import AP_SSID_PREFIX
from cli.portal_wait import WaitResult, wait_for_token
from oauth.backends import create_backend
from oauth.flow import OAuthFlow, OAuthPortal
from oauth.validators import token_format_error
from portal.access_point import AccessPoint
from portal.outcome import OutcomeChannel, PortalOutcome
from portal.pages import error_message
from portal.qr_portal import QRMode, QRPortal, QRRenderer
from portal.token_portal import TokenPortal
from providers.session import CurrentProvider, ProviderType
from utils.storage import ConfigStore

logger = logging.getLogger(__name__)


def make_ssid(prefix: str = AP_SSID_PREFIX) -> str:
    """Access point name with a short random suffix"""
    return f"{prefix}-{secrets.token_hex(2).upper()}"


def authenticate_with_token(
    current: CurrentProvider,
    config_store: ConfigStore,
    provider_type: ProviderType,
    token: str,
    console: Console,
) -> bool:
    """
    Select the provider and authenticate it with a token

    The token is only persisted once the backend has accepted it.

    Args:
        current: Current-provider holder
        config_store: Configuration store
        provider_type: Provider the token belongs to
        token: Access token
        console: Rich console for output

    Returns:
        True if the provider is now authenticated
    """
    provider = current.select(provider_type, config_store.get(provider_type.value, "api_base_url"))
    console.print(f"Checking token with {provider.display_name}...")
    if not provider.begin(token):
        console.print(f"[red]✗ Authentication failed:[/red] {provider.last_error()}")
        return False

    config_store.save_token(provider_type.value, token)
    config_store.set_active_provider(provider_type.value)
    console.print(f"[green]✓ Authenticated as {provider.username}[/green]")
    return True


def restore_session(current: CurrentProvider, config_store: ConfigStore, console: Console) -> bool:
    """Re-authenticate the provider that was active last time, if any"""
    active = config_store.get_active_provider()
    if not active:
        return False
    try:
        provider_type = ProviderType(active)
    except ValueError:
        logger.warning(f"Ignoring unknown active provider in config: {active}")
        return False

    token = config_store.get_token(provider_type.value)
    provider = current.select(provider_type, config_store.get(provider_type.value, "api_base_url"))
    if not token:
        return False
    if provider.begin(token):
        console.print(f"[green]✓ Restored {provider.display_name} session for {provider.username}[/green]")
        return True
    console.print(f"[yellow]⚠ Stored {provider.display_name} token was not accepted: {provider.last_error()}[/yellow]")
    return False


def enter_token(
    current: CurrentProvider,
    config_store: ConfigStore,
    provider_type: ProviderType,
    console: Console,
) -> bool:
    """Read a token from the keyboard and authenticate with it"""
    token = Prompt.ask(f"{provider_type.label} access token", password=True, console=console).strip()
    error = token_format_error(token)
    if error:
        console.print(f"[red]✗ {error}[/red]")
        return False
    return authenticate_with_token(current, config_store, provider_type, token, console)


def _finish_portal(
    result: WaitResult,
    current: CurrentProvider,
    config_store: ConfigStore,
    provider_type: ProviderType,
    console: Console,
) -> bool:
    if result.cancelled:
        console.print("[yellow]Cancelled[/yellow]")
        return False
    if result.timed_out:
        console.print("[red]✗ Timed out waiting for the portal[/red]")
        return False
    console.print("[green]✓ Token received[/green]")
    return authenticate_with_token(current, config_store, provider_type, result.token, console)


def _report_error(console: Console):
    def report(outcome: PortalOutcome):
        console.print(f"[red]✗ {error_message(outcome.error)}[/red] Waiting for another attempt...")
    return report


def _show_join_instructions(ssid: str, access_point: AccessPoint, console: Console):
    console.print(f"\nJoin the Wi-Fi network [bold cyan]{ssid}[/bold cyan] with your phone.")
    console.print(f"If no sign-in page opens, browse to [cyan]http://{access_point.address}/[/cyan]")
    console.print("[dim]Press Ctrl+C to cancel[/dim]\n")


def run_token_portal(
    current: CurrentProvider,
    config_store: ConfigStore,
    provider_type: ProviderType,
    access_point: AccessPoint,
    console: Console,
    cancel: Optional[threading.Event] = None,
) -> bool:
    """Collect a token through the manual-token captive portal"""
    portal = TokenPortal(provider_type.value, provider_type.label, access_point)
    ssid = make_ssid()
    if not portal.start(ssid):
        console.print("[red]✗ Could not start the access point[/red]")
        return False

    _show_join_instructions(ssid, access_point, console)
    result = wait_for_token(portal, cancel or threading.Event(), on_error=_report_error(console))
    return _finish_portal(result, current, config_store, provider_type, console)


def oauth_client(config_store: ConfigStore, provider_type: ProviderType, console: Console) -> Optional[tuple]:
    """Stored OAuth client id/secret, prompting for them if missing"""
    client_id = config_store.get(provider_type.value, "client_id")
    client_secret = config_store.get(provider_type.value, "client_secret")
    if client_id and client_secret:
        return client_id, client_secret

    console.print(f"No OAuth application configured for {provider_type.label}.")
    if not Confirm.ask("Enter client id and secret now?", console=console):
        return None
    return configure_oauth_client(config_store, provider_type, console)


def configure_oauth_client(config_store: ConfigStore, provider_type: ProviderType, console: Console) -> Optional[tuple]:
    """Prompt for and store an OAuth application's client id and secret"""
    client_id = Prompt.ask("Client ID", console=console).strip()
    client_secret = Prompt.ask("Client secret", password=True, console=console).strip()
    if not client_id or not client_secret:
        console.print("[red]✗ Client id and secret are both required[/red]")
        return None
    config_store.update(provider_type.value, client_id=client_id, client_secret=client_secret)
    console.print("[green]✓ OAuth client saved[/green]")
    return client_id, client_secret


def run_oauth_portal(
    current: CurrentProvider,
    config_store: ConfigStore,
    provider_type: ProviderType,
    access_point: AccessPoint,
    console: Console,
    simulated: bool = False,
    cancel: Optional[threading.Event] = None,
) -> bool:
    """Run the OAuth Authorization Code flow through the captive portal"""
    if simulated:
        provider_type = ProviderType.DEMO
        client = ("simulated", "simulated")
    else:
        client = oauth_client(config_store, provider_type, console)
        if client is None:
            return False

    try:
        backend = create_backend(
            provider_type.value,
            simulated=simulated,
            base_url=config_store.get(provider_type.value, "api_base_url"),
            address=access_point.address,
        )
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        return False

    flow = OAuthFlow(provider_type, backend, config_store, OutcomeChannel())
    portal = OAuthPortal(flow, access_point)
    ssid = make_ssid()
    if not portal.start_flow(ssid, *client):
        console.print("[red]✗ Could not start the access point[/red]")
        return False

    _show_join_instructions(ssid, access_point, console)
    result = wait_for_token(portal, cancel or threading.Event(), on_error=_report_error(console))
    return _finish_portal(result, current, config_store, provider_type, console)


def run_qr_portal(
    current: CurrentProvider,
    config_store: ConfigStore,
    provider_type: ProviderType,
    access_point: AccessPoint,
    mode: QRMode,
    console: Console,
    renderer: Optional[QRRenderer] = None,
    cancel: Optional[threading.Event] = None,
) -> bool:
    """Run a portal reachable through a QR code shown on screen"""
    client_id = client_secret = ""
    if mode == QRMode.OAUTH:
        client = oauth_client(config_store, provider_type, console)
        if client is None:
            return False
        client_id, client_secret = client

    try:
        portal = QRPortal(
            mode,
            provider_type,
            access_point,
            config_store,
            renderer=renderer,
            client_id=client_id,
            client_secret=client_secret,
        )
    except ValueError as e:
        console.print(f"[red]✗ {e}[/red]")
        return False

    ssid = make_ssid()
    console.print(f"\nJoin the Wi-Fi network [bold cyan]{ssid}[/bold cyan], then scan:")
    if not portal.start(ssid):
        console.print("[red]✗ Could not start the access point[/red]")
        return False
    console.print("[dim]Press Ctrl+C to cancel[/dim]\n")

    result = wait_for_token(portal, cancel or threading.Event(), on_error=_report_error(console))
    return _finish_portal(result, current, config_store, portal.provider_type, console)


def logout(current: CurrentProvider, config_store: ConfigStore, console: Console):
    """Forget the current provider's token"""
    provider_type = current.provider_type
    if provider_type is None:
        console.print("[yellow]No provider selected[/yellow]")
        return

    if Confirm.ask(f"Clear the stored {provider_type.label} token?", console=console):
        config_store.clear_token(provider_type.value)
        if config_store.get_active_provider() == provider_type.value:
            config_store.set_active_provider(None)
        current.clear()
        console.print("[green]✓ Token cleared[/green]")
    else:
        console.print("Logout cancelled")
