"""Status display functionality for CLI"""

from rich.table import Table

from providers.session import CurrentProvider, ProviderType
from utils.storage import ConfigStore


def get_auth_status(current: CurrentProvider) -> tuple[str, str]:
    """
    Get authentication status of the current provider

    Args:
        current: Current-provider holder

    Returns:
        Tuple of (status, detail_message)
    """
    provider = current.provider
    if provider is None:
        return "NO PROVIDER", "Select a provider first"
    if provider.is_authenticated():
        return "AUTHENTICATED", f"{provider.display_name} as {provider.username}"
    if provider.last_error():
        return "FAILED", provider.last_error()
    return "NO AUTH", f"{provider.display_name} not authenticated"


def show_provider_status(current: CurrentProvider, config_store: ConfigStore, console):
    """
    Display stored configuration for every provider

    Secrets are reported as present or absent, never shown.

    Args:
        current: Current-provider holder
        config_store: Configuration store
        console: Rich console for output
    """
    table = Table(title="Provider Status")
    table.add_column("Provider", style="cyan")
    table.add_column("Token")
    table.add_column("OAuth Client")
    table.add_column("Default Repo")
    table.add_column("API Base")

    active = config_store.get_active_provider()
    for provider_type in ProviderType:
        status = config_store.get_status(provider_type.value)
        name = provider_type.label
        if provider_type.value == active:
            name += " *"
        table.add_row(
            name,
            "[green]stored[/green]" if status["has_token"] else "[dim]none[/dim]",
            "yes" if status["client_id"] and status["has_client_secret"] else "no",
            status["default_repo"] or "",
            status["api_base_url"] or "default",
        )

    console.print(table)
    auth_status, auth_detail = get_auth_status(current)
    console.print(f"Current: {auth_status} ({auth_detail})")
    console.print(f"Config file: {config_store.config_file}")
