"""Menu display functionality for CLI"""

from rich.panel import Panel

from cli.status_display import get_auth_status
from providers.session import CurrentProvider


def clear_screen(console):
    """Clear the terminal screen"""
    console.clear()


def display_header(console):
    """Display the application header"""
    console.print(Panel.fit(
        "[bold cyan]Git Portal[/bold cyan]\n"
        "[dim]Connect this device to GitHub, GitLab or Gitee[/dim]",
        border_style="cyan"
    ))


def display_menu(current: CurrentProvider, console):
    """
    Display the main menu

    Args:
        current: Current-provider holder
        console: Rich console for output
    """
    auth_status, auth_detail = get_auth_status(current)

    if auth_status == "AUTHENTICATED":
        status_style = "green"
    elif auth_status == "NO AUTH":
        status_style = "yellow"
    else:
        status_style = "red"

    console.print(f" Provider: [bold]{current.display_name}[/bold]")
    console.print(f" Status: [{status_style}]{auth_status}[/{status_style}] ({auth_detail})")
    console.print("-" * 50)
    console.print(" 1. Select Provider")
    console.print(" 2. Authentication")
    console.print(" 3. Repositories & Issues")
    console.print(" 4. Show Status")
    console.print(" 5. Exit")
    console.print("=" * 50)


def display_provider_menu(provider_labels, console):
    """Display the provider choices, numbered from 1"""
    console.print("\n" + "=" * 50)
    console.print("    Select Provider", style="bold")
    console.print("=" * 50)
    for index, label in enumerate(provider_labels, start=1):
        console.print(f" {index}. {label}")
    console.print(f" {len(provider_labels) + 1}. Back")
    console.print("=" * 50)


def display_auth_menu(provider_label: str, simulated: bool, console):
    """Display the authentication submenu for the selected provider

    Args:
        provider_label: Display name of the selected provider
        simulated: Whether the simulated OAuth entries are offered
        console: Rich console for output
    """
    console.print("\n" + "=" * 50)
    console.print(f"    {provider_label} Authentication", style="bold")
    console.print("=" * 50)
    console.print(" 1. Enter Token")
    console.print(" 2. Token Portal (phone)")
    console.print(" 3. OAuth Sign-in Portal (phone)")
    console.print(" 4. QR Code: Token")
    console.print(" 5. QR Code: OAuth")
    console.print(" 6. Configure OAuth Client")
    console.print(" 7. Logout (Clear Token)")
    if simulated:
        console.print(" 8. Simulated OAuth (demo provider)")
        console.print(" 9. Back")
    else:
        console.print(" 8. Back")
    console.print("=" * 50)


def display_repo_menu(default_repo: str, console):
    """Display the repositories & issues submenu"""
    console.print("\n" + "=" * 50)
    console.print("    Repositories & Issues", style="bold")
    console.print("=" * 50)
    console.print(f" Default repository: {default_repo or '[dim]not set[/dim]'}")
    console.print(" 1. List My Repositories")
    console.print(" 2. Set Default Repository")
    console.print(" 3. List Open Issues")
    console.print(" 4. Create Issue")
    console.print(" 5. Back")
    console.print("=" * 50)
