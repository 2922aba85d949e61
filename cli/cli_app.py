"""Main CLI application class for Git Portal"""

import logging
from typing import List, Optional

from rich.console import Console
from rich.prompt import Prompt
from rich.table import Table

import settings
from cli import auth_handlers
from cli.debug_setup import setup_debug_console
from cli.menu import (
    clear_screen,
    display_auth_menu,
    display_header,
    display_menu,
    display_provider_menu,
    display_repo_menu,
)
from cli.status_display import show_provider_status
from portal.access_point import AccessPoint, create_radio
from portal.qr_portal import QRMode, TerminalQRRenderer
from providers.models import IssueDraft
from providers.session import CurrentProvider, ProviderType
from utils.storage import ConfigStore

logger = logging.getLogger(__name__)


class GitPortalCLI:
    """Main CLI interface for Git Portal

    Owns the current-provider holder, the configuration store and the
    device's single access point, and passes them into the handlers.
    """

    def __init__(
        self,
        debug: bool = False,
        debug_logger: Optional[logging.Logger] = None,
        console: Optional[Console] = None,
        config_store: Optional[ConfigStore] = None,
        access_point: Optional[AccessPoint] = None,
    ):
        self.debug = debug
        self.console = console or setup_debug_console(debug, debug_logger)
        self.config_store = config_store or ConfigStore()
        self.access_point = access_point or AccessPoint(radio=create_radio(settings.RADIO_BACKEND))
        self.current = CurrentProvider()
        self.simulated = bool(settings.SIMULATED_OAUTH)
        self.qr_renderer = TerminalQRRenderer(self.console)

        if debug:
            self.console.print(
                f"[yellow]Debug mode enabled - verbose logging will be written to {settings.DEBUG_LOG_FILE}[/yellow]"
            )
        if self.simulated:
            self.console.print("[yellow]Simulated OAuth enabled - demo provider available[/yellow]")

    def pause(self):
        input("\nPress Enter to continue...")

    def provider_choices(self) -> List[ProviderType]:
        choices = [ProviderType.GITHUB, ProviderType.GITLAB, ProviderType.GITEE]
        if self.simulated:
            choices.append(ProviderType.DEMO)
        return choices

    # ------------------------------------------------------------------
    # Provider selection
    # ------------------------------------------------------------------

    def select_provider(self):
        choices = self.provider_choices()
        display_provider_menu([choice.label for choice in choices], self.console)
        options = [str(i) for i in range(1, len(choices) + 2)]
        choice = int(Prompt.ask("Select option", choices=options, console=self.console))
        if choice > len(choices):
            return

        provider_type = choices[choice - 1]
        api_base_url = self.config_store.get(provider_type.value, "api_base_url")
        if provider_type == ProviderType.GITLAB:
            custom = Prompt.ask(
                "GitLab API base (blank for default)",
                default=api_base_url or "",
                show_default=bool(api_base_url),
                console=self.console,
            ).strip()
            api_base_url = custom or None
            if api_base_url:
                self.config_store.set(provider_type.value, "api_base_url", api_base_url)
            else:
                self.config_store.remove(provider_type.value, "api_base_url")

        provider = self.current.select(provider_type, api_base_url)
        token = self.config_store.get_token(provider_type.value)
        if token and provider.begin(token):
            self.config_store.set_active_provider(provider_type.value)
            self.console.print(f"[green]✓ Authenticated as {provider.username}[/green]")
        elif token:
            self.console.print(f"[yellow]⚠ Stored token rejected: {provider.last_error()}[/yellow]")
        else:
            self.console.print(f"Selected {provider.display_name}. Use Authentication to sign in.")
        self.pause()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    def authentication_menu(self):
        provider_type = self.current.provider_type
        if provider_type is None:
            self.console.print("[yellow]Select a provider first[/yellow]")
            self.pause()
            return

        display_auth_menu(provider_type.label, self.simulated, self.console)
        last = 9 if self.simulated else 8
        choice = Prompt.ask("Select option", choices=[str(i) for i in range(1, last + 1)], console=self.console)
        args = (self.current, self.config_store, provider_type)

        if choice == "1":
            auth_handlers.enter_token(*args, self.console)
        elif choice == "2":
            auth_handlers.run_token_portal(*args, self.access_point, self.console)
        elif choice == "3":
            auth_handlers.run_oauth_portal(
                *args, self.access_point, self.console, simulated=provider_type == ProviderType.DEMO
            )
        elif choice == "4":
            auth_handlers.run_qr_portal(
                *args, self.access_point, QRMode.TOKEN, self.console, renderer=self.qr_renderer
            )
        elif choice == "5":
            auth_handlers.run_qr_portal(
                *args, self.access_point, QRMode.OAUTH, self.console, renderer=self.qr_renderer
            )
        elif choice == "6":
            auth_handlers.configure_oauth_client(self.config_store, provider_type, self.console)
        elif choice == "7":
            auth_handlers.logout(self.current, self.config_store, self.console)
        elif choice == "8" and self.simulated:
            auth_handlers.run_qr_portal(
                *args, self.access_point, QRMode.SIMULATED, self.console, renderer=self.qr_renderer
            )
        else:
            return
        self.pause()

    # ------------------------------------------------------------------
    # Repositories & issues
    # ------------------------------------------------------------------

    def _default_repo(self) -> str:
        provider_type = self.current.provider_type
        if provider_type is None:
            return ""
        return self.config_store.get(provider_type.value, "default_repo") or ""

    def _split_repo(self) -> Optional[tuple]:
        default_repo = self._default_repo()
        if "/" not in default_repo:
            self.console.print("[yellow]Set a default repository (owner/name) first[/yellow]")
            return None
        owner, _, repo = default_repo.rpartition("/")
        return owner, repo

    def list_repositories(self):
        provider = self.current.provider
        page = provider.list_user_repos(limit=20)
        if provider.last_error():
            self.console.print(f"[red]✗ {provider.last_error()}[/red]")
            return

        table = Table(title=f"{provider.username} on {provider.display_name}")
        table.add_column("Repository", style="cyan")
        table.add_column("Visibility")
        table.add_column("Description")
        for repo in page.items:
            table.add_row(repo.full_name, "private" if repo.private else "public", repo.description)
        self.console.print(table)
        if page.has_more:
            self.console.print("[dim]More repositories available[/dim]")

    def set_default_repo(self):
        provider_type = self.current.provider_type
        value = Prompt.ask("Repository (owner/name)", default=self._default_repo(), console=self.console).strip()
        if "/" not in value:
            self.console.print("[red]✗ Expected owner/name[/red]")
            return
        self.config_store.set(provider_type.value, "default_repo", value)
        self.console.print(f"[green]✓ Default repository set to {value}[/green]")

    def list_issues(self):
        target = self._split_repo()
        if target is None:
            return
        provider = self.current.provider
        page = provider.list_issues(*target, state="open", limit=20)
        if provider.last_error():
            self.console.print(f"[red]✗ {provider.last_error()}[/red]")
            return

        table = Table(title=f"Open issues in {'/'.join(target)}")
        table.add_column("#", style="cyan", justify="right")
        table.add_column("Title")
        table.add_column("Author")
        for issue in page.items:
            table.add_row(str(issue.number), issue.title, issue.author)
        self.console.print(table)
        if page.has_more:
            self.console.print("[dim]More issues available[/dim]")

    def create_issue(self):
        target = self._split_repo()
        if target is None:
            return
        provider = self.current.provider
        title = Prompt.ask("Title", console=self.console).strip()
        body = Prompt.ask("Body", default="", show_default=False, console=self.console)
        labels = Prompt.ask("Labels (comma separated)", default="", show_default=False, console=self.console)
        draft = IssueDraft(
            title=title,
            body=body,
            labels=[label.strip() for label in labels.split(",") if label.strip()],
        )
        if provider.create_issue_ex(*target, draft):
            self.console.print("[green]✓ Issue created[/green]")
        else:
            self.console.print(f"[red]✗ {provider.last_error()}[/red]")

    def repository_menu(self):
        if not self.current.is_authenticated():
            self.console.print("[yellow]Authenticate first[/yellow]")
            self.pause()
            return

        display_repo_menu(self._default_repo(), self.console)
        choice = Prompt.ask("Select option", choices=["1", "2", "3", "4", "5"], console=self.console)
        if choice == "1":
            self.list_repositories()
        elif choice == "2":
            self.set_default_repo()
        elif choice == "3":
            self.list_issues()
        elif choice == "4":
            self.create_issue()
        else:
            return
        self.pause()

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def shutdown(self):
        self.access_point.stop()
        self.current.clear()

    def run(self):
        """Main CLI loop"""
        auth_handlers.restore_session(self.current, self.config_store, self.console)

        try:
            while True:
                clear_screen(self.console)
                display_header(self.console)
                display_menu(self.current, self.console)

                choice = Prompt.ask("Select option", choices=["1", "2", "3", "4", "5"], console=self.console)

                if choice == "1":
                    self.select_provider()
                elif choice == "2":
                    self.authentication_menu()
                elif choice == "3":
                    self.repository_menu()
                elif choice == "4":
                    show_provider_status(self.current, self.config_store, self.console)
                    self.pause()
                elif choice == "5":
                    self.console.print("\n[cyan]Goodbye![/cyan]\n")
                    break
        finally:
            self.shutdown()
