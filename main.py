#!/usr/bin/env python3
"""
Universal Proxy - outbound mediation gateway

Relays HTTP calls, browser-rendered scrapes and provider API calls on behalf
of clients, with SSRF guarding and optional proxy-tier routing.
"""
import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from uniproxy import __version__

console = Console()


def _base_url(host: str, port: int) -> str:
    return f"http://{host}:{port}"


def _api_headers(api_key: str) -> dict:
    return {"x-api-key": api_key} if api_key else {}


@click.group()
@click.version_option(version=__version__)
def cli():
    """Universal Proxy - outbound mediation gateway"""
    pass


@cli.command()
@click.option("--host", default=None, help="Host to bind to (defaults to UNIPROXY_HOST or 127.0.0.1)")
@click.option("--port", default=None, type=int, help="Port to bind to (defaults to UNIPROXY_PORT or 3001)")
def start(host: str, port: int):
    """Start the gateway server"""
    from uniproxy.config import Settings
    from uniproxy.logging_config import setup_logging
    from uniproxy.server import run_server

    setup_logging()
    settings = Settings.from_env()
    host = host or settings.host
    port = port or settings.port

    console.print(Panel.fit(
        "[bold cyan]Universal Proxy[/bold cyan] - outbound mediation gateway\n"
        f"[dim]Starting server on {_base_url(host, port)}[/dim]",
        border_style="cyan"
    ))

    configured = [name for name, tier in settings.proxy_tiers.items() if tier.usable]
    console.print(f"  Environment: [bold]{settings.environment}[/bold]")
    console.print(f"  API key auth: {'[green]enabled[/green]' if settings.auth_enabled else '[yellow]disabled[/yellow]'}")
    console.print(f"  Proxy tiers: {', '.join(configured) if configured else '[dim]none[/dim]'}")
    console.print(f"\n[bold green]Health check:[/bold green] {_base_url(host, port)}/health")
    console.print("[dim]Press Ctrl+C to stop[/dim]\n")

    run_server(host=host, port=port, settings=settings)


@cli.command()
@click.option("--host", default="127.0.0.1", help="Server host")
@click.option("--port", default=3001, help="Server port")
def status(host: str, port: int):
    """Show health of a running server"""
    import requests

    try:
        resp = requests.get(f"{_base_url(host, port)}/health", timeout=5)
        data = resp.json()
    except requests.ConnectionError:
        console.print("[red]Error:[/red] Server not running. Start with: uniproxy start")
        return

    console.print(f"[green]✓[/green] {data.get('service', 'Universal Proxy')} is {data.get('status', 'unknown')}")
    console.print(f"  Uptime: {data.get('uptime', 0):.0f}s")
    console.print(f"  Modules: {', '.join(data.get('modules', []))}")


@cli.command()
@click.option("--host", default="127.0.0.1", help="Server host")
@click.option("--port", default=3001, help="Server port")
@click.option("--api-key", envvar="UNIPROXY_API_KEY", default="", help="API key for the server")
def services(host: str, port: int, api_key: str):
    """List services registered on a running server"""
    import requests

    try:
        resp = requests.get(
            f"{_base_url(host, port)}/api/services",
            headers=_api_headers(api_key),
            timeout=5,
        )
        data = resp.json()
    except requests.ConnectionError:
        console.print("[red]Error:[/red] Server not running. Start with: uniproxy start")
        return

    entries = data.get("services", [])
    if not entries:
        console.print("[dim]No services registered[/dim]")
        return

    table = Table(title="Universal Proxy Services")
    table.add_column("Name", style="cyan")
    table.add_column("Endpoints", style="white")
    table.add_column("Description", style="dim")

    for entry in entries:
        table.add_row(entry["name"], ", ".join(entry.get("endpoints", [])), entry.get("description", ""))

    console.print(table)


@cli.command()
@click.argument("value")
def encrypt(value: str):
    """Encrypt a value for the credentials file"""
    from uniproxy.crypto import CredentialEncryption

    token = CredentialEncryption().encrypt(value)
    console.print(token, soft_wrap=True)


@cli.command()
def credentials():
    """List domains with stored login credentials"""
    from uniproxy.config import Settings
    from uniproxy.server import load_credential_store

    settings = Settings.from_env()
    store = load_credential_store(settings)
    domains = store.list_domains()

    if not domains:
        console.print(f"[dim]No credentials in {settings.credentials_file}[/dim]")
        return

    table = Table(title="Stored Credentials")
    table.add_column("Domain", style="cyan")
    table.add_column("Login URL", style="dim")
    for entry in domains:
        table.add_row(entry["domain"], entry["login_url"])

    console.print(table)


@cli.command("add-credential")
@click.argument("domain")
@click.option("--login-url", required=True, help="Page holding the login form")
@click.option("--username", required=True, help="Login username")
@click.option("--password", prompt=True, hide_input=True, help="Login password")
@click.option("--success-indicator", default=None, help="Selector present after a successful login")
def add_credential(domain: str, login_url: str, username: str, password: str, success_indicator: str):
    """Store encrypted login credentials for DOMAIN"""
    from uniproxy.config import Settings
    from uniproxy.credentials import DEFAULT_SUCCESS_INDICATOR, LoginCredential
    from uniproxy.errors import ConfigurationError
    from uniproxy.server import load_credential_store

    settings = Settings.from_env()
    credential = LoginCredential(
        username=username,
        password=password,
        login_url=login_url,
        success_indicator=success_indicator or DEFAULT_SUCCESS_INDICATOR,
    )

    try:
        store = load_credential_store(settings).add_credentials(domain, credential)
        store.save(settings.credentials_file)
    except ConfigurationError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        raise SystemExit(1)

    console.print(f"[green]✓[/green] Stored credentials for {domain.lower()}")


if __name__ == "__main__":
    cli()
