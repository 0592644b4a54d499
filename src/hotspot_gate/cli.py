"""
hotspot-gate CLI — hotspot-gate serve | check-config | set-webhook | provision
"""
import asyncio
import sys

import click

from hotspot_gate.config.settings import Settings, load_settings
from hotspot_gate.core.exceptions import RouterError
from hotspot_gate.core.structured_logger import configure_logging


def _load_or_exit(config_path: str | None) -> Settings:
    try:
        settings = load_settings(config_path)
    except (FileNotFoundError, ValueError) as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)
    configure_logging(settings.logging.level, settings.logging.format)
    return settings


@click.group()
@click.version_option(package_name="hotspot-gate")
def cli() -> None:
    """hotspot-gate — Telegram-approved hotspot access for RouterOS."""
    pass


@cli.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None, help="YAML config file")
@click.option("--host", default=None, help="Bind address (overrides config)")
@click.option("--port", type=int, default=None, help="Bind port (overrides config)")
def serve(config_path: str | None, host: str | None, port: int | None) -> None:
    """Run the HTTP gateway."""
    import uvicorn

    from hotspot_gate.lifecycle import build_runtime

    settings = _load_or_exit(config_path)
    runtime = build_runtime(settings)
    uvicorn.run(
        runtime.app,
        host=host or settings.web.host,
        port=port or settings.web.port,
        log_level=settings.logging.level.lower(),
    )


@cli.command("check-config")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None, help="YAML config file")
def check_config(config_path: str | None) -> None:
    """Validate configuration and print the effective values."""
    settings = _load_or_exit(config_path)
    click.echo("✅ Configuration OK")
    click.echo(f"  Public URL:          {settings.public_url}")
    click.echo(f"  Ledger file:         {settings.ledger.path}")
    click.echo(f"  Profiles:            {', '.join(settings.ledger.allowed_profiles)}")
    click.echo(f"  Direct provisioning: {'on' if settings.router.enabled else 'off'}")
    if settings.router.enabled:
        click.echo(f"  Router:              {settings.router.host}:{settings.router.port}")


@cli.command("set-webhook")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None, help="YAML config file")
def set_webhook(config_path: str | None) -> None:
    """Register <public_url>/tg/webhook with Telegram."""
    from hotspot_gate.interfaces.telegram import TelegramNotifier

    settings = _load_or_exit(config_path)
    notifier = TelegramNotifier(settings.telegram.bot_token, settings.telegram.admin_chat_id, settings.public_url)
    url = f"{settings.public_url}/tg/webhook"

    async def _run() -> None:
        await notifier.start()
        try:
            await notifier.set_webhook(url)
        finally:
            await notifier.stop()

    asyncio.run(_run())
    click.echo(f"✅ Webhook set: {url}")


@cli.command()
@click.option("--config", "config_path", type=click.Path(dir_okay=False), default=None, help="YAML config file")
@click.option("--mac", required=True, help="Client MAC address (also the hotspot user name)")
@click.option("--profile", required=True, help="Hotspot user profile")
@click.option("--password", default="", help="Hotspot user password")
@click.option("--comment", default="hotspot-gate manual", help="Comment stored on the router")
def provision(config_path: str | None, mac: str, profile: str, password: str, comment: str) -> None:
    """Create one hotspot user on the router directly (single attempt)."""
    from hotspot_gate.lifecycle import router_target
    from hotspot_gate.routeros import provision_access

    settings = _load_or_exit(config_path)
    try:
        replies = provision_access(
            router_target(settings),
            username=mac,
            password=password,
            profile=profile,
            mac_address=mac,
            comment=comment,
            server_name=settings.router.hotspot_server,
        )
    except RouterError as e:
        hint = " (retryable)" if e.retryable else ""
        click.echo(f"❌ {e.message}{hint}", err=True)
        sys.exit(2)
    for sentence in replies:
        click.echo(" ".join(sentence))


if __name__ == "__main__":
    cli()
