#!/usr/bin/env python3
"""
Command line entry point for regroute.

- ``render``: build the routing configuration for a catalog snapshot file
- ``watch``: follow a Consul catalog and print every new configuration
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import click
from loguru import logger
from rich.console import Console
from rich.table import Table

from ..core.config import CatalogProviderSettings
from ..core.logging import configure_logging
from ..datastructures.catalog_types import ServiceRecord
from ..datastructures.routing_config import RoutingConfig
from ..provider.builder import ConfigBuilder
from ..provider.consul_client import ConsulCatalogClient
from ..provider.errors import ConfigurationError
from ..provider.watcher import CatalogWatcher

console = Console()


def load_settings(
    config_path: str | None, **overrides: Any
) -> CatalogProviderSettings:
    settings = (
        CatalogProviderSettings.from_path(config_path)
        if config_path
        else CatalogProviderSettings()
    )
    return settings.with_overrides(**overrides)


def apply_log_level(settings: CatalogProviderSettings) -> None:
    """Reconfigure logging from settings; ``-v`` still forces DEBUG."""
    ctx = click.get_current_context()
    verbose = bool((ctx.obj or {}).get("verbose"))
    configure_logging(
        "DEBUG" if verbose else settings.log_level, colorize=sys.stderr.isatty()
    )


def load_catalog(path: Path) -> list[ServiceRecord]:
    """Read a catalog snapshot: a list of services or ``{"services": [...]}``."""
    payload = json.loads(path.read_text())
    if isinstance(payload, dict):
        payload = payload.get("services", [])
    if not isinstance(payload, list):
        raise click.BadParameter(
            "catalog must be a list of services", param_hint="CATALOG"
        )
    return [ServiceRecord.from_dict(item) for item in payload]


def display_config(config: RoutingConfig) -> None:
    table = Table(title="Routing configuration")
    table.add_column("Frontend", style="cyan")
    table.add_column("Rule")
    table.add_column("Backend", style="magenta")
    table.add_column("Servers")
    for frontend_key, frontend in sorted(config.frontends.items()):
        backend = config.backends.get(frontend.backend)
        servers = (
            "\n".join(
                f"{server.url} (weight {server.weight})"
                for _, server in sorted(backend.servers.items())
            )
            if backend
            else ""
        )
        rules = "\n".join(route.rule for route in frontend.routes.values())
        table.add_row(frontend_key, rules, frontend.backend, servers)
    console.print(table)


def settings_options(func):
    options = [
        click.option(
            "--config",
            "-c",
            "config_path",
            type=click.Path(exists=True),
            help="Settings file (TOML with a [regroute] table)",
        ),
        click.option("--domain", help="Domain suffix for default rules"),
        click.option("--prefix", help="Tag prefix; empty string disables prefixing"),
        click.option(
            "--exposed-by-default/--no-exposed-by-default",
            default=None,
            help="Expose services without an enable tag",
        ),
        click.option("--rule", "frontend_rule", help="Default frontend rule template"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx, verbose: bool):
    """Generate reverse-proxy routing configuration from a service registry."""
    configure_logging("DEBUG" if verbose else "INFO", colorize=sys.stderr.isatty())
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@cli.command()
@click.argument("catalog", type=click.Path(exists=True, path_type=Path))
@settings_options
@click.option(
    "--output",
    "-o",
    type=click.Choice(["json", "table"]),
    default="json",
    help="Output format",
)
def render(
    catalog: Path,
    config_path: str | None,
    domain: str | None,
    prefix: str | None,
    exposed_by_default: bool | None,
    frontend_rule: str | None,
    output: str,
):
    """Render the routing configuration for a catalog snapshot."""
    try:
        settings = load_settings(
            config_path,
            domain=domain,
            prefix=prefix,
            exposed_by_default=exposed_by_default,
            frontend_rule=frontend_rule,
        )
        builder = ConfigBuilder.from_settings(settings)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc
    apply_log_level(settings)

    try:
        records = load_catalog(catalog)
    except (AttributeError, TypeError, ValueError) as exc:
        raise click.ClickException(f"Cannot read catalog {catalog}: {exc}") from exc

    config = builder.build(records)
    if output == "table":
        display_config(config)
    else:
        click.echo(json.dumps(config.to_dict(), indent=2))


@cli.command()
@settings_options
@click.option("--endpoint", help="Consul address (host:port)")
@click.option("--datacenter", help="Consul datacenter")
@click.option("--token", envvar="CONSUL_HTTP_TOKEN", help="Consul ACL token")
def watch(
    config_path: str | None,
    domain: str | None,
    prefix: str | None,
    exposed_by_default: bool | None,
    frontend_rule: str | None,
    endpoint: str | None,
    datacenter: str | None,
    token: str | None,
):
    """Follow a Consul catalog and print each new configuration as JSON."""
    try:
        settings = load_settings(
            config_path,
            domain=domain,
            prefix=prefix,
            exposed_by_default=exposed_by_default,
            frontend_rule=frontend_rule,
            endpoint=endpoint,
            datacenter=datacenter,
            token=token,
        )
        builder = ConfigBuilder.from_settings(settings)
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc
    apply_log_level(settings)

    def _print_config(config: RoutingConfig) -> None:
        click.echo(json.dumps(config.to_dict(), indent=2))

    async def _watch():
        async with ConsulCatalogClient(
            base_url=settings.registry_url,
            datacenter=settings.datacenter,
            token=settings.token,
            wait=settings.watch_wait,
        ) as client:
            watcher = CatalogWatcher(
                client=client,
                builder=builder,
                sink=_print_config,
                retry_delay=settings.retry_delay,
            )
            logger.info("Watching Consul catalog at {}", settings.registry_url)
            await watcher.run()

    try:
        asyncio.run(_watch())
    except KeyboardInterrupt:
        logger.info("Stopped")


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
