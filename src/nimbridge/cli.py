"""CLI entry point."""

from __future__ import annotations

import asyncio
import json

import rich_click as click
import yaml
from rich.console import Console
from rich.table import Table

from nimbridge import __version__

# Configure rich-click styling
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.USE_MARKDOWN = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = "Try running '--help' for more information."
click.rich_click.MAX_WIDTH = 100

console = Console(stderr=True)


@click.group()
@click.version_option(version=__version__, prog_name="nimbridge")
def cli():
    """nimbridge - OpenAI-compatible proxy for NVIDIA NIM.

    Point any OpenAI Chat Completions client at the proxy and requests are
    forwarded to a NIM-compatible backend.

        nimbridge serve     Run the proxy server

        nimbridge models    Show the model name mapping
    """
    pass


@cli.command()
@click.option("--host", "-h", default=None, help="Host to bind to (env: HOST)")
@click.option("--port", "-p", type=int, default=None, help="Port to listen on (env: PORT)")
@click.option("--base-url", default=None, help="NIM API base URL (env: NIM_API_BASE)")
@click.option("--api-key", default=None, help="NIM API key (env: NIM_API_KEY)")
@click.option("--config", "-c", "config_file", default=None, help="YAML config file")
@click.option("--max-retries", type=int, default=None, help="Upstream retries (default 0)")
@click.option(
    "--max-concurrency",
    type=int,
    default=None,
    help="Cap on concurrent upstream calls (default 0, unlimited)",
)
@click.option("--debug-dir", default=None, help="Save request/response dumps here")
@click.option("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
@click.option(
    "--log-format",
    type=click.Choice(["text", "json"]),
    default=None,
    help="Log output format",
)
def serve(
    host: str | None,
    port: int | None,
    base_url: str | None,
    api_key: str | None,
    config_file: str | None,
    max_retries: int | None,
    max_concurrency: int | None,
    debug_dir: str | None,
    log_level: str | None,
    log_format: str | None,
):
    """Run the proxy server.

    **Examples:**

        export NIM_API_KEY=nvapi-...

        nimbridge serve

        nimbridge serve --port 8080 --config nimbridge.yaml
    """
    from nimbridge.compose import build_config
    from nimbridge.gateway.nim_proxy import NIMProxyServer
    from nimbridge.logging_config import configure_logging

    configure_logging(level=log_level, format=log_format)  # type: ignore[arg-type]

    try:
        config = build_config(
            host=host,
            port=port,
            upstream_base_url=base_url,
            upstream_api_key=api_key,
            max_retries=max_retries,
            max_concurrency=max_concurrency,
            debug_dir=debug_dir,
            config_file=config_file,
        )
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e

    console.print(f"[bold green]Starting NIM proxy[/] on http://{config.host}:{config.port}")
    console.print(f"Upstream: {config.upstream_base_url}")
    if config.debug_dir:
        console.print(f"Debug logs: {config.debug_dir}/logs/{{session_id}}/")
    if not config.upstream_api_key:
        console.print("[yellow]Warning:[/] NIM_API_KEY is not set")

    server = NIMProxyServer(config=config)
    try:
        asyncio.run(server.serve())
    except KeyboardInterrupt:
        console.print("Stopped")


@cli.command()
@click.option("--config", "-c", "config_file", default=None, help="YAML config file")
@click.option("--json", "-j", "json_output", is_flag=True, help="Output as JSON")
def models(config_file: str | None, json_output: bool):
    """Show which backend model each client model name maps to.

    Names that are not listed are forwarded to the backend unchanged.
    """
    from nimbridge.compose import build_model_mapping, load_config_file

    try:
        mapping = build_model_mapping(load_config_file(config_file))
    except (OSError, ValueError, yaml.YAMLError) as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e

    if json_output:
        click.echo(json.dumps(mapping, indent=2))
        return

    table = Table(title="Model mapping")
    table.add_column("Client model", style="cyan")
    table.add_column("Backend model", style="green")
    for client_model, backend_model in mapping.items():
        table.add_row(client_model, backend_model)
    Console().print(table)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
