# Copyright (c) 2025 Kenneth Stott
#
# This source code is licensed under the Business Source License 1.1
# found in the LICENSE file in the root directory of this source tree.
#
# NOTICE: Use of this software for training artificial intelligence or
# machine learning models is strictly prohibited without explicit written
# permission from the copyright holder.

"""Command-line interface for qrest."""

import json
import sys
from pathlib import Path
from typing import Any, Optional

import click
from rich.console import Console
from rich.table import Table

from qrest import __version__
from qrest.catalog.executor import TranslationError
from qrest.catalog.gateway import QueryGateway
from qrest.catalog.translator import ValidationError
from qrest.core.config import Config

console = Console()

SAMPLE_CONFIG = '''# qrest configuration
# Values of the form ${VAR} are read from the environment.

server:
  host: 127.0.0.1
  port: 8000
  cors_origins:
    - "*"

apis:
  - name: petstore
    description: Swagger Petstore sample API
    spec_url: https://petstore.swagger.io/v2/swagger.json
    # base_url: https://petstore.swagger.io/v2
    auth:
      type: none            # none | bearer | apikey | basic
      # token: ${PETSTORE_TOKEN}
      # header: X-API-Key   # apikey only
    timeout: 30s

defaults:
  max_limit: 1000
  default_limit: 100
  timeout: 30s
  strict_pagination: false  # fail instead of dropping LIMIT/OFFSET the API cannot express

logging:
  level: INFO
  format: text              # text | json
  # file: qrest.log
'''


def _load_config(ctx: click.Context) -> Config:
    """Build the config from --spec flags or a config file, exiting on error."""
    options = ctx.obj
    try:
        if options["spec"]:
            cfg = Config.from_cli(
                options["spec"],
                base_url=options["base_url"],
                auth_type=options["auth_type"],
                auth_token=options["auth_token"] or "",
            )
        else:
            cfg = Config.load(options["config"])
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Config error:[/red] {e}")
        sys.exit(1)

    if options["api"]:
        api = cfg.get_api(options["api"])
        if api is None:
            available = ", ".join(a.name for a in cfg.apis) or "(none)"
            console.print(f"[red]Unknown API '{options['api']}'.[/red] Configured APIs: {available}")
            sys.exit(1)
        cfg = cfg.model_copy(update={"apis": [api]})

    cfg.logging.apply("DEBUG" if options["verbose"] else None)
    return cfg


def _load_gateway(ctx: click.Context) -> QueryGateway:
    cfg = _load_config(ctx)
    with console.status("[bold]Discovering APIs...", spinner="dots"):
        gateway = QueryGateway(cfg).load()
    for name, reason in gateway.failures.items():
        console.print(f"[yellow]Warning:[/yellow] API '{name}' unavailable: {reason}")
    if not gateway.capabilities:
        console.print("[red]No tables discovered.[/red]")
        sys.exit(1)
    return gateway


def _format_cell(value: Any) -> str:
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return "" if value is None else str(value)


def _rows_table(rows: list[dict[str, Any]]) -> Table:
    columns: list[str] = []
    for row in rows:
        for key in row:
            if key not in columns:
                columns.append(key)

    table = Table(show_header=True)
    for column in columns:
        table.add_column(column)
    for row in rows:
        table.add_row(*(_format_cell(row.get(column)) for column in columns))
    return table


@click.group()
@click.version_option(version=__version__, prog_name="qrest")
@click.option(
    "--config", "-c",
    type=click.Path(exists=True, dir_okay=False),
    help="Path to config YAML file (default: $QREST_CONFIG, ./qrest.yaml, ~/.config/qrest/qrest.yaml).",
)
@click.option("--api", help="Only load the named API from the config.")
@click.option("--spec", help="OpenAPI document URL or path; bypasses the config file.")
@click.option("--base-url", help="Base URL for API requests (with --spec).")
@click.option(
    "--auth-type",
    type=click.Choice(["none", "bearer", "apikey", "basic"]),
    default="none",
    show_default=True,
    help="Authentication scheme (with --spec).",
)
@click.option("--auth-token", help="Authentication token (with --spec).")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[str],
    api: Optional[str],
    spec: Optional[str],
    base_url: Optional[str],
    auth_type: str,
    auth_token: Optional[str],
    verbose: bool,
):
    """qrest - SQL over REST APIs.

    \b
    Quick start:
        qrest --spec https://petstore.swagger.io/v2/swagger.json capabilities
        qrest -c qrest.yaml query "SELECT * FROM findByStatus WHERE status = 'sold' LIMIT 5"
    """
    ctx.obj = {
        "config": config,
        "api": api,
        "spec": spec,
        "base_url": base_url,
        "auth_type": auth_type,
        "auth_token": auth_token,
        "verbose": verbose,
    }


@cli.command()
@click.argument("sql")
@click.option(
    "--format", "-f", "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    show_default=True,
    help="Output format.",
)
@click.pass_context
def query(ctx: click.Context, sql: str, output_format: str):
    """Execute one SQL statement.

    \b
    Examples:
        qrest query "SELECT id, name FROM findByStatus WHERE status = 'available'"
        qrest query "DELETE FROM pet WHERE id = 10" -f json
    """
    with _load_gateway(ctx) as gateway:
        try:
            result = gateway.execute(sql)
        except ValidationError as e:
            console.print(f"[red]Invalid query:[/red] {e}")
            suggestions = gateway.suggestions_for(sql)
            if suggestions:
                console.print("\n[bold]Suggestions:[/bold]")
                for suggestion in suggestions:
                    console.print(f"  - {suggestion}")
            sys.exit(1)
        except (TranslationError, LookupError) as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)

    for warning in result.warnings:
        console.print(f"[yellow]Warning:[/yellow] {warning}")

    if result.error:
        console.print(f"[red]Error:[/red] {result.error}")
        sys.exit(1)

    if output_format == "json":
        click.echo(json.dumps(result.to_dict(), indent=2, default=str))
        return

    if result.rows:
        console.print(_rows_table(result.rows))
    console.print(f"[dim]{result.total} row(s)[/dim]")


@cli.command()
@click.option("--table", "-t", "table_name", help="Show one table only.")
@click.option("--json", "as_json", is_flag=True, help="Print as JSON.")
@click.pass_context
def grammar(ctx: click.Context, table_name: Optional[str], as_json: bool):
    """Show the SQL each table accepts."""
    with _load_gateway(ctx) as gateway:
        try:
            overview = gateway.grammar_overview(table_name)
        except LookupError as e:
            console.print(f"[red]Error:[/red] {e}")
            sys.exit(1)

    if as_json:
        click.echo(json.dumps(overview, indent=2))
        return

    table = Table(title="Grammar", show_header=True)
    table.add_column("Table", style="cyan")
    table.add_column("Method")
    table.add_column("Columns")
    table.add_column("WHERE")
    table.add_column("ORDER BY")
    table.add_column("LIMIT")
    for name, entry in overview.items():
        where = ", ".join(f"{column} ({' '.join(ops)})" for column, ops in entry["where"].items())
        limit = entry["limit"]
        table.add_row(
            name,
            entry["method"],
            ", ".join(entry["columns"]),
            where,
            ", ".join(entry["order_by"]),
            f"{limit['default']}/{limit['max']}" + (" paged" if limit["paging"] else ""),
        )
    console.print(table)

    if table_name:
        suggestions = overview[table_name]["suggestions"]
        if suggestions:
            console.print("\n[bold]Suggestions:[/bold]")
            for suggestion in suggestions:
                console.print(f"  - {suggestion}")


@cli.command()
@click.pass_context
def capabilities(ctx: click.Context):
    """List the tables discovered from each API."""
    with _load_gateway(ctx) as gateway:
        table = Table(title="Capabilities", show_header=True)
        table.add_column("Table", style="cyan")
        table.add_column("Method")
        table.add_column("Path")
        table.add_column("Summary")
        for name, capability in gateway.capabilities.items():
            table.add_row(name, capability.method, capability.path, capability.summary)
    console.print(table)


@cli.command()
@click.option(
    "--output", "-o",
    type=click.Path(dir_okay=False),
    default="qrest.yaml",
    show_default=True,
    help="Where to write the sample config.",
)
def init(output: str):
    """Create a sample config file."""
    config_path = Path(output)
    if config_path.exists():
        if not click.confirm(f"{config_path} already exists. Overwrite?"):
            console.print("[dim]Aborted.[/dim]")
            return

    config_path.write_text(SAMPLE_CONFIG)
    console.print(f"[green]Created:[/green] {config_path}")
    console.print("\n[dim]Edit the file to configure your APIs.[/dim]")


@cli.command()
@click.option("--host", "-h", help="Host to bind (default: server.host from config).")
@click.option("--port", "-p", type=int, help="Port to listen on (default: server.port from config).")
@click.pass_context
def serve(ctx: click.Context, host: Optional[str], port: Optional[int]):
    """Start the HTTP gateway.

    \b
    Examples:
        qrest -c qrest.yaml serve
        qrest -c qrest.yaml serve --port 9000
    """
    import uvicorn

    from qrest.server.app import create_app

    cfg = _load_config(ctx)
    host = host or cfg.server.host
    port = port or cfg.server.port
    log_level = "debug" if ctx.obj["verbose"] else cfg.logging.level.lower()

    console.print(f"[bold]Starting qrest server on {host}:{port}[/bold]")
    uvicorn.run(create_app(cfg), host=host, port=port, log_level=log_level)


def main():
    """Entry point for the CLI."""
    cli()
