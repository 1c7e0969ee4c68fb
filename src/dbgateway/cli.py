"""Operator command line for the database gateway."""
import pathlib
from typing import Optional

import typer
from rich.table import Table
from typing_extensions import Annotated

from dbgateway.common.errors import ConfigurationError
from dbgateway.common.logger import configure_logging
from dbgateway.common.settings import settings
from dbgateway.console import console, print_error, print_result, print_warning
from dbgateway.gateway import DatabaseGateway, build_gateway

app = typer.Typer(
    name="dbgateway",
    help="Run SQL across named database backends and post-process results.",
    no_args_is_help=True,
    add_completion=False,
)

ConfigOption = Annotated[Optional[pathlib.Path], typer.Option("--config", help="Path to datasource config YAML")]
ExtensionsConfigOption = Annotated[
    Optional[pathlib.Path], typer.Option("--extensions-config", help="Path to extension config YAML")
]


@app.callback()
def global_callback(
    env: Annotated[Optional[str], typer.Option("--env", "-e", help="Environment name; loads .env.<name>.")] = None,
    json_logs: Annotated[bool, typer.Option("--json-logs", help="Emit structured JSON logs.")] = False,
):
    """
    dbgateway CLI Entry Point.
    """
    if env:
        settings.configure_env(env)
    if json_logs or env:
        configure_logging(level=settings.log_level, json_format=json_logs or settings.log_json)


def _open_gateway(config: Optional[pathlib.Path], extensions_config: Optional[pathlib.Path]) -> DatabaseGateway:
    try:
        return build_gateway(settings, datasource_config=config, extension_config=extensions_config)
    except (FileNotFoundError, ConfigurationError) as e:
        print_error(str(e))
        raise typer.Exit(code=1)


@app.command()
def sql(
    statement: Annotated[str, typer.Argument(help="SQL statement, sent to the driver as written")],
    datasource: Annotated[Optional[str], typer.Option("--datasource", "-d", help="Run on this datasource only")] = None,
    default: Annotated[bool, typer.Option("--default", help="Run on the default datasource only")] = False,
    config: ConfigOption = None,
    extensions_config: ExtensionsConfigOption = None,
):
    """
    Execute a statement on all datasources, one named datasource, or the default.
    """
    if datasource and default:
        print_error("--datasource and --default are mutually exclusive")
        raise typer.Exit(code=2)

    with _open_gateway(config, extensions_config) as gateway:
        if datasource:
            result = gateway.execute_sql_with_datasource(datasource, statement)
        elif default:
            result = gateway.execute_sql_on_default(statement)
        else:
            result = gateway.execute_sql(statement)
    print_result(result)


@app.command()
def datasources(
    config: ConfigOption = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print raw JSON instead of a table")] = False,
):
    """
    Show every configured datasource with its detected dialect.
    """
    with _open_gateway(config, None) as gateway:
        info = gateway.get_datasources_info()

    if as_json:
        print_result(info)
        return
    if not info["datasources"]:
        print_warning("No datasources configured.")
        return

    table = Table(title=f"Datasources ({info['total_count']})")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Type", style="magenta")
    table.add_column("Version")
    table.add_column("Driver")
    table.add_column("URL", style="dim")
    table.add_column("Default", style="green")

    for name, ds in info["datasources"].items():
        table.add_row(
            name,
            ds["database_type"],
            ds["database_version"],
            f"{ds['driver_name']} {ds['driver_version']}",
            ds["connection_url"],
            "✔" if ds["is_default"] else "",
        )
    console.print(table)


@app.command()
def extensions(
    config: ConfigOption = None,
    extensions_config: ExtensionsConfigOption = None,
):
    """
    List the registered extensions.
    """
    with _open_gateway(config, extensions_config) as gateway:
        listed = gateway.get_all_extensions()

    table = Table(title="Extensions")
    table.add_column("Name", style="cyan", no_wrap=True)
    table.add_column("Description")
    table.add_column("Parameters", style="magenta")
    for ext in listed:
        params = ", ".join(p["name"] + ("" if p["required"] else "?") for p in ext["parameters"])
        table.add_row(ext["name"], ext["description"], params)
    console.print(table)


@app.command()
def extension(
    name: Annotated[str, typer.Argument(help="Extension name")],
    input_text: Annotated[str, typer.Argument(metavar="INPUT", help="Text to transform")],
    config: ConfigOption = None,
    extensions_config: ExtensionsConfigOption = None,
):
    """
    Apply an extension to a piece of text.
    """
    with _open_gateway(config, extensions_config) as gateway:
        result = gateway.execute_extension(name, input_text)
    print_result(result)
    if isinstance(result, dict) and result.get("error_code"):
        raise typer.Exit(code=1)


def main():
    app()


if __name__ == "__main__":
    main()
