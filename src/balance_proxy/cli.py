import click
import tomlkit
from pydantic import TypeAdapter

from balance_proxy.config import settings
from balance_proxy.exceptions import BalanceProxyError
from balance_proxy.universal_router import decode_router_call, rewrite_router_calldata
from balance_proxy.version import __version__


@click.group()
@click.version_option(version=__version__)
def cli() -> None: ...


@cli.group()
def config() -> None:
    """
    Configuration commands
    """


@config.command("show")
@click.option(
    "--json",
    "output_format",
    flag_value="json",
    type=str,
    help="Show configuration in JSON format",
)
@click.option(
    "--toml",
    "output_format",
    flag_value="toml",
    type=str,
    help="Show configuration in TOML format (default)",
    default=True,
)
def config_show(output_format: str) -> None:
    """
    Display the current configuration in JSON or TOML (default) format.
    """

    match output_format:
        case "json":
            click.echo(
                TypeAdapter(dict).dump_json(
                    settings.model_dump(mode="json"),
                    indent=2,
                ),
            )
        case "toml":
            click.echo(
                tomlkit.dumps(
                    settings.model_dump(mode="json", exclude_none=True),
                ),
            )
        case _:
            ...


@cli.command("commands")
@click.argument("calldata")
def commands(calldata: str) -> None:
    """
    List the commands of a Universal Router `execute` call.
    """

    try:
        call = decode_router_call(calldata)
    except BalanceProxyError as exc:
        raise click.ClickException(str(exc)) from exc

    for index, (command, data) in enumerate(zip(call.commands, call.inputs, strict=True)):
        click.echo(f"{index}: 0x{command.raw:02x} {command} ({len(data)} bytes)")
    if call.deadline is not None:
        click.echo(f"deadline: {call.deadline}")


@cli.command("rewrite")
@click.argument("calldata")
@click.option("--user", required=True, help="Address receiving the swap output")
@click.option(
    "--fail-closed/--best-effort",
    default=None,
    help="Abort instead of keeping a command whose layout does not match",
)
def rewrite(calldata: str, user: str, fail_closed: bool | None) -> None:  # noqa: FBT001
    """
    Rewrite Universal Router calldata for execution through the balance proxy.
    """

    try:
        result = rewrite_router_calldata(calldata, user, fail_closed=fail_closed)
    except (BalanceProxyError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc

    if not result.is_router_call:
        click.echo("Not a Universal Router call, calldata unchanged", err=True)
    for warning in result.warnings:
        click.echo(f"warning: {warning}", err=True)
    click.echo("0x" + result.calldata.hex())
