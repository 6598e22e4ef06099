"""Manage the casbin_rule table from the command line."""

import asyncio
from typing import Optional

import typer
from pydantic import ValidationError

from casbin_sql_adapter.core.config import Settings, settings
from casbin_sql_adapter.core.db import get_engine, init_db
from casbin_sql_adapter.core.exceptions import AdapterError
from casbin_sql_adapter.core.logging import setup_logger
from casbin_sql_adapter.core.update_casbin_policies import update_policies
from casbin_sql_adapter.crud import CasbinRuleCrud

cli = typer.Typer(help=__doc__)


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj["settings"]


async def _with_crud(cli_settings: Settings, work):
    engine = get_engine(cli_settings)
    try:
        return await work(CasbinRuleCrud(engine))
    finally:
        await engine.dispose()


@cli.callback()
def main(
    ctx: typer.Context,
    database_url: Optional[str] = typer.Option(
        None, "--database-url", help="Override DATABASE_URL for this command"
    ),
):
    cli_settings = settings
    if database_url:
        values = settings.model_dump(exclude={"DATABASE_DIALECT"})
        values["DATABASE_URL"] = database_url
        try:
            cli_settings = Settings(**values)
        except ValidationError as e:
            raise typer.BadParameter(
                e.errors()[0]["msg"], param_hint="--database-url"
            )
    setup_logger("casbin_sql_adapter", cli_settings)
    ctx.obj = {"settings": cli_settings}


@cli.command("init-db")
def init_db_command(ctx: typer.Context):
    """Create the casbin_rule table if it does not exist."""

    async def work():
        engine = get_engine(_settings(ctx))
        try:
            await init_db(engine)
        finally:
            await engine.dispose()

    asyncio.run(work())
    typer.echo("casbin_rule table is ready")


@cli.command("load-policies")
def load_policies_command(
    ctx: typer.Context,
    file_path: str = typer.Argument(..., help="JSON policy file"),
):
    """Replace stored rules with the ones defined in a JSON policy file."""
    try:
        counts = asyncio.run(
            _with_crud(_settings(ctx), lambda crud: update_policies(crud, file_path))
        )
    except (ValueError, AdapterError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1)
    for ptype, count in sorted(counts.items()):
        typer.echo(f"{ptype}: {count} rules")


@cli.command("list")
def list_command(
    ctx: typer.Context,
    ptype: Optional[str] = typer.Option(None, "--ptype", help="Only show this ptype"),
):
    """Print stored rules, one per line."""
    rows = asyncio.run(_with_crud(_settings(ctx), lambda crud: crud.load_all()))
    for row in rows:
        if ptype and row.ptype != ptype:
            continue
        typer.echo(str(row))


@cli.command("clear")
def clear_command(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete every stored rule."""
    if not yes:
        typer.confirm("Delete all Casbin rules?", abort=True)
    asyncio.run(_with_crud(_settings(ctx), lambda crud: crud.clear()))
    typer.echo("All rules deleted")


if __name__ == "__main__":
    cli()
