"""Command-line interface for drop.

Usage: drop [OPTIONS] [COMMAND | KEY]

A bare KEY prints the value stored at KEY; no arguments list the keys.
Every command has a short alias (``a`` for ``add``, ``xpc`` for
``xprintc`` ...).
"""
from __future__ import annotations

from pathlib import Path

import click
from dotenv import load_dotenv

from .config import ConfigurationError, DropConfig
from .dispatcher import Command, Operation, TransferType, run_command
from .logging import LogLevel, configure_logging

ALIASES: dict[str, str] = {
    "a": "add",
    "d": "delete",
    "f": "fulllist",
    "l": "list",
    "h": "help",
    "xa": "xadd",
    "xac": "xaddc",
    "xp": "xprint",
    "xpc": "xprintc",
}


class DropGroup(click.Group):
    """Group that understands command aliases and treats unknown words as keys."""

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        return super().get_command(ctx, ALIASES.get(cmd_name, cmd_name))

    def resolve_command(self, ctx: click.Context, args: list[str]):
        cmd_name = args[0]
        if not cmd_name.startswith("-") and self.get_command(ctx, cmd_name) is None:
            return "print", self.get_command(ctx, "print"), args
        return super().resolve_command(ctx, args)

    def format_commands(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        super().format_commands(ctx, formatter)
        reverse = {}
        for alias, name in ALIASES.items():
            reverse.setdefault(name, []).append(alias)
        with formatter.section("Aliases"):
            formatter.write_dl(
                [(", ".join(aliases), name) for name, aliases in sorted(reverse.items())]
            )


def _run(ctx: click.Context, command: Command) -> None:
    ctx.exit(run_command(command, ctx.obj))


@click.group(
    cls=DropGroup,
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option(
    "--db",
    "database",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Database file (overrides DROP_DATABASE and the data directory search).",
)
@click.option(
    "--log-level",
    type=click.Choice([level.value for level in LogLevel], case_sensitive=False),
    help="Diagnostic log level (default: WARNING, or DROP_LOG_LEVEL).",
)
@click.pass_context
def cli(ctx: click.Context, database: Path | None, log_level: str | None) -> None:
    """Store single-line notes and secrets by key.

    If only KEY is given, the matching value is printed to stdout. If no
    arguments are given, a list of keys is printed.

    For xadd and xprint, the trailing 'c' variants use the CLIPBOARD
    selection buffer; otherwise PRIMARY is used.
    """
    try:
        config = DropConfig.from_env()
    except ConfigurationError as exc:
        click.echo(str(exc), err=True)
        ctx.exit(1)
    if database is not None:
        config.database = database
    if log_level is not None:
        config.log_level = LogLevel(log_level.upper())
    configure_logging(config.log_config())
    ctx.obj = config

    if ctx.invoked_subcommand is None:
        _run(ctx, Command(Operation.LIST))


@cli.command("add")
@click.argument("key")
@click.pass_context
def add(ctx: click.Context, key: str) -> None:
    """Add an item at KEY (prompts for the value)."""
    _run(ctx, Command(Operation.ADD, key))


@cli.command("delete")
@click.argument("key")
@click.pass_context
def delete(ctx: click.Context, key: str) -> None:
    """Delete the item at KEY."""
    _run(ctx, Command(Operation.DELETE, key))


@cli.command("list")
@click.pass_context
def list_keys(ctx: click.Context) -> None:
    """List all keys."""
    _run(ctx, Command(Operation.LIST))


@cli.command("fulllist")
@click.pass_context
def full_list(ctx: click.Context) -> None:
    """List all keys with their associated data."""
    _run(ctx, Command(Operation.FULL_LIST))


@cli.command("print")
@click.argument("key", required=False)
@click.pass_context
def print_value(ctx: click.Context, key: str | None) -> None:
    """Print the item at KEY to stdout."""
    _run(ctx, Command(Operation.PRINT, key))


@cli.command("xadd")
@click.argument("key")
@click.pass_context
def xadd(ctx: click.Context, key: str) -> None:
    """Add an item at KEY from the PRIMARY selection."""
    _run(ctx, Command(Operation.ADD, key, TransferType.PRIMARY))


@cli.command("xaddc")
@click.argument("key")
@click.pass_context
def xaddc(ctx: click.Context, key: str) -> None:
    """Add an item at KEY from the CLIPBOARD selection."""
    _run(ctx, Command(Operation.ADD, key, TransferType.CLIPBOARD))


@cli.command("xprint")
@click.argument("key")
@click.pass_context
def xprint(ctx: click.Context, key: str) -> None:
    """Put the item at KEY into the PRIMARY selection."""
    _run(ctx, Command(Operation.PRINT, key, TransferType.PRIMARY))


@cli.command("xprintc")
@click.argument("key")
@click.pass_context
def xprintc(ctx: click.Context, key: str) -> None:
    """Put the item at KEY into the CLIPBOARD selection."""
    _run(ctx, Command(Operation.PRINT, key, TransferType.CLIPBOARD))


@cli.command("help")
@click.pass_context
def help_command(ctx: click.Context) -> None:
    """Print this message."""
    click.echo(ctx.parent.get_help())


def main(argv: list[str] | None = None) -> None:
    """Console script entry point."""
    load_dotenv()
    cli.main(args=argv, prog_name="drop")


if __name__ == "__main__":
    main()
