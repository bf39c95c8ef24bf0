"""Main CLI entry point for cryptofolio.

This module provides the main click group and lazy loading
of command modules to keep startup fast.
"""

import importlib
import logging

import click

from cryptofolio.cli.context import AppContext, abort
from cryptofolio.config import load_settings
from cryptofolio.errors import ConfigurationError
from cryptofolio.logging_setup import setup_logging


class LazyGroup(click.Group):
    """A click Group that lazily loads commands.

    Command modules are only imported when they are invoked.
    """

    def __init__(self, *args, lazy_subcommands: dict[str, str] | None = None, **kwargs):
        """Initialize the lazy group.

        Args:
            lazy_subcommands: Mapping of command names to module paths.
        """
        super().__init__(*args, **kwargs)
        self._lazy_subcommands = lazy_subcommands or {}

    def list_commands(self, ctx: click.Context) -> list[str]:
        base = super().list_commands(ctx)
        return sorted(set(base + list(self._lazy_subcommands)))

    def get_command(self, ctx: click.Context, cmd_name: str) -> click.Command | None:
        if cmd_name in self.commands:
            return self.commands[cmd_name]
        if cmd_name in self._lazy_subcommands:
            return self._lazy_load(cmd_name)
        return None

    def _lazy_load(self, cmd_name: str) -> click.Command:
        module_path = self._lazy_subcommands[cmd_name]
        module = importlib.import_module(module_path)

        cmd = getattr(module, cmd_name, None)
        if not isinstance(cmd, click.Command):
            # Fall back to a command whose click name matches
            cmd = next(
                (
                    attr
                    for attr in vars(module).values()
                    if isinstance(attr, click.Command) and attr.name == cmd_name
                ),
                None,
            )
        if cmd is None:
            raise click.ClickException(f"Could not find command '{cmd_name}' in {module_path}")

        self.add_command(cmd)
        return cmd


LAZY_SUBCOMMANDS = {
    "shell": "cryptofolio.cli.shell",
    "portfolio": "cryptofolio.cli.portfolio",
    "prices": "cryptofolio.cli.portfolio",
    "ai": "cryptofolio.cli.ai",
    "wallet": "cryptofolio.cli.wallet",
    "journal": "cryptofolio.cli.journal",
    "market": "cryptofolio.cli.market",
}


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


@click.group(
    cls=LazyGroup,
    lazy_subcommands=LAZY_SUBCOMMANDS,
    context_settings=CONTEXT_SETTINGS,
    invoke_without_command=True,
)
@click.version_option(package_name="cryptofolio")
@click.option("-v", "--verbose", is_flag=True, default=False, help="Enable debug logging.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Cryptofolio - track crypto holdings, wallets and trading notes.

    Run without a command to start the interactive shell.

    \b
    Quick Start:
      cryptofolio                  # Interactive menu
      cryptofolio portfolio -r     # Refresh prices and show holdings
      cryptofolio ai full --save . # Full AI analysis saved to a file
    """
    if ctx.obj is None:
        try:
            ctx.obj = AppContext(load_settings())
        except ConfigurationError as e:
            abort(str(e))

    level = "DEBUG" if verbose else ctx.obj.settings.log_level
    setup_logging(level)
    logging.getLogger(__name__).debug("Using database %s", ctx.obj.settings.db_path)

    if ctx.invoked_subcommand is None:
        from cryptofolio.cli.shell import run_shell

        run_shell(ctx.obj)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
