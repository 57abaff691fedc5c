"""Main CLI entry point for sqlidem."""

from __future__ import annotations

import sys
from typing import List, Optional

import click

from sqlidem import __version__
from sqlidem.cli.commands import register_commands
from sqlidem.cli.commands.run import run_command
from sqlidem.cli.utils import console, print_exception, setup_logging
from sqlidem.config import EnvironmentSettings

# Exit codes
EXIT_OK = 0
EXIT_USAGE = 1
EXIT_FAILURE = 2


@click.group()
@click.version_option(__version__, prog_name="sqlidem")
@click.option("--config", type=click.Path(exists=True, dir_okay=False), help="Path to configuration file")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """sqlidem - run SQL scripts and rewrite them with actual results."""
    settings = EnvironmentSettings()
    setup_logging("DEBUG" if verbose or settings.debug else settings.log_level)
    ctx.ensure_object(dict)
    ctx.obj.update(
        {
            "config": config,
            "verbose": verbose,
            "settings": settings,
        }
    )


COMMAND_REGISTRY = [
    run_command,
]

register_commands(cli, COMMAND_REGISTRY)


def main(args: Optional[List[str]] = None) -> int:
    """Run the CLI and return its exit code.

    Returns:
        0 on success or help, 1 for invalid arguments, 2 for other failures.
    """
    argv = list(sys.argv[1:] if args is None else args)
    try:
        result = cli.main(args=argv, prog_name="sqlidem", standalone_mode=False)
    except click.UsageError as e:
        e.show()
        return EXIT_USAGE
    except click.Abort:
        console.print("Aborted!")
        return EXIT_USAGE
    except click.ClickException as e:
        e.show()
        return EXIT_FAILURE
    except Exception as e:
        print_exception("Error running script", e, verbose="--verbose" in argv or "-v" in argv)
        return EXIT_FAILURE
    return result if isinstance(result, int) else EXIT_OK


def run() -> None:
    """Console script entry point."""
    sys.exit(main())


if __name__ == "__main__":
    run()
