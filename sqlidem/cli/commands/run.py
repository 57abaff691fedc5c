"""Script execution command for sqlidem CLI."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import click

from sqlidem.config import ConfigParser, EnvironmentSettings
from sqlidem.cli.utils import instantiate
from sqlidem.db.factories import (
    ConnectionFactory,
    SimpleConnectionFactory,
    chain,
    from_config,
    unsupported,
)
from sqlidem.exceptions import ConfigurationError
from sqlidem.script.engine import EngineConfig, ScriptEngine
from sqlidem.script.environment import from_pairs
from sqlidem.script.handlers import ChainingCommandHandler, CommandHandler

logger = logging.getLogger(__name__)


def _instances(class_names: Tuple[str, ...], kind: str, base: type, option: str) -> List[Any]:
    instances = []
    for class_name in class_names:
        try:
            instance = instantiate(class_name, kind)
        except (LookupError, TypeError) as e:
            raise click.BadParameter(str(e), param_hint=option) from e
        if not isinstance(instance, base):
            raise click.BadParameter(
                f"{kind} class {class_name} is not a {base.__name__}", param_hint=option
            )
        instances.append(instance)
    return instances


@click.command(name="run")
@click.option(
    "--db", "databases", nargs=4, multiple=True, metavar="NAME URL USER PASSWORD",
    help="Add a database; URL is a SQLAlchemy URL",
)
@click.option(
    "--var", "variables", nargs=2, multiple=True, metavar="NAME VALUE",
    help="Define a variable for !if conditions",
)
@click.option(
    "--factory", "factories", multiple=True, metavar="CLASS",
    help="Add a connection factory class, as package.module:Class",
)
@click.option(
    "--command-handler", "command_handlers", multiple=True, metavar="CLASS",
    help="Add a command handler class, as package.module:Class",
)
@click.option("--stack-limit", type=click.IntRange(min=1), help="Maximum length of a stack trace")
@click.argument("in_file", required=False, type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("out_file", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.pass_context
def run_command(
    ctx: click.Context,
    databases: Tuple[Tuple[str, str, str, str], ...],
    variables: Tuple[Tuple[str, str], ...],
    factories: Tuple[str, ...],
    command_handlers: Tuple[str, ...],
    stack_limit: Optional[int],
    in_file: Optional[Path],
    out_file: Optional[Path],
) -> None:
    """Run script IN_FILE and write it, with actual results, to OUT_FILE."""
    if in_file is None or out_file is None:
        raise click.UsageError("Insufficient arguments: need inFile and outFile", ctx=ctx)

    obj = ctx.obj or {}
    settings = obj.get("settings") or EnvironmentSettings()
    try:
        app_config = ConfigParser(settings).load_config(obj.get("config"))
    except ConfigurationError as e:
        raise click.BadParameter(str(e), param_hint="--config") from e

    connection_factories: List[ConnectionFactory] = [
        SimpleConnectionFactory(name, url, user, password)
        for name, url, user, password in databases
    ]
    connection_factories.append(from_config(app_config.databases))
    connection_factories += _instances(factories, "Factory", ConnectionFactory, "--factory")
    connection_factories.append(unsupported())
    handlers = _instances(command_handlers, "Command handler", CommandHandler, "--command-handler")

    env: Dict[str, Any] = dict(app_config.variables)
    env.update(from_pairs(variables))
    limit = stack_limit or app_config.stack_limit or settings.stack_limit

    connection_factory = chain(*connection_factories)
    logger.info(f"Running {in_file} into {out_file}")
    try:
        with open(in_file, "r", encoding="utf-8") as reader, \
                open(out_file, "w", encoding="utf-8") as writer:
            config = EngineConfig(
                reader=reader,
                writer=writer,
                connection_factory=connection_factory,
                env=env,
                command_handler=ChainingCommandHandler(handlers),
                stack_limit=limit,
            )
            ScriptEngine(config).execute()
    finally:
        connection_factory.close()
