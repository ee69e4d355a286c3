"""
Metal Cloud CLI - command line interface.

Provides command line access to servers, storage pools and jobs of a Metal
Cloud installation, plus configuration utilities.
"""

import logging
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.logging import RichHandler

from metalcloud_cli import __version__
from metalcloud_cli.cli.commands.config import config_cmd
from metalcloud_cli.cli.commands.jobs import job
from metalcloud_cli.cli.commands.servers import server
from metalcloud_cli.cli.commands.storage import storage
from metalcloud_cli.config.config import DEFAULT_CONFIG_PATH

console = Console(stderr=True)


def setup_logging(debug: bool = False) -> None:
    """Set up logging with Rich handler."""
    level = logging.DEBUG if debug else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)],
    )

    logging.getLogger("metalcloud_cli").setLevel(level)

    # Suppress noisy third-party loggers unless in debug mode
    if not debug:
        logging.getLogger("requests").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)


@click.group(invoke_without_command=True)
@click.option(
    "--config",
    "-c",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help=f"Configuration file path (default: {DEFAULT_CONFIG_PATH})",
)
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--quiet", is_flag=True, help="Suppress non-error output")
@click.version_option(__version__, prog_name="metalcloud-cli")
@click.pass_context
def cli(ctx: click.Context, config: Optional[Path], debug: bool, quiet: bool) -> None:
    """
    Metal Cloud CLI - manage bare-metal servers, storage pools and jobs.

    Settings come from the configuration file and from METALCLOUD_*
    environment variables, which take precedence.

    \b
    Examples:
        metalcloud-cli server list --filter 'server_status:available,used'
        metalcloud-cli server get --id 100 --format yaml
        metalcloud-cli storage list --show-decommissioned
        metalcloud-cli job list --watch 4s
        metalcloud-cli config init
    """
    setup_logging(debug and not quiet)

    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config or DEFAULT_CONFIG_PATH
    ctx.obj["debug"] = debug
    ctx.obj["quiet"] = quiet

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


cli.add_command(server)
cli.add_command(server, name="srv")
cli.add_command(storage)
cli.add_command(storage, name="storages")
cli.add_command(job)
cli.add_command(job, name="jobs")
cli.add_command(job, name="afc")
cli.add_command(config_cmd, name="config")


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
