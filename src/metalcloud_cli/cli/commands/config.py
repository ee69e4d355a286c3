"""
Configuration management CLI commands.

Commands for creating, showing and checking the CLI configuration file.
"""

import json

import click
import yaml

from metalcloud_cli.cli.helpers import load_config
from metalcloud_cli.exceptions import MetalCloudError

ENV_VARS = {
    "endpoint": "METALCLOUD_ENDPOINT",
    "api_key": "METALCLOUD_API_KEY",
    "user_email": "METALCLOUD_USER_EMAIL",
    "datacenter": "METALCLOUD_DATACENTER",
}


@click.group(name="config")
def config_cmd():
    """Commands for managing configuration."""
    pass


@config_cmd.command("init")
@click.option(
    "--interactive", "-i", is_flag=True, help="Interactive configuration setup"
)
@click.option("--force", is_flag=True, help="Overwrite existing configuration")
@click.pass_context
def init_config(ctx, interactive: bool, force: bool):
    """Initialize a new configuration file."""
    config_path = ctx.obj["config_path"]

    if config_path.exists() and not force:
        if not click.confirm(
            f"Configuration file {config_path} already exists. Overwrite?"
        ):
            click.echo("Configuration initialization cancelled")
            return

    if interactive:
        click.echo("Creating new Metal Cloud CLI configuration...")

        click.echo("\n--- API Settings ---")
        endpoint = click.prompt("API endpoint", default="https://api.metalsoft.io")
        api_key = click.prompt("API key (<user_id>:<secret>)", hide_input=True)
        user_email = click.prompt("User email", default="", show_default=False)
        datacenter = click.prompt("Default datacenter", default="", show_default=False)

        click.echo("\n--- Connection Settings ---")
        timeout_seconds = click.prompt("Request timeout (seconds)", default=30, type=int)
        verify_ssl = click.confirm("Verify SSL certificates?", default=True)

        config_data = {
            "endpoint": endpoint,
            "api_key": api_key,
            "timeout_seconds": timeout_seconds,
            "insecure_skip_verify": not verify_ssl,
        }
        if user_email:
            config_data["user_email"] = user_email
        if datacenter:
            config_data["datacenter"] = datacenter

    else:
        config_data = {
            "endpoint": "https://api.metalsoft.io",
            "api_key": "<user_id>:<secret>",
            "timeout_seconds": 30,
            "insecure_skip_verify": False,
        }

    try:
        config_path.parent.mkdir(parents=True, exist_ok=True)

        with open(config_path, "w") as f:
            f.write("# Metal Cloud CLI Configuration\n")
            f.write("# WARNING: Do not commit your API key\n\n")
            yaml.dump(config_data, f, default_flow_style=False, sort_keys=False)

        click.echo(f"\n✓ Configuration created at {config_path}")

        if interactive:
            click.echo("\n⚠️  Security Note:")
            click.echo("Your API key is stored in the config file.")
            click.echo("Consider using environment variables instead:")
            for name in ENV_VARS.values():
                click.echo(f"  {name}")

    except OSError as e:
        raise click.ClickException(f"Error creating configuration: {e}") from e


@config_cmd.command("show")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["human", "json", "yaml"]),
    default="human",
    help="Output format",
)
@click.pass_context
def show_config(ctx, output_format: str):
    """Show current configuration, with the API secret hidden."""
    config_path = ctx.obj["config_path"]
    config = load_config(config_path)
    data = config.masked()

    if output_format == "json":
        click.echo(json.dumps(data, indent=2))
    elif output_format == "yaml":
        click.echo(yaml.dump(data, default_flow_style=False, sort_keys=False))
    else:
        click.echo(f"Configuration from: {config_path}")
        click.echo("\nAPI:")
        click.echo(f"  Endpoint: {config.endpoint or '(not set)'}")
        click.echo(f"  API key: {data['api_key'] or '(not set)'}")
        click.echo(f"  User email: {config.user_email or '(not set)'}")
        click.echo(f"  Datacenter: {config.datacenter or '(not set)'}")
        click.echo("\nConnection:")
        click.echo(f"  Timeout: {config.timeout_seconds}s")
        click.echo(f"  Verify SSL: {config.verify_ssl}")
        click.echo(f"  Log API calls: {config.logging_enabled}")
        click.echo(f"  Admin: {config.admin}")


@config_cmd.command("validate")
@click.pass_context
def validate_config(ctx):
    """Validate configuration file and environment."""
    config_path = ctx.obj["config_path"]
    config = load_config(config_path)

    try:
        config.validate_for_api()
    except MetalCloudError as e:
        raise click.ClickException(f"Configuration validation failed: {e}") from e

    click.echo("✓ Configuration is valid")

    if not config_path.exists():
        click.echo(
            f"⚠️  Warning: {config_path} does not exist, settings come from the environment"
        )
    if not config.verify_ssl:
        click.echo("⚠️  Warning: SSL certificate verification is disabled")
    if not config.user_email:
        click.echo("⚠️  Warning: No user email configured")
