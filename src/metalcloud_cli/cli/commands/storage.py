"""
Storage pool CLI commands.
"""

import logging
from typing import Optional

import click

from metalcloud_cli.cli.formatters import (
    OutputFormatter,
    SchemaField,
    StyledValue,
    Table,
    format_option,
)
from metalcloud_cli.cli.helpers import get_client, read_raw_object, storage_status_style
from metalcloud_cli.exceptions import MetalCloudError
from metalcloud_cli.filtering import convert_to_search_field_format
from metalcloud_cli.models.metalcloud_types import StoragePool, StoragePoolSearchResult

logger = logging.getLogger(__name__)

MBYTES_PER_TBYTE = 1024 * 1024


def describe_capacity(pool: StoragePoolSearchResult) -> StyledValue:
    """Physical usage, total and virtual allocation in TB, red from 50% used."""
    total = pool.storage_pool_capacity_total_cached_real_mbytes
    used = total - pool.storage_pool_capacity_free_cached_real_mbytes
    used_fraction = used / total if total else 0.0

    text = (
        f"{used / MBYTES_PER_TBYTE:.2f} TB physically used out of "
        f"{total / MBYTES_PER_TBYTE:.2f} TB total, "
        f"{pool.storage_pool_capacity_used_cached_virtual_mbytes / MBYTES_PER_TBYTE:.2f}"
        " TB virtually allocated"
    )
    return StyledValue(text, "red" if used_fraction >= 0.5 else "green")


@click.group(name="storage")
def storage():
    """Commands for managing storage pools."""
    pass


@storage.command("list")
@click.option(
    "--filter",
    "filter_",
    default="*",
    show_default=True,
    help="Search filter, e.g. 'datacenter_name:dc1,dc2'",
)
@click.option(
    "--show-credentials",
    is_flag=True,
    help="Include storage credentials (one extra API call per pool)",
)
@click.option(
    "--show-decommissioned",
    is_flag=True,
    help="Include decommissioned pools, normally hidden",
)
@format_option()
@click.pass_context
def list_storage(
    ctx,
    filter_: str,
    show_credentials: bool,
    show_decommissioned: bool,
    output_format: str,
):
    """List storage pools."""
    formatter = OutputFormatter(output_format, ctx.obj.get("quiet", False))
    client = get_client(ctx.obj["config_path"])

    schema = [
        SchemaField("ID"),
        SchemaField("STATUS", storage_status_style),
        SchemaField("NAME"),
        SchemaField("ENDPOINT"),
        SchemaField("CAPACITY"),
        SchemaField("DATACENTER"),
    ]
    if show_credentials:
        schema += [SchemaField("USER"), SchemaField("PASS")]

    status_counts = {"active": 0, "maintenance": 0, "decommissioned": 0}
    rows = []

    try:
        pools = client.storage_pool_search(convert_to_search_field_format(filter_))

        for pool in pools:
            if pool.storage_pool_status == "decommissioned" and not show_decommissioned:
                continue
            status_counts[pool.storage_pool_status] = (
                status_counts.get(pool.storage_pool_status, 0) + 1
            )

            row = [
                pool.storage_pool_id,
                pool.storage_pool_status,
                pool.storage_pool_name,
                pool.storage_pool_endpoint,
                describe_capacity(pool),
                pool.datacenter_name,
            ]
            if show_credentials:
                details = client.storage_pool_get(pool.storage_pool_id, True)
                row += [details.storage_pool_username, details.storage_pool_password]
            rows.append(row)

    except MetalCloudError as e:
        raise click.ClickException(f"Error listing storage pools: {e}") from e

    title = (
        f"Storage pools: {status_counts['active']} active"
        f" {status_counts['maintenance']} maintenance"
    )
    if show_decommissioned:
        title += f" {status_counts['decommissioned']} decommissioned"

    formatter.output(formatter.render(Table(schema, rows), title))


@storage.command("create")
@click.option(
    "--raw-config",
    type=click.Path(exists=True, dir_okay=False),
    help="Read the storage pool object from this file",
)
@click.option("--pipe", is_flag=True, help="Read the storage pool object from stdin")
@click.option(
    "--format",
    "-f",
    "input_format",
    type=click.Choice(["json", "yaml"], case_sensitive=False),
    default="json",
    show_default=True,
    help="Input format",
)
@click.option(
    "--return-id", is_flag=True, help="Print the ID of the created storage pool"
)
@click.pass_context
def create_storage(
    ctx, raw_config: Optional[str], pipe: bool, input_format: str, return_id: bool
):
    """Create a storage pool from a raw object."""
    data = read_raw_object(raw_config, pipe, input_format)
    client = get_client(ctx.obj["config_path"])

    try:
        created = client.storage_pool_create(StoragePool.model_validate(data))
    except (MetalCloudError, ValueError) as e:
        raise click.ClickException(f"Error creating storage pool: {e}") from e

    logger.debug("Created storage pool %d", created.storage_pool_id)
    if return_id:
        click.echo(created.storage_pool_id)
