"""
Server CLI commands.

Commands for listing, inspecting and changing bare-metal servers.
"""

import logging
from typing import List, Optional, Union

import click

from metalcloud_cli.cli.formatters import (
    OutputFormatter,
    SchemaField,
    Table,
    format_option,
)
from metalcloud_cli.cli.helpers import (
    confirm_action,
    get_client,
    read_raw_object,
    server_status_style,
    truncate_string,
)
from metalcloud_cli.exceptions import MetalCloudError
from metalcloud_cli.filtering import convert_to_search_field_format
from metalcloud_cli.models.metalcloud_types import Server, ServerSearchResult

logger = logging.getLogger(__name__)

POWER_OPERATIONS = {
    "on": "Turning on",
    "off": "Turning off (hard)",
    "reset": "Rebooting",
    "soft": "Shutting down",
}

ALLOCATED_STATUSES = ("used", "used_registering")


def parse_id_or_uuid(value: str) -> Union[int, str]:
    """Numeric IDs are sent as integers, anything else is treated as a UUID."""
    value = value.strip()
    return int(value) if value.isdigit() else value


def describe_allocation(row: ServerSearchResult, with_users: bool = True) -> str:
    """Instance, instance array and infrastructure a used server belongs to."""
    if row.server_status not in ALLOCATED_STATUSES:
        return ""
    if not (row.instance_id and row.instance_array_id and row.infrastructure_id):
        return ""

    label = row.instance_label[0] if row.instance_label else ""
    allocation = (
        f"{label} (#{row.instance_id[0]}) "
        f"IA:#{row.instance_array_id[0]} Infra:#{row.infrastructure_id[0]}"
    )
    if with_users:
        users = ",".join(row.user_email[0]) if row.user_email else ""
        allocation = f"{users} {allocation}"
    return allocation


@click.group(name="server")
def server():
    """Commands for managing servers."""
    pass


@server.command("list")
@click.option(
    "--filter",
    "filter_",
    default="*",
    show_default=True,
    help="Search filter, e.g. 'server_status:available,used datacenter_name:dc1'",
)
@click.option(
    "--show-credentials",
    is_flag=True,
    help="Include IPMI credentials (one extra API call per server)",
)
@click.option("--show-rack-info", is_flag=True, help="Include rack metadata")
@click.option(
    "--show-decommissioned",
    is_flag=True,
    help="Include decommissioned servers, normally hidden",
)
@format_option()
@click.pass_context
def list_servers(
    ctx,
    filter_: str,
    show_credentials: bool,
    show_rack_info: bool,
    show_decommissioned: bool,
    output_format: str,
):
    """List servers."""
    formatter = OutputFormatter(output_format, ctx.obj.get("quiet", False))
    client = get_client(ctx.obj["config_path"])

    schema = [
        SchemaField("ID"),
        SchemaField("STATUS", server_status_style),
        SchemaField("SERVER_TYPE"),
        SchemaField("SERIAL_NUMBER"),
        SchemaField("IPMI_HOST"),
        SchemaField("ALLOCATED_TO"),
        SchemaField("DATACENTER_NAME"),
    ]
    if show_rack_info:
        schema += [
            SchemaField("TAGS"),
            SchemaField("INV_ID"),
            SchemaField("RACK"),
            SchemaField("RU_D"),
            SchemaField("RU_U"),
        ]
    if show_credentials:
        schema += [SchemaField("IPMI_USER"), SchemaField("IPMI_PASS")]

    status_counts = {
        "available": 0,
        "used": 0,
        "cleaning": 0,
        "registering": 0,
        "unavailable": 0,
        "decommissioned": 0,
    }
    rows = []

    try:
        servers = client.servers_search(convert_to_search_field_format(filter_))

        for s in servers:
            if s.server_status == "decommissioned" and not show_decommissioned:
                continue
            status_counts[s.server_status] = status_counts.get(s.server_status, 0) + 1

            allocation = describe_allocation(s)
            if len(allocation) > 30:
                allocation = truncate_string(allocation, 10)

            row = [
                s.server_id,
                s.server_status,
                s.server_type_name,
                s.server_serial_number,
                s.server_ipmi_host,
                allocation,
                s.datacenter_name,
            ]
            if show_rack_info:
                row += [
                    ",".join(s.server_tags),
                    s.server_inventory_id or "",
                    s.server_rack_name or "",
                    s.server_rack_position_lower_unit or "",
                    s.server_rack_position_upper_unit or "",
                ]
            if show_credentials:
                details = client.server_get(s.server_id, True)
                row += [
                    details.server_ipmi_internal_username,
                    details.server_ipmi_internal_password,
                ]
            rows.append(row)

    except MetalCloudError as e:
        raise click.ClickException(f"Error listing servers: {e}") from e

    title = (
        f"Servers: {status_counts['available']} available"
        f" {status_counts['used']} used"
        f" {status_counts['cleaning']} cleaning"
        f" {status_counts['registering']} registering"
        f" {status_counts['unavailable']} unavailable"
    )
    if show_decommissioned:
        title += f" {status_counts['decommissioned']} decommissioned"

    formatter.output(formatter.render(Table(schema, rows), title))


@server.command("get")
@click.option("--id", "server_id", required=True, help="Server's ID or UUID")
@click.option(
    "--show-credentials", is_flag=True, help="Include IPMI credentials"
)
@click.option(
    "--raw",
    is_flag=True,
    help="Dump the whole server object, only with json or yaml formats",
)
@format_option()
@click.pass_context
def get_server(ctx, server_id: str, show_credentials: bool, raw: bool, output_format: str):
    """Show server details."""
    formatter = OutputFormatter(output_format, ctx.obj.get("quiet", False))
    client = get_client(ctx.obj["config_path"])

    try:
        server_obj = client.server_get(parse_id_or_uuid(server_id), show_credentials)

        if raw:
            formatter.output(formatter.render_raw_object(server_obj, "Server"))
            return

        server_type_name = "<no_server_type>"
        if server_obj.server_type_id:
            server_type_name = client.server_type_get(
                server_obj.server_type_id
            ).server_type_display_name

        allocation = ""
        if server_obj.server_status in ALLOCATED_STATUSES:
            matches = client.servers_search(f"+server_id:{server_obj.server_id}")
            if not matches:
                raise click.ClickException("Server not found by search function")
            allocation = describe_allocation(matches[0], with_users=False)

    except MetalCloudError as e:
        raise click.ClickException(f"Error getting server: {e}") from e

    formatter.output(
        formatter.render_transposed(
            server_details_table(server_obj, server_type_name, allocation, show_credentials),
            "server details",
        )
    )


def server_details_table(
    server_obj: Server,
    server_type_name: str,
    allocation: str,
    show_credentials: bool = False,
) -> Table:
    """Single-row table describing one server."""
    product_name = server_obj.server_product_name
    if len(product_name) > 21:
        product_name = truncate_string(product_name, 18)

    schema: List[SchemaField] = [
        SchemaField("ID"),
        SchemaField("SERIAL_NUMBER"),
        SchemaField("DATACENTER_NAME"),
        SchemaField("INVENTORY_ID"),
        SchemaField("RACK_NAME"),
        SchemaField("RACK_POSITION_LOWER_UNIT"),
        SchemaField("RACK_POSITION_UPPER_UNIT"),
        SchemaField("SERVER_TYPE"),
        SchemaField("STATUS", server_status_style),
        SchemaField("VENDOR"),
        SchemaField("PRODUCT_NAME"),
        SchemaField("CONFIG."),
        SchemaField("DISKS"),
        SchemaField("TAGS"),
        SchemaField("IPMI_HOST"),
        SchemaField("ALLOCATED_TO."),
    ]
    row = [
        server_obj.server_id,
        server_obj.server_serial_number,
        server_obj.datacenter_name,
        server_obj.server_inventory_id or "",
        server_obj.server_rack_name or "",
        server_obj.server_rack_position_lower_unit or "",
        server_obj.server_rack_position_upper_unit or "",
        server_type_name,
        server_obj.server_status,
        server_obj.server_vendor,
        product_name,
        f"{server_obj.server_ram_gbytes} GB RAM "
        f"{server_obj.server_processor_count} x {server_obj.server_processor_name} "
        f"({server_obj.server_processor_core_count} cores) ",
        f"{server_obj.server_disk_count} x {server_obj.server_disk_size_mbytes // 1000} GB "
        f"[{server_obj.server_disk_type}]",
        ",".join(server_obj.server_tags),
        server_obj.server_ipmi_host,
        allocation,
    ]

    if show_credentials:
        schema += [SchemaField("CREDENTIALS"), SchemaField("SNMP_COMMUNITY")]
        row += [
            f"User: {server_obj.server_ipmi_internal_username} "
            f"Pass: {server_obj.server_ipmi_internal_password}",
            getattr(server_obj, "server_mgmt_snmp_community_password", None) or "",
        ]

    return Table(schema, [row])


@server.command("create")
@click.option(
    "--raw-config",
    type=click.Path(exists=True, dir_okay=False),
    help="Read the server object from this file",
)
@click.option("--pipe", is_flag=True, help="Read the server object from stdin")
@click.option(
    "--format",
    "-f",
    "input_format",
    type=click.Choice(["json", "yaml"], case_sensitive=False),
    default="json",
    show_default=True,
    help="Input format",
)
@click.option("--return-id", is_flag=True, help="Print the ID of the created server")
@click.pass_context
def create_server(ctx, raw_config: Optional[str], pipe: bool, input_format: str, return_id: bool):
    """Create a server record from a raw object."""
    data = read_raw_object(raw_config, pipe, input_format)
    client = get_client(ctx.obj["config_path"])

    try:
        new_id = client.server_create(Server.model_validate(data), False)
    except (MetalCloudError, ValueError) as e:
        raise click.ClickException(f"Error creating server: {e}") from e

    logger.debug("Created server %d", new_id)
    if return_id:
        click.echo(new_id)


def _fetch_server(client, server_id: int) -> Server:
    try:
        return client.server_get(server_id, False)
    except MetalCloudError as e:
        raise click.ClickException(f"Error getting server: {e}") from e


def _cancelled() -> None:
    click.echo("Operation cancelled")


@server.command("power-control")
@click.option("--id", "server_id", type=int, required=True, help="Server's ID")
@click.option(
    "--operation",
    type=click.Choice(list(POWER_OPERATIONS)),
    required=True,
    help="Power control operation",
)
@click.option("--autoconfirm", is_flag=True, help="Assume the action is confirmed")
@click.pass_context
def power_control(ctx, server_id: int, operation: str, autoconfirm: bool):
    """Change a server's power state."""
    client = get_client(ctx.obj["config_path"])
    server_obj = _fetch_server(client, server_id)

    message = (
        f"{POWER_OPERATIONS[operation]} server ({server_obj.server_id}) "
        f"of datacenter {server_obj.datacenter_name}."
    )
    if not confirm_action(message, autoconfirm):
        _cancelled()
        return

    try:
        client.server_power_set(server_id, operation)
    except MetalCloudError as e:
        raise click.ClickException(f"Error changing server power: {e}") from e


@server.command("status-set")
@click.option("--id", "server_id", type=int, required=True, help="Server's ID")
@click.option(
    "--status",
    required=True,
    help="New status, one of: available, decommissioned, removed_from_rack",
)
@click.option("--autoconfirm", is_flag=True, help="Assume the action is confirmed")
@click.pass_context
def status_set(ctx, server_id: int, status: str, autoconfirm: bool):
    """Change a server's status."""
    client = get_client(ctx.obj["config_path"])

    if not autoconfirm:
        server_obj = _fetch_server(client, server_id)
        message = (
            f"Server #{server_obj.server_id} ({server_obj.server_serial_number}) "
            f"of datacenter {server_obj.datacenter_name}. "
            f"Current status: {server_obj.server_status} new status: {status}"
        )
        if not confirm_action(message):
            _cancelled()
            return

    try:
        client.server_status_update(server_id, status)
    except MetalCloudError as e:
        raise click.ClickException(f"Error changing server status: {e}") from e


@server.command("server-type-set")
@click.option("--id", "server_id", type=int, required=True, help="Server's ID")
@click.option(
    "--server-type", required=True, help="New server type, as an ID or a label"
)
@click.option("--autoconfirm", is_flag=True, help="Assume the action is confirmed")
@click.pass_context
def server_type_set(ctx, server_id: int, server_type: str, autoconfirm: bool):
    """Change a server's server type."""
    client = get_client(ctx.obj["config_path"])

    try:
        if server_type.isdigit():
            new_type = client.server_type_get(int(server_type))
        else:
            new_type = client.server_type_get_by_label(server_type)

        if not autoconfirm:
            server_obj = client.server_get(server_id, False)
            old_name, old_id = "none", 0
            if server_obj.server_type_id:
                old_type = client.server_type_get(server_obj.server_type_id)
                old_name, old_id = old_type.server_type_name, old_type.server_type_id

            message = (
                f"Server #{server_obj.server_id} ({server_obj.server_serial_number}) "
                f"of datacenter {server_obj.datacenter_name}. "
                f"Current server type: {old_name} (#{old_id}) "
                f"new server type: {new_type.server_type_name} (#{new_type.server_type_id})"
            )
            if not confirm_action(message):
                _cancelled()
                return

        client.server_edit_property(server_id, "server_type_id", new_type.server_type_id)
    except MetalCloudError as e:
        raise click.ClickException(f"Error changing server type: {e}") from e


@server.command("rack-info-set")
@click.option("--id", "server_id", type=int, required=True, help="Server's ID")
@click.option("--rack-name", required=True, help="New rack name")
@click.option("--lower-u", type=int, required=True, help="Lower U of the equipment")
@click.option("--upper-u", type=int, required=True, help="Upper U of the equipment")
@click.option("--autoconfirm", is_flag=True, help="Assume the action is confirmed")
@click.pass_context
def rack_info_set(
    ctx, server_id: int, rack_name: str, lower_u: int, upper_u: int, autoconfirm: bool
):
    """Change a server's rack placement."""
    client = get_client(ctx.obj["config_path"])
    server_obj = _fetch_server(client, server_id)

    current = (
        f"Rack:{server_obj.server_rack_name or ''} "
        f"U:{server_obj.server_rack_position_lower_unit or ''}"
        f"-{server_obj.server_rack_position_upper_unit or ''}"
    )
    message = (
        f"Server #{server_obj.server_id} ({server_obj.server_serial_number}) "
        f"of datacenter {server_obj.datacenter_name}. "
        f"Current server rack info {current} "
        f"new rack info: Rack:{rack_name} U:{lower_u}-{upper_u}."
    )
    if not confirm_action(message, autoconfirm):
        _cancelled()
        return

    try:
        client.server_edit_rack(server_id, rack_name, lower_u, upper_u)
    except MetalCloudError as e:
        raise click.ClickException(f"Error changing rack info: {e}") from e


@server.command("inventory-info-set")
@click.option("--id", "server_id", type=int, required=True, help="Server's ID")
@click.option("--inventory-id", required=True, help="New inventory ID")
@click.option("--autoconfirm", is_flag=True, help="Assume the action is confirmed")
@click.pass_context
def inventory_info_set(ctx, server_id: int, inventory_id: str, autoconfirm: bool):
    """Change a server's inventory ID."""
    client = get_client(ctx.obj["config_path"])
    server_obj = _fetch_server(client, server_id)

    message = (
        f"Server #{server_obj.server_id} ({server_obj.server_serial_number}) "
        f"of datacenter {server_obj.datacenter_name}. "
        f"Current inventory id: {server_obj.server_inventory_id or ''} "
        f"new inventory id: {inventory_id}."
    )
    if not confirm_action(message, autoconfirm):
        _cancelled()
        return

    try:
        client.server_edit_inventory(server_id, inventory_id)
    except MetalCloudError as e:
        raise click.ClickException(f"Error changing inventory info: {e}") from e


@server.command("reregister")
@click.option("--id", "server_id", type=int, required=True, help="Server's ID")
@click.option(
    "--do-not-set-ipmi",
    "skip_ipmi",
    is_flag=True,
    help="Keep the current IPMI credentials",
)
@click.option("--autoconfirm", is_flag=True, help="Assume the action is confirmed")
@click.pass_context
def reregister(ctx, server_id: int, skip_ipmi: bool, autoconfirm: bool):
    """Re-run the registration of a server."""
    client = get_client(ctx.obj["config_path"])

    if not autoconfirm:
        server_obj = _fetch_server(client, server_id)
        message = (
            f"Server #{server_obj.server_id} ({server_obj.server_serial_number}) "
            f"BMC IP:{server_obj.server_ipmi_host} "
            f"of datacenter {server_obj.datacenter_name}."
        )
        if not confirm_action(message):
            _cancelled()
            return

    try:
        client.server_reregister(server_id, skip_ipmi)
    except MetalCloudError as e:
        raise click.ClickException(f"Error re-registering server: {e}") from e
