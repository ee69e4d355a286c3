"""
Job CLI commands.

Jobs are entries of the platform's asynchronous function call (AFC) queue.
"""

import json
import logging
from typing import Any, Callable, Optional

import click

from metalcloud_cli.cli.formatters import (
    OutputFormatter,
    SchemaField,
    Table,
    format_option,
)
from metalcloud_cli.cli.helpers import (
    confirm_action,
    duration_since,
    get_client,
    job_status_style,
    parse_duration,
    retries_style,
    truncate_string,
    watch,
    wrap_to_length,
)
from metalcloud_cli.exceptions import MetalCloudError
from metalcloud_cli.filtering import convert_to_search_field_format
from metalcloud_cli.models.metalcloud_types import AFC

logger = logging.getLogger(__name__)

KILL_MARKS = ["kill", "stop_retrying", "kill_and_stop_retrying", "keep_alive"]


def describe_request(job: AFC) -> str:
    """
    The call a job performs, as ``function(params)``.

    Provisioning jobs wrap the real call: their params are
    ``[infrastructure_id, function_name, params]``.
    """
    if job.afc_function_name != "infrastructure_provision":
        return f"{job.afc_function_name}({job.afc_params_json})"

    try:
        params = json.loads(job.afc_params_json or "[]")
    except ValueError as e:
        raise click.ClickException(
            f"Invalid params of job #{job.afc_id}: {e}"
        ) from e
    if not isinstance(params, list):
        params = []

    function_name = params[1] if len(params) >= 2 else ""
    actual_params: Any = params[2] if len(params) >= 3 else None
    return f"{function_name}({json.dumps(actual_params)})"


def describe_response(job: AFC) -> str:
    """Error message of a failed job, empty when it did not fail."""
    if not job.afc_exception_json:
        return ""
    try:
        exception = json.loads(job.afc_exception_json)
    except ValueError as e:
        raise click.ClickException(
            f"Invalid exception of job #{job.afc_id}: {e}"
        ) from e
    if not isinstance(exception, dict):
        return ""
    message = exception.get("message")
    return "" if message is None else str(message)


def list_affects(job: AFC) -> str:
    affects = ""
    if job.server_id:
        affects += f"Server: #{job.server_id} "
    if job.instance_id:
        affects += f"Inst: #{job.instance_id} "
    if job.infrastructure_id:
        affects += f"Infra: #{job.infrastructure_id} "
    elif job.afc_group_id:
        affects += f"Group: #{job.afc_group_id} "
    return affects


def detail_affects(job: AFC) -> str:
    affects = ""
    if job.server_id:
        affects += f"Server: #{job.server_id} "
    if job.afc_group_id:
        affects += f"Group: #{job.afc_group_id} "
    if job.instance_id:
        affects += f"Instance: #{job.instance_id} "
    if job.infrastructure_id:
        affects += f"Infrastructure: #{job.infrastructure_id} "
    return affects


def retries_counter(job: AFC) -> str:
    return f"{job.afc_retry_count}/{job.afc_retry_max}"


def render_or_watch(
    render: Callable[[], str], formatter: OutputFormatter, interval: Optional[str]
) -> None:
    if interval:
        watch(render, parse_duration(interval), output=formatter.output)
    else:
        formatter.output(render())


@click.group(name="job")
def job():
    """Commands for managing jobs."""
    pass


@job.command("list")
@click.option(
    "--filter",
    "filter_",
    default="*",
    show_default=True,
    help="Search filter, e.g. 'afc_status:running,thrown_error'",
)
@click.option(
    "--limit",
    type=click.IntRange(min=1),
    default=20,
    show_default=True,
    help="How many jobs to show, latest first",
)
@click.option(
    "--watch",
    "interval",
    help="Refresh at this interval, e.g. '4s' or '1m', until interrupted",
)
@click.option("--wide", is_flag=True, help="Show longer requests and responses")
@format_option()
@click.pass_context
def list_jobs(
    ctx,
    filter_: str,
    limit: int,
    interval: Optional[str],
    wide: bool,
    output_format: str,
):
    """List jobs."""
    formatter = OutputFormatter(output_format, ctx.obj.get("quiet", False))
    client = get_client(ctx.obj["config_path"])
    query = convert_to_search_field_format(filter_)
    request_length, response_length = (160, 360) if wide else (40, 80)

    schema = [
        SchemaField("ID"),
        SchemaField("STATUS", job_status_style),
        SchemaField("DURATION"),
        SchemaField("AFFECTS"),
        SchemaField("RETRIES", retries_style),
        SchemaField("REQUEST"),
        SchemaField("RESPONSE"),
    ]

    def render() -> str:
        try:
            jobs = client.afc_search(query, 0, limit)
        except MetalCloudError as e:
            raise click.ClickException(f"Error listing jobs: {e}") from e

        status_counts = {
            "thrown_error": 0,
            "thrown_error_while_retrying": 0,
            "running": 0,
            "returned_success": 0,
        }
        rows = []
        for j in jobs:
            status_counts[j.afc_status] = status_counts.get(j.afc_status, 0) + 1
            rows.append(
                [
                    j.afc_id,
                    j.afc_status,
                    duration_since(j.afc_created_timestamp),
                    list_affects(j),
                    retries_counter(j),
                    truncate_string(describe_request(j), request_length),
                    truncate_string(describe_response(j), response_length),
                ]
            )

        title = (
            f"Jobs: {status_counts['thrown_error']} thrown error"
            f" {status_counts['thrown_error_while_retrying']} thrown error retrying"
            f"  {status_counts['running']} running"
            f" {status_counts['returned_success']} returned success"
        )
        return formatter.render(Table(schema, rows), title)

    render_or_watch(render, formatter, interval)


def job_details_table(j: AFC) -> Table:
    """Single-row table describing one job."""
    schema = [
        SchemaField("ID"),
        SchemaField("STATUS", job_status_style),
        SchemaField("DURATION"),
        SchemaField("AFFECTS"),
        SchemaField("RETRIES", retries_style),
        SchemaField("REQUEST"),
        SchemaField("RESPONSE"),
        SchemaField("CREATED"),
        SchemaField("UPDATED"),
    ]
    row = [
        j.afc_id,
        j.afc_status,
        duration_since(j.afc_created_timestamp),
        detail_affects(j),
        retries_counter(j),
        truncate_string(describe_request(j), 100),
        wrap_to_length(describe_response(j), 100),
        j.afc_created_timestamp,
        j.afc_updated_timestamp,
    ]
    return Table(schema, [row])


def show_job(client, formatter: OutputFormatter, job_id: int) -> str:
    try:
        j = client.afc_get(job_id)
    except MetalCloudError as e:
        raise click.ClickException(f"Error getting job: {e}") from e
    return formatter.render_transposed(job_details_table(j), "Job details")


@job.command("get")
@click.option("--id", "job_id", type=int, required=True, help="Job ID")
@click.option(
    "--watch",
    "interval",
    help="Refresh at this interval, e.g. '4s' or '1m', until interrupted",
)
@format_option()
@click.pass_context
def get_job(ctx, job_id: int, interval: Optional[str], output_format: str):
    """Show job details."""
    formatter = OutputFormatter(output_format, ctx.obj.get("quiet", False))
    client = get_client(ctx.obj["config_path"])
    render_or_watch(lambda: show_job(client, formatter, job_id), formatter, interval)


def _job_action(
    ctx,
    job_id: int,
    autoconfirm: bool,
    verb: str,
    action: Callable[[Any], None],
    show_after: bool = True,
) -> None:
    client = get_client(ctx.obj["config_path"])
    formatter = OutputFormatter("text", ctx.obj.get("quiet", False))

    if confirm_action(f"{verb} Job #{job_id}.", autoconfirm):
        try:
            action(client)
        except MetalCloudError as e:
            raise click.ClickException(f"Error {verb.lower()} job: {e}") from e
        logger.debug("%s job #%d done", verb, job_id)
    else:
        click.echo("Operation cancelled")

    if show_after:
        formatter.output(show_job(client, formatter, job_id))


@job.command("retry")
@click.option("--id", "job_id", type=int, required=True, help="Job ID")
@click.option("--autoconfirm", is_flag=True, help="Assume the action is confirmed")
@click.pass_context
def retry_job(ctx, job_id: int, autoconfirm: bool):
    """Retry a job."""
    _job_action(ctx, job_id, autoconfirm, "Retrying", lambda c: c.afc_retry_call(job_id))


@job.command("skip")
@click.option("--id", "job_id", type=int, required=True, help="Job ID")
@click.option("--autoconfirm", is_flag=True, help="Assume the action is confirmed")
@click.pass_context
def skip_job(ctx, job_id: int, autoconfirm: bool):
    """Skip a job."""
    _job_action(ctx, job_id, autoconfirm, "Skipping", lambda c: c.afc_skip(job_id))


@job.command("delete")
@click.option("--id", "job_id", type=int, required=True, help="Job ID")
@click.option("--autoconfirm", is_flag=True, help="Assume the action is confirmed")
@click.pass_context
def delete_job(ctx, job_id: int, autoconfirm: bool):
    """Delete a job."""
    _job_action(
        ctx,
        job_id,
        autoconfirm,
        "Deleting",
        lambda c: c.afc_delete(job_id),
        show_after=False,
    )


@job.command("kill")
@click.option("--id", "job_id", type=int, required=True, help="Job ID")
@click.option(
    "--mark",
    type=click.Choice(KILL_MARKS),
    default="kill",
    show_default=True,
    help="How the job is to be stopped",
)
@click.option("--autoconfirm", is_flag=True, help="Assume the action is confirmed")
@click.pass_context
def kill_job(ctx, job_id: int, mark: str, autoconfirm: bool):
    """Kill a job."""
    _job_action(
        ctx, job_id, autoconfirm, "Killing", lambda c: c.afc_mark_for_death(job_id, mark)
    )
