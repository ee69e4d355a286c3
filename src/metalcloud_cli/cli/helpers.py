"""
Shared helpers for CLI command modules.

Confirmation prompts, raw object input, the ``--watch`` loop, duration and
string utilities, and the status colour schemes used by the tables.
"""

import json
import logging
import re
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import click
import yaml

from metalcloud_cli.api.metalcloud_client import MetalCloudClient
from metalcloud_cli.config.config import Config
from metalcloud_cli.exceptions import MetalCloudError

logger = logging.getLogger(__name__)

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}
_FRACTION = re.compile(r"\.(\d+)")


def load_config(config_path: Path) -> Config:
    """Load configuration with error handling."""
    try:
        return Config.from_file(str(config_path))
    except (MetalCloudError, ValueError, OSError, yaml.YAMLError) as err:
        raise click.ClickException(f"Error loading configuration: {err}") from err


def get_client(config_path: Path) -> MetalCloudClient:
    """Get an API client for the configured endpoint."""
    config = load_config(config_path)
    try:
        config.validate_for_api()
    except MetalCloudError as err:
        raise click.ClickException(str(err)) from err
    return MetalCloudClient(config)


def confirm_action(message: str, autoconfirm: bool = False) -> bool:
    """
    Ask the user to confirm a mutating action.

    Args:
        message: Question shown to the user
        autoconfirm: When True the action is confirmed without prompting

    Returns:
        True only if confirmed or the user typed exactly ``yes``
    """
    if autoconfirm:
        return True

    answer = click.prompt(
        f'{message}  Are you sure? Type "yes" to continue:',
        default="",
        show_default=False,
        prompt_suffix=" ",
    )
    return answer.strip() == "yes"


def read_raw_object(
    raw_config: Optional[str], pipe: bool, input_format: str
) -> Dict[str, Any]:
    """
    Read an API object from a file or from stdin.

    Args:
        raw_config: Path of the file holding the object
        pipe: Read from stdin instead of a file
        input_format: ``json`` or ``yaml``

    Returns:
        The decoded object
    """
    if pipe:
        content = click.get_text_stream("stdin").read()
    elif raw_config:
        with open(raw_config) as f:
            content = f.read()
    else:
        raise click.UsageError("--raw-config <path_to_json_file> or --pipe is required")

    if not content.strip():
        raise click.UsageError("Content cannot be empty")

    input_format = input_format.lower()
    if input_format == "json":
        try:
            data = json.loads(content)
        except ValueError as e:
            raise click.UsageError(
                f"error unmarshalling json: {e}. "
                "Make sure the raw config file is in the correct format"
            ) from e
    elif input_format == "yaml":
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise click.UsageError(
                f"error unmarshalling yaml: {e}. "
                "Make sure the raw config file is in the correct format"
            ) from e
    else:
        raise click.UsageError(f'input format "{input_format}" not supported')

    if not isinstance(data, dict):
        raise click.UsageError("The raw config must describe a single object")
    return data


def parse_duration(value: str) -> float:
    """
    Parse a human readable interval such as ``4s``, ``1m30s`` or ``500ms``.

    Returns:
        The interval in seconds
    """
    text = (value or "").strip()
    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()

    if not text or position != len(text) or total <= 0:
        raise click.BadParameter(
            f"invalid interval '{value}', use values such as 4s, 1m or 1m30s",
            param_hint="--watch",
        )
    return total


def format_duration(seconds: float) -> str:
    """Format seconds like ``1h2m3s``, rounded to the second."""
    total = int(round(seconds))
    sign = "-" if total < 0 else ""
    total = abs(total)
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{sign}{hours}h{minutes}m{secs}s"
    if minutes:
        return f"{sign}{minutes}m{secs}s"
    return f"{sign}{secs}s"


def _normalise_timestamp(timestamp: str) -> str:
    # fromisoformat on 3.10 rejects "Z" and fractions of other than 3 or 6 digits
    timestamp = timestamp.replace("Z", "+00:00").replace("z", "+00:00")
    return _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), timestamp, 1)


def duration_since(timestamp: str, now: Optional[datetime] = None) -> str:
    """Time elapsed since an RFC 3339 UTC timestamp, e.g. ``2m5s``."""
    if not timestamp:
        return ""
    try:
        started = datetime.fromisoformat(_normalise_timestamp(timestamp))
    except ValueError as e:
        raise click.ClickException(f"Invalid timestamp '{timestamp}'") from e
    if started.tzinfo is None:
        started = started.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    return format_duration((now - started).total_seconds())


def truncate_string(s: str, length: int) -> str:
    if len(s) <= length:
        return s
    return s[:length] + "..."


def wrap_to_length(s: str, length: int) -> str:
    """Split a long string into lines of at most ``length`` characters."""
    if len(s) <= length:
        return s
    return "\n".join(s[i : i + length] for i in range(0, len(s), length))


def watch(
    render: Callable[[], str],
    interval: float,
    iterations: Optional[int] = None,
    sleep: Callable[[float], None] = time.sleep,
    output: Optional[Callable[[str], None]] = None,
) -> None:
    """
    Re-render and print output every ``interval`` seconds until interrupted.

    Args:
        render: Produces the text to show on each refresh
        interval: Seconds between refreshes
        iterations: Stop after this many refreshes (None runs until Ctrl-C)
        sleep: Sleep function
        output: Prints each refresh, e.g. ``OutputFormatter.output``
    """
    output = output or click.echo
    count = 0
    try:
        while iterations is None or count < iterations:
            text = render()
            click.clear()
            output(
                f"{text.rstrip()}\n"
                f"Refreshed at {datetime.now().strftime('%m-%d-%Y %H:%M:%S')}"
            )
            count += 1
            logger.debug("Watch refresh %d, next in %ss", count, interval)
            sleep(interval)
    except KeyboardInterrupt:
        click.echo("\nWatch stopped by user")


def server_status_style(status: Any) -> str:
    return {
        "available": "blue",
        "used": "green",
        "unavailable": "magenta",
        "defective": "red",
    }.get(status, "yellow")


def storage_status_style(status: Any) -> str:
    return {
        "active": "blue",
        "maintenance": "green",
        "": "green",
    }.get(status, "yellow")


def job_status_style(status: Any) -> str:
    return {
        "thrown_error": "red",
        "thrown_error_while_retrying": "magenta",
        "running": "yellow",
        "returned_success": "green",
    }.get(status, "yellow")


def retries_style(retries: Any) -> Optional[str]:
    """Colour ``count/max`` retry counters by how close they are to the limit."""
    try:
        count, maximum = (int(p) for p in str(retries).split("/"))
    except ValueError:
        return None
    if count >= maximum:
        return "red"
    if count > 1:
        return "yellow"
    return "green"
