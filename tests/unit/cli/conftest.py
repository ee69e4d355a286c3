"""
Shared fixtures and utilities for CLI tests.

This module provides the CLI runner, a temporary configuration file, a mock
API client and factories for API objects used across the CLI test modules.
"""

import json
import tempfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml
from click.testing import CliRunner

from metalcloud_cli.models.metalcloud_types import (
    AFC,
    AFCSearchResult,
    Server,
    ServerSearchResult,
    ServerType,
    StoragePool,
    StoragePoolSearchResult,
)


@pytest.fixture
def cli_runner():
    """Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def mock_config_file():
    """Create a temporary config file for testing."""
    config_content = {
        "endpoint": "https://api.example.com",
        "api_key": "42:secret",
        "user_email": "admin@example.com",
    }

    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.dump(config_content, f)
        yield Path(f.name)

    Path(f.name).unlink(missing_ok=True)


@pytest.fixture
def mock_client():
    """Mock Metal Cloud client with common responses."""
    client = MagicMock()

    client.servers_search.return_value = [
        create_server_row(1, "available"),
        create_server_row(2, "used"),
    ]
    client.server_get.return_value = create_server(1)
    client.server_type_get.return_value = ServerType(
        server_type_id=7, server_type_name="M.8.8", server_type_display_name="Medium"
    )
    client.storage_pool_search.return_value = [create_storage_row(10, "active")]
    client.storage_pool_get.return_value = StoragePool(
        storage_pool_id=10,
        storage_pool_username="admin",
        storage_pool_password="pool-pass",
    )
    client.afc_search.return_value = [create_job_row(100, "running")]
    client.afc_get.return_value = create_job(100, "running")

    return client


def create_server_row(server_id: int, status: str, **kwargs) -> ServerSearchResult:
    """Create a row of the server search table."""
    data = {
        "server_id": server_id,
        "server_status": status,
        "server_type_name": "M.8.8",
        "server_serial_number": f"SN{server_id}",
        "server_ipmi_host": f"10.0.0.{server_id}",
        "datacenter_name": "dc-1",
    }
    if status in ("used", "used_registering"):
        data.update(
            {
                "instance_id": [300 + server_id],
                "instance_label": [f"inst-{server_id}"],
                "instance_array_id": [200],
                "infrastructure_id": [100],
                "user_email": [["a@b.c"]],
            }
        )
    data.update(kwargs)
    return ServerSearchResult(**data)


def create_server(server_id: int, **kwargs) -> Server:
    """Create a full server record."""
    data = {
        "server_id": server_id,
        "server_serial_number": f"SN{server_id}",
        "datacenter_name": "dc-1",
        "server_status": "available",
        "server_type_id": 7,
        "server_vendor": "Dell Inc.",
        "server_product_name": "PowerEdge R640",
        "server_ipmi_host": f"10.0.0.{server_id}",
        "server_ipmi_internal_username": "root",
        "server_ipmi_internal_password": "calvin",
        "server_ram_gbytes": 64,
        "server_processor_count": 2,
        "server_processor_core_count": 16,
        "server_processor_name": "Xeon",
        "server_disk_count": 2,
        "server_disk_size_mbytes": 480000,
        "server_disk_type": "SSD",
        "server_tags": ["a", "b"],
    }
    data.update(kwargs)
    return Server(**data)


def create_storage_row(pool_id: int, status: str, **kwargs) -> StoragePoolSearchResult:
    """Create a row of the storage pool search table."""
    data = {
        "storage_pool_id": pool_id,
        "storage_pool_status": status,
        "storage_pool_name": f"pool-{pool_id}",
        "storage_pool_endpoint": "https://10.1.1.1",
        "datacenter_name": "dc-1",
        "storage_pool_capacity_total_cached_real_mbytes": 4 * 1024 * 1024,
        "storage_pool_capacity_free_cached_real_mbytes": 3 * 1024 * 1024,
        "storage_pool_capacity_used_cached_virtual_mbytes": 2 * 1024 * 1024,
    }
    data.update(kwargs)
    return StoragePoolSearchResult(**data)


def create_job(job_id: int, status: str, **kwargs) -> AFC:
    """Create a job."""
    data = {
        "afc_id": job_id,
        "afc_status": status,
        "afc_function_name": "server_cleanup",
        "afc_params_json": "[12]",
        "afc_exception_json": "",
        "afc_retry_count": 0,
        "afc_retry_max": 3,
        "afc_created_timestamp": "2024-01-01T10:00:00Z",
        "afc_updated_timestamp": "2024-01-01T10:05:00Z",
        "server_id": 12,
    }
    data.update(kwargs)
    return AFC(**data)


def create_job_row(job_id: int, status: str, **kwargs) -> AFCSearchResult:
    """Create a row of the job search table."""
    return AFCSearchResult(**create_job(job_id, status, **kwargs).model_dump())


class CLITestCase:
    """Base class for CLI test cases with common utilities."""

    def assert_cli_success(self, result, expected_exit_code=0):
        """Assert that CLI command succeeded."""
        assert result.exit_code == expected_exit_code, (
            f"CLI Output: {result.output}\nException: {result.exception}"
        )

    def assert_cli_error(self, result, expected_message: str = None):
        """Assert that CLI command failed with expected message."""
        assert result.exit_code != 0
        if expected_message:
            assert expected_message in result.output

    def assert_json_output(self, result):
        """Assert that CLI output is valid JSON and return it."""
        try:
            return json.loads(result.output)
        except json.JSONDecodeError:
            pytest.fail(f"Output is not valid JSON: {result.output}")


@pytest.fixture
def cli_test_base():
    """Fixture providing CLI test utilities."""
    return CLITestCase()
