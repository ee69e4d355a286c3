"""
Tests for metalcloud_cli.cli.commands.servers module.
"""

import json
from unittest.mock import patch

import pytest

from metalcloud_cli.cli.commands.servers import describe_allocation, parse_id_or_uuid
from metalcloud_cli.cli.main import cli
from metalcloud_cli.exceptions import APIError

from .conftest import create_server, create_server_row


@pytest.fixture
def invoke(cli_runner, mock_config_file, mock_client):
    """Run a ``server`` subcommand against the mock client."""

    def _invoke(*args, input=None):
        with patch(
            "metalcloud_cli.cli.commands.servers.get_client", return_value=mock_client
        ):
            return cli_runner.invoke(
                cli,
                ["--config", str(mock_config_file), "server", *args],
                input=input,
            )

    return _invoke


class TestHelpers:
    def test_parse_id_or_uuid(self):
        assert parse_id_or_uuid("12") == 12
        assert parse_id_or_uuid("44454C4C-5900") == "44454C4C-5900"

    def test_describe_allocation_for_used_server(self):
        row = create_server_row(2, "used")
        assert describe_allocation(row) == "a@b.c inst-2 (#302) IA:#200 Infra:#100"
        assert describe_allocation(row, with_users=False) == "inst-2 (#302) IA:#200 Infra:#100"

    def test_describe_allocation_for_free_server(self):
        assert describe_allocation(create_server_row(1, "available")) == ""


class TestListServers:
    def test_list_json(self, invoke, mock_client, cli_test_base):
        result = invoke("list", "--format", "json")

        cli_test_base.assert_cli_success(result)
        data = cli_test_base.assert_json_output(result)
        assert [row["ID"] for row in data] == [1, 2]
        assert set(data[0]) == {
            "ID",
            "STATUS",
            "SERVER_TYPE",
            "SERIAL_NUMBER",
            "IPMI_HOST",
            "ALLOCATED_TO",
            "DATACENTER_NAME",
        }
        mock_client.servers_search.assert_called_once_with("*")

    def test_filter_is_translated(self, invoke, mock_client):
        invoke("list", "--filter", "server_status:available,used", "--format", "json")

        mock_client.servers_search.assert_called_once_with(
            "+server_status:available +server_status:used"
        )

    def test_long_allocation_is_truncated(self, invoke, cli_test_base):
        result = invoke("list", "--format", "json")

        data = cli_test_base.assert_json_output(result)
        assert data[0]["ALLOCATED_TO"] == ""
        assert data[1]["ALLOCATED_TO"] == "a@b.c inst..."

    def test_decommissioned_hidden_by_default(self, invoke, mock_client, cli_test_base):
        mock_client.servers_search.return_value = [
            create_server_row(1, "available"),
            create_server_row(9, "decommissioned"),
        ]

        result = invoke("list", "--format", "json")
        assert [row["ID"] for row in cli_test_base.assert_json_output(result)] == [1]

        result = invoke("list", "--format", "json", "--show-decommissioned")
        assert [row["ID"] for row in cli_test_base.assert_json_output(result)] == [1, 9]

    def test_title_counts_statuses(self, invoke, mock_client):
        mock_client.servers_search.return_value = [
            create_server_row(1, "available"),
            create_server_row(2, "available"),
            create_server_row(3, "used"),
            create_server_row(4, "cleaning"),
            create_server_row(9, "decommissioned"),
        ]

        result = invoke("list", "--format", "table")
        assert (
            "Servers: 2 available 1 used 1 cleaning 0 registering 0 unavailable\n"
            in result.output
        )

        result = invoke("list", "--format", "table", "--show-decommissioned")
        assert "0 unavailable 1 decommissioned" in result.output

    def test_rack_info_and_credentials(self, invoke, mock_client, cli_test_base):
        mock_client.servers_search.return_value = [
            create_server_row(
                1,
                "available",
                server_rack_name="R1",
                server_rack_position_lower_unit="10",
                server_tags=["gpu", "edge"],
            )
        ]

        result = invoke(
            "list", "--format", "json", "--show-rack-info", "--show-credentials"
        )

        row = cli_test_base.assert_json_output(result)[0]
        assert row["TAGS"] == "gpu,edge"
        assert row["RACK"] == "R1"
        assert row["RU_D"] == "10"
        assert row["RU_U"] == ""
        assert row["IPMI_USER"] == "root"
        assert row["IPMI_PASS"] == "calvin"
        mock_client.server_get.assert_called_once_with(1, True)

    def test_api_error(self, invoke, mock_client, cli_test_base):
        mock_client.servers_search.side_effect = APIError("boom")

        result = invoke("list")

        cli_test_base.assert_cli_error(result, "Error listing servers: boom")

    def test_alias(self, cli_runner, mock_config_file, mock_client, cli_test_base):
        with patch(
            "metalcloud_cli.cli.commands.servers.get_client", return_value=mock_client
        ):
            result = cli_runner.invoke(
                cli, ["--config", str(mock_config_file), "srv", "list", "-f", "csv"]
            )

        cli_test_base.assert_cli_success(result)
        assert result.output.splitlines()[0].startswith("ID,STATUS,SERVER_TYPE")


class TestGetServer:
    def test_get_details(self, invoke, mock_client, cli_test_base):
        result = invoke("get", "--id", "1", "--format", "json")

        cli_test_base.assert_cli_success(result)
        row = cli_test_base.assert_json_output(result)[0]
        assert row["SERVER_TYPE"] == "Medium"
        assert row["CONFIG."] == "64 GB RAM 2 x Xeon (16 cores) "
        assert row["DISKS"] == "2 x 480 GB [SSD]"
        assert row["TAGS"] == "a,b"
        assert "CREDENTIALS" not in row
        mock_client.server_get.assert_called_once_with(1, False)
        mock_client.servers_search.assert_not_called()

    def test_get_by_uuid_with_credentials(self, invoke, mock_client, cli_test_base):
        result = invoke(
            "get", "--id", "ABC-123", "--show-credentials", "--format", "json"
        )

        row = cli_test_base.assert_json_output(result)[0]
        assert row["CREDENTIALS"] == "User: root Pass: calvin"
        mock_client.server_get.assert_called_once_with("ABC-123", True)

    def test_server_without_type(self, invoke, mock_client, cli_test_base):
        mock_client.server_get.return_value = create_server(1, server_type_id=0)

        result = invoke("get", "--id", "1", "--format", "json")

        assert cli_test_base.assert_json_output(result)[0]["SERVER_TYPE"] == "<no_server_type>"
        mock_client.server_type_get.assert_not_called()

    def test_long_product_name_is_truncated(self, invoke, mock_client, cli_test_base):
        mock_client.server_get.return_value = create_server(
            1, server_product_name="ProLiant DL380 Gen10 Plus"
        )

        result = invoke("get", "--id", "1", "--format", "json")

        row = cli_test_base.assert_json_output(result)[0]
        assert row["PRODUCT_NAME"] == "ProLiant DL380 Gen..."

    def test_used_server_shows_allocation(self, invoke, mock_client, cli_test_base):
        mock_client.server_get.return_value = create_server(2, server_status="used")
        mock_client.servers_search.return_value = [create_server_row(2, "used")]

        result = invoke("get", "--id", "2", "--format", "json")

        row = cli_test_base.assert_json_output(result)[0]
        assert row["ALLOCATED_TO."] == "inst-2 (#302) IA:#200 Infra:#100"
        mock_client.servers_search.assert_called_once_with("+server_id:2")

    def test_used_server_missing_from_search(self, invoke, mock_client, cli_test_base):
        mock_client.server_get.return_value = create_server(2, server_status="used")
        mock_client.servers_search.return_value = []

        result = invoke("get", "--id", "2")

        cli_test_base.assert_cli_error(result, "Server not found by search function")

    def test_raw_dump(self, invoke, mock_client, cli_test_base):
        result = invoke("get", "--id", "1", "--raw", "--format", "json")

        data = cli_test_base.assert_json_output(result)
        assert data["server_id"] == 1
        assert data["server_ipmi_internal_username"] == "root"

    def test_transposed_text(self, invoke):
        result = invoke("get", "--id", "1")

        assert result.exit_code == 0
        assert "server details" in result.output
        assert "SERIAL_NUMBER" in result.output


class TestCreateServer:
    def test_create_from_file(self, invoke, mock_client, tmp_path):
        path = tmp_path / "server.json"
        path.write_text(json.dumps({"server_serial_number": "SN9"}))
        mock_client.server_create.return_value = 99

        result = invoke("create", "--raw-config", str(path), "--return-id")

        assert result.exit_code == 0
        assert result.output.strip() == "99"
        server = mock_client.server_create.call_args[0][0]
        assert server.server_serial_number == "SN9"

    def test_create_from_pipe_yaml(self, invoke, mock_client):
        result = invoke(
            "create", "--pipe", "--format", "yaml", input="server_serial_number: SN8\n"
        )

        assert result.exit_code == 0
        assert result.output == ""
        assert mock_client.server_create.call_args[0][0].server_serial_number == "SN8"

    def test_create_requires_source(self, invoke, mock_client):
        result = invoke("create")

        assert result.exit_code == 2
        assert "--raw-config <path_to_json_file> or --pipe is required" in result.output
        mock_client.server_create.assert_not_called()


class TestPowerControl:
    def test_confirmed(self, invoke, mock_client):
        result = invoke("power-control", "--id", "1", "--operation", "reset", input="yes\n")

        assert result.exit_code == 0
        assert "Rebooting server (1) of datacenter dc-1." in result.output
        mock_client.server_power_set.assert_called_once_with(1, "reset")

    def test_not_confirmed(self, invoke, mock_client):
        result = invoke("power-control", "--id", "1", "--operation", "off", input="no\n")

        assert result.exit_code == 0
        assert "Turning off (hard) server (1)" in result.output
        assert "Operation cancelled" in result.output
        mock_client.server_power_set.assert_not_called()

    def test_autoconfirm(self, invoke, mock_client):
        result = invoke("power-control", "--id", "1", "--operation", "on", "--autoconfirm")

        assert result.exit_code == 0
        mock_client.server_power_set.assert_called_once_with(1, "on")

    def test_invalid_operation(self, invoke, mock_client):
        result = invoke("power-control", "--id", "1", "--operation", "explode")

        assert result.exit_code == 2
        mock_client.server_power_set.assert_not_called()


class TestMutations:
    def test_status_set(self, invoke, mock_client):
        result = invoke("status-set", "--id", "1", "--status", "decommissioned", input="yes\n")

        assert result.exit_code == 0
        assert "Current status: available new status: decommissioned" in result.output
        mock_client.server_status_update.assert_called_once_with(1, "decommissioned")

    def test_status_set_autoconfirm_skips_lookup(self, invoke, mock_client):
        invoke("status-set", "--id", "1", "--status", "available", "--autoconfirm")

        mock_client.server_get.assert_not_called()
        mock_client.server_status_update.assert_called_once_with(1, "available")

    def test_server_type_set_by_label(self, invoke, mock_client):
        result = invoke("server-type-set", "--id", "1", "--server-type", "M.8.8", "--autoconfirm")

        assert result.exit_code == 0
        mock_client.server_type_get_by_label.assert_called_once_with("M.8.8")
        new_id = mock_client.server_type_get_by_label.return_value.server_type_id
        mock_client.server_edit_property.assert_called_once_with(1, "server_type_id", new_id)

    def test_server_type_set_by_id(self, invoke, mock_client):
        result = invoke("server-type-set", "--id", "1", "--server-type", "7", input="yes\n")

        assert result.exit_code == 0
        assert "new server type: M.8.8 (#7)" in result.output
        mock_client.server_edit_property.assert_called_once_with(1, "server_type_id", 7)

    def test_rack_info_set(self, invoke, mock_client):
        result = invoke(
            "rack-info-set",
            "--id", "1",
            "--rack-name", "R2",
            "--lower-u", "3",
            "--upper-u", "4",
            input="yes\n",
        )

        assert result.exit_code == 0
        assert "new rack info: Rack:R2 U:3-4." in result.output
        mock_client.server_edit_rack.assert_called_once_with(1, "R2", 3, 4)

    def test_inventory_info_set(self, invoke, mock_client):
        result = invoke(
            "inventory-info-set", "--id", "1", "--inventory-id", "INV-7", "--autoconfirm"
        )

        assert result.exit_code == 0
        mock_client.server_edit_inventory.assert_called_once_with(1, "INV-7")

    def test_reregister(self, invoke, mock_client):
        result = invoke("reregister", "--id", "1", "--do-not-set-ipmi", input="yes\n")

        assert result.exit_code == 0
        assert "BMC IP:10.0.0.1" in result.output
        mock_client.server_reregister.assert_called_once_with(1, True)

    def test_missing_id(self, invoke):
        result = invoke("reregister")

        assert result.exit_code == 2
        assert "--id" in result.output
