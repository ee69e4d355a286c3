import hashlib
import hmac
import json
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar, Union

import requests
from pydantic import BaseModel

from metalcloud_cli.config.config import Config
from metalcloud_cli.exceptions import APIError
from metalcloud_cli.models.metalcloud_types import (
    AFC,
    AFCSearchResult,
    SearchPage,
    Server,
    ServerSearchResult,
    ServerType,
    StoragePool,
    StoragePoolSearchResult,
)

T = TypeVar("T", bound=BaseModel)

logger = logging.getLogger(__name__)

API_PATH = "/api/developer/developer"

SERVERS_TABLE = "_servers_instances"
STORAGE_POOLS_TABLE = "_storage_pools"
AFC_TABLE = "_afc_queue"


class MetalCloudClient:
    """
    Python client for the Metal Cloud JSON-RPC API.
    """

    def __init__(self, config: Config):
        """
        Initialize the Metal Cloud client.

        Args:
            config: Configuration object holding the endpoint and API key
        """
        self.config = config
        self.base_url = (config.endpoint or "").rstrip("/") + API_PATH
        self.timeout = config.timeout_seconds
        self.verify_ssl = config.verify_ssl
        self.session = None
        self._request_id = 0

    def _sign(self, body: str) -> str:
        """
        Sign a request body with the API key.

        The signature is the HMAC-MD5 of the body keyed by the API secret,
        prefixed by the user ID the key belongs to.
        """
        digest = hmac.new(
            self.config.api_secret.encode("utf-8"),
            body.encode("utf-8"),
            hashlib.md5,
        ).hexdigest()
        return f"{self.config.user_id}:{digest}"

    def _make_request(self, body: str) -> requests.Response:
        """
        POST a JSON-RPC body to the API.

        Args:
            body: Serialized JSON-RPC request

        Returns:
            The response from the API
        """
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": "metalcloud-cli",
        }
        params = {"verify": self._sign(body)}

        if self.session:
            return self.session.post(
                self.base_url,
                data=body,
                params=params,
                headers=headers,
                timeout=self.timeout,
                verify=self.verify_ssl,
            )

        return requests.post(
            self.base_url,
            data=body,
            params=params,
            headers=headers,
            timeout=self.timeout,
            verify=self.verify_ssl,
        )

    def _call(self, method: str, *params: Any) -> Any:
        """
        Invoke a JSON-RPC method.

        Args:
            method: Remote method name
            params: Positional parameters

        Returns:
            The ``result`` member of the JSON-RPC response
        """
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "method": method,
            "params": list(params),
            "id": self._request_id,
        }
        body = json.dumps(payload, default=str)

        logger.debug("Calling %s", method)
        if self.config.logging_enabled:
            logger.info("Request: %s", body)

        try:
            response = self._make_request(body)
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            raise APIError(
                f"HTTP {status_code} while calling {method}", status_code=status_code
            ) from e
        except requests.exceptions.RequestException as e:
            raise APIError(f"Could not reach {self.base_url}: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise APIError(f"Invalid JSON in response to {method}") from e

        if self.config.logging_enabled:
            logger.info("Response: %s", data)

        error = data.get("error") if isinstance(data, dict) else None
        if error:
            raise APIError(
                error.get("message", f"Unknown error calling {method}"),
                code=error.get("code"),
            )

        return data.get("result") if isinstance(data, dict) else None

    def _parse_model(self, data: Dict[str, Any], model_class: Type[T]) -> T:
        """
        Parse JSON data into a Pydantic model.

        Args:
            data: The JSON data to parse
            model_class: The Pydantic model class to use

        Returns:
            An instance of the model class
        """
        return model_class.model_validate(data)

    def _parse_model_list(
        self, data: List[Dict[str, Any]], model_class: Type[T]
    ) -> List[T]:
        return [self._parse_model(item, model_class) for item in data]

    def _search(
        self,
        table: str,
        query: str,
        model_class: Type[T],
        limit: Optional[int] = None,
        offset: int = 0,
        order_by: Optional[List[List[str]]] = None,
    ) -> List[T]:
        """
        Run a search against one of the platform's search tables.

        Args:
            table: Search table name
            query: Query string, already in required-match form
            model_class: Model to parse each row into
            limit: Maximum rows to return
            offset: Rows to skip
            order_by: ``[[column, "ASC"|"DESC"], ...]``

        Returns:
            Parsed rows
        """
        table_query: Dict[str, Any] = {"query": query}
        if limit is not None:
            table_query["limit"] = limit
            table_query["offset"] = offset
        if order_by:
            table_query["order_by"] = order_by

        result = self._call("search", self.config.user_id, {table: table_query})
        page = SearchPage.model_validate((result or {}).get(table) or {})
        return self._parse_model_list(page.rows, model_class)

    # Servers

    def servers_search(self, query: str) -> List[ServerSearchResult]:
        """Search servers."""
        return self._search(SERVERS_TABLE, query, ServerSearchResult)

    def server_get(
        self, server_id_or_uuid: Union[int, str], decrypt_passwd: bool = False
    ) -> Server:
        """Get a server by numeric ID or UUID."""
        if isinstance(server_id_or_uuid, int):
            data = self._call("server_get", server_id_or_uuid, decrypt_passwd)
        else:
            data = self._call("server_get_by_uuid", server_id_or_uuid, decrypt_passwd)
        return self._parse_model(data, Server)

    def server_create(self, server: Server, auto_generate: bool = False) -> int:
        """Create a server record and return its ID."""
        result = self._call(
            "server_create", server.model_dump(exclude_none=True), auto_generate
        )
        return int(result)

    def server_power_set(self, server_id: int, operation: str) -> None:
        self._call("server_power_set", server_id, operation)

    def server_status_update(self, server_id: int, status: str) -> None:
        self._call("server_status_update", server_id, status)

    def server_edit_property(
        self, server_id: int, property_name: str, value: Any
    ) -> None:
        self._call("server_edit_property", server_id, property_name, value)

    def server_edit_rack(
        self, server_id: int, rack_name: str, lower_u: int, upper_u: int
    ) -> Server:
        """Update the rack placement of a server."""
        rack = {
            "server_rack_name": rack_name,
            "server_rack_position_lower_unit": str(lower_u),
            "server_rack_position_upper_unit": str(upper_u),
        }
        data = self._call("server_edit_rack", server_id, rack)
        return self._parse_model(data, Server)

    def server_edit_inventory(self, server_id: int, inventory_id: str) -> Server:
        data = self._call(
            "server_edit_inventory", server_id, {"server_inventory_id": inventory_id}
        )
        return self._parse_model(data, Server)

    def server_reregister(self, server_id: int, skip_ipmi: bool = False) -> None:
        self._call("server_reregister", server_id, skip_ipmi, False)

    def server_type_get(self, server_type_id: int) -> ServerType:
        data = self._call("server_type_get", server_type_id)
        return self._parse_model(data, ServerType)

    def server_type_get_by_label(self, label: str) -> ServerType:
        data = self._call("server_type_get_by_label", label)
        return self._parse_model(data, ServerType)

    # Storage pools

    def storage_pool_search(self, query: str) -> List[StoragePoolSearchResult]:
        """Search storage pools."""
        return self._search(STORAGE_POOLS_TABLE, query, StoragePoolSearchResult)

    def storage_pool_get(
        self, storage_pool_id: int, decrypt_passwd: bool = False
    ) -> StoragePool:
        data = self._call("storage_pool_get", storage_pool_id, decrypt_passwd)
        return self._parse_model(data, StoragePool)

    def storage_pool_create(self, storage_pool: StoragePool) -> StoragePool:
        data = self._call(
            "storage_pool_create", storage_pool.model_dump(exclude_none=True)
        )
        return self._parse_model(data, StoragePool)

    # Jobs

    def afc_search(self, query: str, page: int = 0, limit: int = 20) -> List[AFCSearchResult]:
        """Search jobs, latest first."""
        return self._search(
            AFC_TABLE,
            query,
            AFCSearchResult,
            limit=limit,
            offset=page * limit,
            order_by=[["afc_id", "DESC"]],
        )

    def afc_get(self, afc_id: int) -> AFC:
        data = self._call("afc_get", afc_id)
        return self._parse_model(data, AFC)

    def afc_retry_call(self, afc_id: int) -> None:
        self._call("afc_retry_call", afc_id)

    def afc_skip(self, afc_id: int) -> None:
        self._call("afc_skip", afc_id)

    def afc_delete(self, afc_id: int) -> None:
        self._call("afc_delete", afc_id)

    def afc_mark_for_death(self, afc_id: int, mark: str) -> None:
        self._call("afc_mark_for_death", afc_id, mark)
