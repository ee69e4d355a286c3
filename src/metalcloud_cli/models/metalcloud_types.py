"""
Pydantic models for Metal Cloud API objects.

Field names follow the wire format. Unknown fields are preserved so that raw
dumps (``--raw``) and round-trips through ``create`` keep everything the API
returned.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class MetalCloudModel(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        # the API sends null for unset columns; fall back to field defaults
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


class ServerType(MetalCloudModel):
    server_type_id: int = 0
    server_type_name: str = ""
    server_type_display_name: str = ""
    server_type_label: Optional[str] = None


class Server(MetalCloudModel):
    """Full server record as returned by ``server_get``."""

    server_id: int = 0
    server_uuid: Optional[str] = None
    server_serial_number: str = ""
    datacenter_name: str = ""
    server_status: str = ""
    server_class: Optional[str] = None
    server_type_id: int = 0
    server_vendor: str = ""
    server_product_name: str = ""
    server_ipmi_host: str = ""
    server_ipmi_internal_username: str = ""
    server_ipmi_internal_password: str = ""
    server_inventory_id: Optional[str] = None
    server_rack_name: Optional[str] = None
    server_rack_position_lower_unit: Optional[str] = None
    server_rack_position_upper_unit: Optional[str] = None
    server_ram_gbytes: int = 0
    server_processor_count: int = 0
    server_processor_core_count: int = 0
    server_processor_name: str = ""
    server_disk_count: int = 0
    server_disk_size_mbytes: int = 0
    server_disk_type: str = ""
    server_tags: List[str] = Field(default_factory=list)


class ServerSearchResult(MetalCloudModel):
    """Row of the ``_servers_instances`` search table.

    Allocation columns are lists because a server row is joined with the
    instances it backs.
    """

    server_id: int = 0
    server_uuid: Optional[str] = None
    server_serial_number: str = ""
    datacenter_name: str = ""
    server_status: str = ""
    server_type_name: str = ""
    server_ipmi_host: str = ""
    server_inventory_id: Optional[str] = None
    server_rack_name: Optional[str] = None
    server_rack_position_lower_unit: Optional[str] = None
    server_rack_position_upper_unit: Optional[str] = None
    server_tags: List[str] = Field(default_factory=list)
    instance_id: List[int] = Field(default_factory=list)
    instance_label: List[str] = Field(default_factory=list)
    instance_array_id: List[int] = Field(default_factory=list)
    infrastructure_id: List[int] = Field(default_factory=list)
    user_email: List[List[str]] = Field(default_factory=list)


class StoragePool(MetalCloudModel):
    storage_pool_id: int = 0
    storage_pool_name: str = ""
    storage_pool_status: str = ""
    storage_pool_in_maintenance: bool = False
    storage_pool_endpoint: str = ""
    storage_pool_username: str = ""
    storage_pool_password: str = ""
    storage_type: Optional[str] = None
    storage_driver: Optional[str] = None
    datacenter_name: str = ""
    storage_pool_capacity_total_cached_real_mbytes: int = 0
    storage_pool_capacity_free_cached_real_mbytes: int = 0
    storage_pool_capacity_used_cached_virtual_mbytes: int = 0


class StoragePoolSearchResult(MetalCloudModel):
    storage_pool_id: int = 0
    storage_pool_name: str = ""
    storage_pool_status: str = ""
    storage_pool_in_maintenance: bool = False
    storage_pool_endpoint: str = ""
    datacenter_name: str = ""
    storage_pool_capacity_total_cached_real_mbytes: int = 0
    storage_pool_capacity_free_cached_real_mbytes: int = 0
    storage_pool_capacity_used_cached_virtual_mbytes: int = 0


class AFC(MetalCloudModel):
    """Asynchronous function call, the platform's unit of background work."""

    afc_id: int = 0
    afc_status: str = ""
    afc_function_name: str = ""
    afc_params_json: str = ""
    afc_exception_json: str = ""
    afc_retry_count: int = 0
    afc_retry_max: int = 0
    afc_created_timestamp: str = ""
    afc_updated_timestamp: str = ""
    afc_group_id: int = 0
    server_id: int = 0
    instance_id: int = 0
    infrastructure_id: int = 0


class AFCSearchResult(AFC):
    pass


class SearchPage(MetalCloudModel):
    """Envelope of a single table in a ``search`` response."""

    rows: List[Any] = Field(default_factory=list)
    rows_total: int = 0
