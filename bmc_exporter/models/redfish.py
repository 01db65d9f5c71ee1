"""
Redfish payload models.

Firmware versions disagree on the JSON shape of many fields: numbers arrive
as strings, single objects arrive where lists are documented, links use
either "@odata.id" or "href". The validators below normalise those shapes
once so the translation code can rely on plain types.
"""

from typing import Annotated, Any, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from bmc_exporter.services.errors import DecodeError


# ============================================================================
# Ambiguous field decoding
# ============================================================================

def flex_number(value: Any) -> Optional[float]:
    """Number, else numeric string, else absent."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def flex_label(value: Any) -> str:
    """Render a count or size for use as a label value: 16384.0 -> "16384"."""
    if isinstance(value, bool) or value is None:
        return ""
    if isinstance(value, (int, float)):
        return str(int(value))
    if isinstance(value, str):
        return value
    return ""


def text(value: Any) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value)


def as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def as_object(value: Any) -> Any:
    return {} if value is None else value


def _link_data(value: Any) -> Any:
    if isinstance(value, str):
        return {"@odata.id": value}
    return value


def link_list(value: Any) -> List[Any]:
    return [_link_data(v) for v in as_list(value)]


def single_link(value: Any) -> Any:
    if isinstance(value, list):
        value = value[0] if value else None
    return _link_data(value)


FlexFloat = Annotated[Optional[float], BeforeValidator(flex_number)]
FlexLabel = Annotated[str, BeforeValidator(flex_label)]
Text = Annotated[str, BeforeValidator(text)]


class RedfishModel(BaseModel):
    model_config = ConfigDict(extra='ignore', populate_by_name=True)


class Link(RedfishModel):
    odata_id: Text = Field("", alias="@odata.id")
    href: Text = Field("", alias="href")

    @property
    def url(self) -> str:
        return self.odata_id or self.href


LinkList = Annotated[List[Link], BeforeValidator(link_list)]
OptLink = Annotated[Optional[Link], BeforeValidator(single_link)]


class Status(RedfishModel):
    state: Text = Field("", alias="State")
    health: Text = Field("", alias="Health")
    health_rollup: Text = Field("", alias="HealthRollup")


StatusField = Annotated[Status, BeforeValidator(as_object)]


class Collection(RedfishModel):
    members: LinkList = Field(default_factory=list, alias="Members")
    member_count: Optional[int] = Field(None, alias="Members@odata.count")

    @property
    def urls(self) -> List[str]:
        return [m.url for m in self.members if m.url]


# ============================================================================
# Discovery
# ============================================================================

class ChassisLinks(RedfishModel):
    computer_systems: LinkList = Field(default_factory=list, alias="ComputerSystems")
    managed_by: LinkList = Field(default_factory=list, alias="ManagedBy")
    storage: LinkList = Field(default_factory=list, alias="Storage")
    drives: LinkList = Field(default_factory=list, alias="Drives")


class Chassis(RedfishModel):
    id: Text = Field("", alias="Id")
    name: Text = Field("", alias="Name")
    model: Text = Field("", alias="Model")
    serial_number: Text = Field("", alias="SerialNumber")
    links: Annotated[ChassisLinks, BeforeValidator(as_object)] = Field(default_factory=ChassisLinks, alias="Links")
    power: OptLink = Field(None, alias="Power")
    thermal: OptLink = Field(None, alias="Thermal")


class SystemOemLinks(RedfishModel):
    smart_storage: OptLink = Field(None, alias="SmartStorage")
    firmware_inventory: OptLink = Field(None, alias="FirmwareInventory")
    memory: OptLink = Field(None, alias="Memory")


class StorageBattery(RedfishModel):
    index: FlexLabel = Field("", alias="Index")
    model: Text = Field("", alias="Model")
    name: Text = Field("", alias="ProductName")
    present: Text = Field("", alias="Present")
    condition: Text = Field("", alias="Condition")


class SmartStorageBattery(RedfishModel):
    index: FlexLabel = Field("", alias="Index")
    model: Text = Field("", alias="Model")
    name: Text = Field("", alias="ProductName")
    status: StatusField = Field(default_factory=Status, alias="Status")


class SelfTestResult(RedfishModel):
    name: Text = Field("", alias="SelfTestName")
    status: Text = Field("", alias="Status")


class HpOem(RedfishModel):
    battery: Annotated[List[StorageBattery], BeforeValidator(as_list)] = Field(default_factory=list, alias="Battery")
    smart_storage_battery: Annotated[List[SmartStorageBattery], BeforeValidator(as_list)] = Field(
        default_factory=list, alias="SmartStorageBattery"
    )
    self_test: Annotated[List[SelfTestResult], BeforeValidator(as_list)] = Field(
        default_factory=list, alias="iLOSelfTestResults"
    )
    links: Annotated[SystemOemLinks, BeforeValidator(as_object)] = Field(default_factory=SystemOemLinks, alias="Links")
    links_lower: Annotated[SystemOemLinks, BeforeValidator(as_object)] = Field(
        default_factory=SystemOemLinks, alias="links"
    )

    def link(self, name: str) -> str:
        for links in (self.links, self.links_lower):
            found = getattr(links, name)
            if found is not None and found.url:
                return found.url
        return ""


class Oem(RedfishModel):
    hpe: Annotated[HpOem, BeforeValidator(as_object)] = Field(default_factory=HpOem, alias="Hpe")
    hp: Annotated[HpOem, BeforeValidator(as_object)] = Field(default_factory=HpOem, alias="Hp")

    @property
    def vendors(self) -> List[HpOem]:
        return [self.hp, self.hpe]


OemField = Annotated[Oem, BeforeValidator(as_object)]


class MemorySummary(RedfishModel):
    status: StatusField = Field(default_factory=Status, alias="Status")
    total_system_memory_gib: FlexLabel = Field("", alias="TotalSystemMemoryGiB")


class System(RedfishModel):
    bios_version: Text = Field("", alias="BiosVersion")
    serial_number: Text = Field("", alias="SerialNumber")
    host_name: Text = Field("", alias="HostName")
    memory_summary: Annotated[MemorySummary, BeforeValidator(as_object)] = Field(
        default_factory=MemorySummary, alias="MemorySummary"
    )
    memory: OptLink = Field(None, alias="Memory")
    storage: OptLink = Field(None, alias="Storage")
    firmware_inventory: OptLink = Field(None, alias="FirmwareInventory")
    update_service: OptLink = Field(None, alias="UpdateService")
    oem: OemField = Field(default_factory=Oem, alias="Oem")

    def oem_link(self, name: str) -> str:
        for vendor in (self.oem.hpe, self.oem.hp):
            url = vendor.link(name)
            if url:
                return url
        return ""

    @property
    def memory_url(self) -> str:
        if self.memory is not None and self.memory.url:
            return self.memory.url
        return self.oem_link("memory")

    @property
    def smart_storage_url(self) -> str:
        return self.oem_link("smart_storage")

    @property
    def storage_url(self) -> str:
        return self.storage.url if self.storage is not None else ""

    @property
    def firmware_inventory_url(self) -> str:
        url = self.oem_link("firmware_inventory")
        if url:
            return url
        return self.firmware_inventory.url if self.firmware_inventory is not None else ""


class ServiceRoot(RedfishModel):
    update_service: OptLink = Field(None, alias="UpdateService")


class UpdateService(RedfishModel):
    firmware_inventory: LinkList = Field(default_factory=list, alias="FirmwareInventory")


class DriveLinks(RedfishModel):
    logical_drives: OptLink = Field(None, alias="LogicalDrives")
    physical_drives: OptLink = Field(None, alias="PhysicalDrives")


class GenericDrive(RedfishModel):
    """Any node of the array controller / storage tree."""
    members: LinkList = Field(default_factory=list, alias="Members")
    links: Annotated[DriveLinks, BeforeValidator(as_object)] = Field(default_factory=DriveLinks, alias="Links")
    links_lower: Annotated[DriveLinks, BeforeValidator(as_object)] = Field(default_factory=DriveLinks, alias="links")
    drives: LinkList = Field(default_factory=list, alias="Drives")
    volumes: OptLink = Field(None, alias="Volumes")

    def linked(self, name: str) -> List[str]:
        urls = []
        for links in (self.links, self.links_lower):
            found = getattr(links, name)
            if found is not None and found.url:
                urls.append(found.url)
        return urls


# ============================================================================
# Telemetry
# ============================================================================

class Manager(RedfishModel):
    id: Text = Field("", alias="Id")
    name: Text = Field("", alias="Name")
    description: Text = Field("", alias="Description")
    model: Text = Field("", alias="Model")
    firmware_version: Text = Field("", alias="FirmwareVersion")
    oem: OemField = Field(default_factory=Oem, alias="Oem")


class PowerMetricsBlock(RedfishModel):
    average_consumed_watts: FlexFloat = Field(None, alias="AverageConsumedWatts")


class PowerControl(RedfishModel):
    member_id: Text = Field("", alias="MemberId")
    name: Text = Field("", alias="Name")
    power_consumed_watts: FlexFloat = Field(None, alias="PowerConsumedWatts")
    power_metrics: Annotated[PowerMetricsBlock, BeforeValidator(as_object)] = Field(
        default_factory=PowerMetricsBlock, alias="PowerMetrics"
    )


class Voltage(RedfishModel):
    name: Text = Field("", alias="Name")
    reading_volts: FlexFloat = Field(None, alias="ReadingVolts")
    status: StatusField = Field(default_factory=Status, alias="Status")


class PowerSupplyOemVendor(RedfishModel):
    bay_number: FlexLabel = Field("", alias="BayNumber")
    power_supply_status: StatusField = Field(default_factory=Status, alias="PowerSupplyStatus")


class PowerSupplyOem(RedfishModel):
    hp: Annotated[PowerSupplyOemVendor, BeforeValidator(as_object)] = Field(
        default_factory=PowerSupplyOemVendor, alias="Hp"
    )
    hpe: Annotated[PowerSupplyOemVendor, BeforeValidator(as_object)] = Field(
        default_factory=PowerSupplyOemVendor, alias="Hpe"
    )


class PowerSupply(RedfishModel):
    name: Text = Field("", alias="Name")
    member_id: Text = Field("", alias="MemberId")
    manufacturer: Text = Field("", alias="Manufacturer")
    model: Text = Field("", alias="Model")
    serial_number: Text = Field("", alias="SerialNumber")
    firmware_version: Text = Field("", alias="FirmwareVersion")
    power_supply_type: Text = Field("", alias="PowerSupplyType")
    last_power_output_watts: FlexFloat = Field(None, alias="LastPowerOutputWatts")
    status: StatusField = Field(default_factory=Status, alias="Status")
    oem: Annotated[PowerSupplyOem, BeforeValidator(as_object)] = Field(default_factory=PowerSupplyOem, alias="Oem")

    @property
    def bay_number(self) -> str:
        if self.oem.hp.power_supply_status.state:
            return self.oem.hp.bay_number or "0"
        if self.oem.hpe.power_supply_status.state:
            return self.oem.hpe.bay_number or "0"
        return "0"


class PowerMetrics(RedfishModel):
    url: Text = Field("", alias="@odata.id")
    power_control: Annotated[List[PowerControl], BeforeValidator(as_list)] = Field(
        default_factory=list, alias="PowerControl"
    )
    voltages: Annotated[List[Voltage], BeforeValidator(as_list)] = Field(default_factory=list, alias="Voltages")
    power_supplies: Annotated[List[PowerSupply], BeforeValidator(as_list)] = Field(
        default_factory=list, alias="PowerSupplies"
    )


class Fan(RedfishModel):
    name: Text = Field("", alias="Name")
    fan_name: Text = Field("", alias="FanName")
    reading: FlexFloat = Field(None, alias="Reading")
    current_reading: FlexFloat = Field(None, alias="CurrentReading")
    status: StatusField = Field(default_factory=Status, alias="Status")


class Temperature(RedfishModel):
    name: Text = Field("", alias="Name")
    reading_celsius: FlexFloat = Field(None, alias="ReadingCelsius")
    status: StatusField = Field(default_factory=Status, alias="Status")


class ThermalMetrics(RedfishModel):
    url: Text = Field("", alias="@odata.id")
    status: StatusField = Field(default_factory=Status, alias="Status")
    fans: Annotated[List[Fan], BeforeValidator(as_list)] = Field(default_factory=list, alias="Fans")
    temperatures: Annotated[List[Temperature], BeforeValidator(as_list)] = Field(
        default_factory=list, alias="Temperatures"
    )


class PartLocation(RedfishModel):
    service_label: Text = Field("", alias="ServiceLabel")


class PhysicalLocation(RedfishModel):
    part_location: Annotated[PartLocation, BeforeValidator(as_object)] = Field(
        default_factory=PartLocation, alias="PartLocation"
    )


PhysicalLocationField = Annotated[PhysicalLocation, BeforeValidator(as_object)]


class DriveProtocol(RedfishModel):
    protocol: Text = Field("", alias="Protocol")


class DiskDrive(RedfishModel):
    id: Text = Field("", alias="Id")
    name: Text = Field("", alias="Name")
    serial_number: Text = Field("", alias="SerialNumber")
    location: Text = Field("", alias="Location")
    physical_location: PhysicalLocationField = Field(default_factory=PhysicalLocation, alias="PhysicalLocation")
    capacity_mib: FlexFloat = Field(None, alias="CapacityMiB")
    capacity_bytes: FlexFloat = Field(None, alias="CapacityBytes")
    status: StatusField = Field(default_factory=Status, alias="Status")


class LogicalDrive(RedfishModel):
    name: Text = Field("", alias="Name")
    logical_drive_name: Text = Field("", alias="LogicalDriveName")
    volume_unique_identifier: Text = Field("", alias="VolumeUniqueIdentifier")
    raid: Text = Field("", alias="Raid")
    status: StatusField = Field(default_factory=Status, alias="Status")


class NVMeOemVendor(RedfishModel):
    drive_status: StatusField = Field(default_factory=Status, alias="DriveStatus")


class NVMeOem(RedfishModel):
    hpe: Annotated[NVMeOemVendor, BeforeValidator(as_object)] = Field(default_factory=NVMeOemVendor, alias="Hpe")


class NVMeDrive(RedfishModel):
    id: Text = Field("", alias="Id")
    protocol: Text = Field("", alias="Protocol")
    physical_location: PhysicalLocationField = Field(default_factory=PhysicalLocation, alias="PhysicalLocation")
    oem: Annotated[NVMeOem, BeforeValidator(as_object)] = Field(default_factory=NVMeOem, alias="Oem")
    status: StatusField = Field(default_factory=Status, alias="Status")

    @property
    def drive_status(self) -> Status:
        if self.oem.hpe.drive_status.state:
            return self.oem.hpe.drive_status
        return self.status


class StorageController(RedfishModel):
    member_id: Text = Field("", alias="MemberId")
    model: Text = Field("", alias="Model")
    firmware_version: Text = Field("", alias="FirmwareVersion")
    location: Text = Field("", alias="Location")
    status: StatusField = Field(default_factory=Status, alias="Status")


class StorageControllerMetrics(RedfishModel):
    name: Text = Field("", alias="Name")
    model: Text = Field("", alias="Model")
    firmware_version: Text = Field("", alias="FirmwareVersion")
    location: Text = Field("", alias="Location")
    status: StatusField = Field(default_factory=Status, alias="Status")
    controllers: Annotated[List[StorageController], BeforeValidator(as_list)] = Field(
        default_factory=list, alias="StorageControllers"
    )


class Memory(RedfishModel):
    name: Text = Field("", alias="Name")
    manufacturer: Text = Field("", alias="Manufacturer")
    part_number: Text = Field("", alias="PartNumber")
    dimm_status: Text = Field("", alias="DIMMStatus")
    size_mb: FlexLabel = Field("", alias="SizeMB")
    capacity_mib: FlexLabel = Field("", alias="CapacityMiB")
    status: Union[Status, str, None] = Field(None, alias="Status")


class Processor(RedfishModel):
    id: Text = Field("", alias="Id")
    socket: Text = Field("", alias="Socket")
    model: Text = Field("", alias="Model")
    total_cores: FlexLabel = Field("", alias="TotalCores")
    status: StatusField = Field(default_factory=Status, alias="Status")


class FirmwareComponent(RedfishModel):
    id: Text = Field("", alias="Id")
    name: Text = Field("", alias="Name")
    description: Text = Field("", alias="Description")
    version: Text = Field("", alias="Version")


# ============================================================================
# Decoding
# ============================================================================

M = TypeVar("M", bound=BaseModel)


def decode(model: Type[M], body: bytes) -> M:
    """Decode a JSON body into a model, raising DecodeError on malformed input."""
    try:
        return model.model_validate_json(body)
    except ValidationError as e:
        raise DecodeError(f"error decoding {model.__name__}: {e}") from e
