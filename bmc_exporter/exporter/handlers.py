"""
Translation of decoded Redfish payloads into device gauges.

Each handler takes the scrape's DeviceMetrics, the device identity used for
the chassis labels and one response body. Handlers raise DecodeError for
bodies they cannot decode and set nothing in that case.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List

from bmc_exporter.exporter.metrics import BAD, DISABLED, OK, DeviceMetrics
from bmc_exporter.models import redfish
from bmc_exporter.models.redfish import Status, decode


class MetricTag(str, Enum):
    MANAGER = "manager"
    SYSTEM = "system"
    FIRMWARE = "firmware"
    ILO_SELF_TEST = "ilo_self_test"
    THERMAL = "thermal"
    POWER = "power"
    MEMORY = "memory"
    MEMORY_SUMMARY = "memory_summary"
    STORAGE_BATTERY = "storage_battery"
    PROCESSOR = "processor"
    NVME_DRIVE = "nvme_drive"
    DISK_DRIVE = "disk_drive"
    LOGICAL_DRIVE = "logical_drive"
    UNKNOWN_DRIVE = "unknown_drive"
    STORAGE_CONTROLLER = "storage_controller"
    FIRMWARE_INVENTORY = "firmware_inventory"
    XML_DRIVE = "xml_drive"


@dataclass
class DeviceLabels:
    """Identity of the scraped device, discovered during bootstrap."""
    model: str
    serial_number: str = ""
    bios_version: str = ""

    @property
    def chassis(self) -> List[str]:
        return [self.serial_number, self.model]


Handler = Callable[[DeviceMetrics, DeviceLabels, bytes], None]


def health_state(status: Status) -> float:
    return OK if status.health == "OK" else BAD


def enabled_state(status: Status) -> float:
    """OK/BAD for enabled components, DISABLED otherwise."""
    if status.state != "Enabled":
        return DISABLED
    return health_state(status)


def _value(number) -> float:
    return number if number is not None else 0.0


# ============================================================================
# Manager
# ============================================================================

def export_firmware(metrics: DeviceMetrics, device: DeviceLabels, body: bytes):
    manager = decode(redfish.Manager, body)
    metrics.device_info.labels(
        manager.description, *device.chassis, manager.firmware_version, device.bios_version
    ).set(1.0)


def export_ilo_self_test(metrics: DeviceMetrics, device: DeviceLabels, body: bytes):
    manager = decode(redfish.Manager, body)
    for vendor in manager.oem.vendors:
        if not vendor.self_test:
            continue
        for result in vendor.self_test:
            if result.status == "Informational":
                continue
            state = OK if result.status == "OK" else BAD
            metrics.ilo_self_test_status.labels(result.name, *device.chassis).set(state)
        return


def export_firmware_inventory(metrics: DeviceMetrics, device: DeviceLabels, body: bytes):
    component = decode(redfish.FirmwareComponent, body)
    metrics.component_firmware.labels(
        component.id, component.name, component.description, component.version
    ).set(1.0)


# ============================================================================
# Chassis
# ============================================================================

def export_power(metrics: DeviceMetrics, device: DeviceLabels, body: bytes):
    power = decode(redfish.PowerMetrics, body)

    for control in power.power_control:
        # PowerConsumedWatts wins when nonzero, some firmware only reports the average
        if control.power_consumed_watts:
            watts = control.power_consumed_watts
        else:
            watts = _value(control.power_metrics.average_consumed_watts)
        member = control.member_id or power.url
        metrics.supply_total_consumed.labels(member, *device.chassis).set(watts)

    for voltage in power.voltages:
        if voltage.status.state == "Enabled":
            metrics.voltage_output.labels(voltage.name, *device.chassis).set(_value(voltage.reading_volts))
            state = health_state(voltage.status)
        else:
            state = BAD
        metrics.voltage_status.labels(voltage.name, *device.chassis).set(state)

    for supply in power.power_supplies:
        labels = [
            supply.name, *device.chassis, supply.manufacturer.rstrip(' '), supply.serial_number,
            supply.firmware_version, supply.power_supply_type, supply.bay_number, supply.model,
        ]
        if supply.status.state == "Enabled":
            metrics.supply_output.labels(*labels).set(_value(supply.last_power_output_watts))
            state = OK if supply.status.health in ("OK", "") else BAD
        else:
            state = BAD
        metrics.supply_status.labels(*labels).set(state)


def export_thermal(metrics: DeviceMetrics, device: DeviceLabels, body: bytes):
    thermal = decode(redfish.ThermalMetrics, body)

    if thermal.status.state == "Enabled":
        metrics.thermal_summary.labels(thermal.url, *device.chassis).set(health_state(thermal.status))

    for fan in thermal.fans:
        if fan.status.state != "Enabled":
            continue
        if fan.fan_name:
            name, speed = fan.fan_name, fan.current_reading
        else:
            name, speed = fan.name, fan.reading
        metrics.fan_speed.labels(name, *device.chassis).set(_value(speed))
        metrics.fan_status.labels(name, *device.chassis).set(health_state(fan.status))

    for sensor in thermal.temperatures:
        if sensor.status.state != "Enabled":
            continue
        name = sensor.name.rstrip(' ')
        metrics.sensor_temperature.labels(name, *device.chassis).set(_value(sensor.reading_celsius))
        metrics.sensor_status.labels(name, *device.chassis).set(health_state(sensor.status))


# ============================================================================
# Storage
# ============================================================================

def export_disk_drive(metrics: DeviceMetrics, device: DeviceLabels, body: bytes):
    drive = decode(redfish.DiskDrive, body)
    # disabled drives still count as OK when their health is OK
    state = health_state(drive.status)

    location = drive.location or drive.physical_location.part_location.service_label
    if drive.capacity_mib:
        capacity = int(drive.capacity_mib)
    elif drive.capacity_bytes:
        capacity = int(drive.capacity_bytes) // 1024 // 1024
    else:
        capacity = 0

    # drives on different array controllers can share an id, location keeps them apart
    metrics.disk_drive_status.labels(
        drive.name, *device.chassis, drive.id, location, drive.serial_number, str(capacity)
    ).set(state)


def export_logical_drive(metrics: DeviceMetrics, device: DeviceLabels, body: bytes):
    drive = decode(redfish.LogicalDrive, body)
    metrics.logical_drive_status.labels(
        drive.name, *device.chassis, drive.logical_drive_name, drive.volume_unique_identifier, drive.raid
    ).set(enabled_state(drive.status))


def export_nvme_drive(metrics: DeviceMetrics, device: DeviceLabels, body: bytes):
    drive = decode(redfish.NVMeDrive, body)
    metrics.nvme_drive_status.labels(
        *device.chassis, drive.protocol, drive.id, drive.physical_location.part_location.service_label
    ).set(enabled_state(drive.drive_status))


def export_unknown_drive(metrics: DeviceMetrics, device: DeviceLabels, body: bytes):
    protocol = decode(redfish.DriveProtocol, body).protocol
    if protocol == "NVMe":
        export_nvme_drive(metrics, device, body)
    elif protocol:
        export_disk_drive(metrics, device, body)


def export_storage_controller(metrics: DeviceMetrics, device: DeviceLabels, body: bytes):
    storage = decode(redfish.StorageControllerMetrics, body)
    if storage.controllers:
        for controller in storage.controllers:
            if controller.status.state == "Enabled":
                metrics.storage_controller_status.labels(
                    storage.name, *device.chassis, controller.firmware_version, controller.model,
                    controller.location
                ).set(health_state(controller.status))
    elif storage.status.state == "Enabled":
        # SmartStorage array controllers describe themselves at the top level
        metrics.storage_controller_status.labels(
            storage.name, *device.chassis, storage.firmware_version, storage.model, storage.location
        ).set(health_state(storage.status))


def export_storage_battery(metrics: DeviceMetrics, device: DeviceLabels, body: bytes):
    system = decode(redfish.System, body)

    for vendor in system.oem.vendors:
        if vendor.battery:
            for battery in vendor.battery:
                if battery.present != "Yes":
                    continue
                state = OK if battery.condition == "Ok" else BAD
                metrics.storage_battery_status.labels(
                    battery.index or "0", *device.chassis, battery.name.rstrip(' '), battery.model
                ).set(state)
            return

    for vendor in (system.oem.hpe, system.oem.hp):
        if vendor.smart_storage_battery:
            for battery in vendor.smart_storage_battery:
                if battery.status.state != "Enabled":
                    continue
                metrics.storage_battery_status.labels(
                    battery.index or "0", *device.chassis, battery.name.rstrip(' '), battery.model
                ).set(health_state(battery.status))
            return


# ============================================================================
# System
# ============================================================================

def export_memory_summary(metrics: DeviceMetrics, device: DeviceLabels, body: bytes):
    system = decode(redfish.System, body)
    summary = system.memory_summary
    state = OK if summary.status.health_rollup == "OK" else BAD
    metrics.memory_status.labels(*device.chassis, summary.total_system_memory_gib or "0").set(state)


def export_memory(metrics: DeviceMetrics, device: DeviceLabels, body: bytes):
    dimm = decode(redfish.Memory, body)

    if dimm.dimm_status:
        capacity = dimm.size_mb
        state = OK if dimm.dimm_status == "GoodInUse" else BAD
    elif isinstance(dimm.status, str) and dimm.status:
        capacity = dimm.capacity_mib
        state = OK if dimm.status == "Operable" else BAD
    elif isinstance(dimm.status, Status):
        capacity = dimm.capacity_mib
        if dimm.status.state == "Absent":
            return
        if dimm.status.state == "Enabled":
            state = OK if dimm.status.health in ("OK", "") else BAD
        else:
            state = BAD
    else:
        return

    metrics.memory_dimm_status.labels(
        dimm.name, *device.chassis, capacity, dimm.manufacturer.rstrip(' '), dimm.part_number.rstrip(' ')
    ).set(state)


def export_processor(metrics: DeviceMetrics, device: DeviceLabels, body: bytes):
    processor = decode(redfish.Processor, body)
    metrics.cpu_status.labels(
        processor.id, *device.chassis, processor.socket, processor.model, processor.total_cores
    ).set(health_state(processor.status))


HANDLERS: Dict[str, List[Handler]] = {
    MetricTag.MANAGER: [export_firmware, export_ilo_self_test],
    MetricTag.SYSTEM: [export_memory_summary, export_storage_battery],
    MetricTag.FIRMWARE: [export_firmware],
    MetricTag.ILO_SELF_TEST: [export_ilo_self_test],
    MetricTag.FIRMWARE_INVENTORY: [export_firmware_inventory],
    MetricTag.THERMAL: [export_thermal],
    MetricTag.POWER: [export_power],
    MetricTag.MEMORY: [export_memory],
    MetricTag.MEMORY_SUMMARY: [export_memory_summary],
    MetricTag.STORAGE_BATTERY: [export_storage_battery],
    MetricTag.PROCESSOR: [export_processor],
    MetricTag.NVME_DRIVE: [export_nvme_drive],
    MetricTag.DISK_DRIVE: [export_disk_drive],
    MetricTag.LOGICAL_DRIVE: [export_logical_drive],
    MetricTag.UNKNOWN_DRIVE: [export_unknown_drive],
    MetricTag.STORAGE_CONTROLLER: [export_storage_controller],
}
