"""
Device gauges - one CollectorRegistry per scrape.

Gauge value convention:
- 1.0 = OK
- 0.0 = BAD
- -1.0 = DISABLED

The `up` gauge carries the aggregate ScrapeStatus, where 2 means the host
was skipped because it is on the ignored list.
"""

from typing import List

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, Gauge, generate_latest

from bmc_exporter.services.pool import ScrapeStatus

OK = 1.0
BAD = 0.0
DISABLED = -1.0

CHASSIS_LABELS = ['chassisSerialNumber', 'chassisModel']


class DeviceMetrics:
    """Labelled gauges for a single device scrape."""

    def __init__(self):
        self.registry = CollectorRegistry()

        self.up = Gauge('up', 'was the last scrape of the device successful.', registry=self.registry)

        # Thermal
        self.thermal_summary = self._gauge(
            'redfish_thermal_summary_status', 'overall status of chassis thermal, 1 = OK, 0 = BAD',
            ['url', *CHASSIS_LABELS])
        self.fan_speed = self._gauge(
            'redfish_thermal_fan_speed', 'fan speed reading of the chassis component',
            ['name', *CHASSIS_LABELS])
        self.fan_status = self._gauge(
            'redfish_thermal_fan_status', 'status of the chassis fan, 1 = OK, 0 = BAD',
            ['name', *CHASSIS_LABELS])
        self.sensor_temperature = self._gauge(
            'redfish_thermal_sensor_temperature', 'temperature sensor reading in celsius',
            ['name', *CHASSIS_LABELS])
        self.sensor_status = self._gauge(
            'redfish_thermal_sensor_status', 'status of the temperature sensor, 1 = OK, 0 = BAD',
            ['name', *CHASSIS_LABELS])

        # Power
        self.voltage_output = self._gauge(
            'redfish_power_voltage_output', 'power voltage output in volts',
            ['name', *CHASSIS_LABELS])
        self.voltage_status = self._gauge(
            'redfish_power_voltage_status', 'status of the voltage sensor, 1 = OK, 0 = BAD',
            ['name', *CHASSIS_LABELS])
        psu_labels = ['name', *CHASSIS_LABELS, 'manufacturer', 'serialNumber', 'firmwareVersion',
                      'powerSupplyType', 'bayNumber', 'model']
        self.supply_output = self._gauge(
            'redfish_power_supply_output', 'power supply output in watts', psu_labels)
        self.supply_status = self._gauge(
            'redfish_power_supply_status', 'status of the power supply, 1 = OK, 0 = BAD', psu_labels)
        self.supply_total_consumed = self._gauge(
            'redfish_power_supply_total_consumed', 'total output of all power supplies in watts',
            ['memberId', *CHASSIS_LABELS])

        # Processor and memory
        self.cpu_status = self._gauge(
            'redfish_cpu_status', 'status of the processor, 1 = OK, 0 = BAD',
            ['id', *CHASSIS_LABELS, 'socket', 'model', 'totalCores'])
        self.memory_status = self._gauge(
            'redfish_memory_status', 'overall memory health rollup, 1 = OK, 0 = BAD',
            [*CHASSIS_LABELS, 'totalSystemMemoryGiB'])
        self.memory_dimm_status = self._gauge(
            'redfish_memory_dimm_status', 'status of the memory dimm, 1 = OK, 0 = BAD',
            ['name', *CHASSIS_LABELS, 'capacityMiB', 'manufacturer', 'partNumber'])

        # Storage
        self.nvme_drive_status = self._gauge(
            'redfish_nvme_drive_status', 'status of the NVMe drive, 1 = OK, 0 = BAD, -1 = DISABLED',
            [*CHASSIS_LABELS, 'protocol', 'id', 'serviceLabel'])
        self.disk_drive_status = self._gauge(
            'redfish_disk_drive_status', 'status of the disk drive, 1 = OK, 0 = BAD',
            ['name', *CHASSIS_LABELS, 'id', 'location', 'serialnumber', 'capacityMiB'])
        self.logical_drive_status = self._gauge(
            'redfish_logical_drive_status', 'status of the logical drive, 1 = OK, 0 = BAD, -1 = DISABLED',
            ['name', *CHASSIS_LABELS, 'logicaldrivename', 'volumeuniqueidentifier', 'raid'])
        self.storage_controller_status = self._gauge(
            'redfish_storage_controller_status', 'status of the storage controller, 1 = OK, 0 = BAD',
            ['name', *CHASSIS_LABELS, 'firmwareVersion', 'model', 'location'])
        self.storage_battery_status = self._gauge(
            'redfish_storage_battery_status', 'status of the storage battery, 1 = OK, 0 = BAD',
            ['id', *CHASSIS_LABELS, 'name', 'model'])

        # Manager and firmware
        self.ilo_self_test_status = self._gauge(
            'redfish_ilo_selftest_status', 'status of the iLO self test, 1 = OK, 0 = BAD',
            ['name', *CHASSIS_LABELS])
        self.device_info = self._gauge(
            'redfish_device_info', 'current device information',
            ['name', *CHASSIS_LABELS, 'firmwareVersion', 'biosVersion'])
        self.component_firmware = self._gauge(
            'redfish_component_firmware', 'firmware version of a system component',
            ['id', 'name', 'description', 'version'])

    def _gauge(self, name: str, documentation: str, labelnames: List[str]) -> Gauge:
        return Gauge(name, documentation, labelnames, registry=self.registry)

    @property
    def labelled_gauges(self) -> List[Gauge]:
        return [g for g in vars(self).values() if isinstance(g, Gauge) and g is not self.up]

    def reset(self):
        for gauge in self.labelled_gauges:
            gauge.clear()
        self.up.set(0)

    def set_up(self, status: ScrapeStatus):
        self.up.set(float(status))

    def render(self) -> bytes:
        return generate_latest(self.registry)

    @staticmethod
    def content_type() -> str:
        return CONTENT_TYPE_LATEST
