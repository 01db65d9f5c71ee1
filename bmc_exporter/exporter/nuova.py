"""
IMC XML API plugin.

Servers without an MRAID controller do not list their local disks over
Redfish. For those the plugin adds one task that logs in to the XML API,
resolves the storageLocalDiskSlotEp class and logs out again.
"""

from typing import TYPE_CHECKING
import logging

from bmc_exporter.exporter.handlers import DeviceLabels, MetricTag
from bmc_exporter.exporter.metrics import BAD, OK, DeviceMetrics
from bmc_exporter.models import nuova
from bmc_exporter.services.errors import ScrapeError
from bmc_exporter.services.pool import FetchTask

if TYPE_CHECKING:
    from bmc_exporter.exporter.exporter import Exporter

logger = logging.getLogger(__name__)

NAME = "nuova"


def export_xml_drives(metrics: DeviceMetrics, device: DeviceLabels, body: bytes):
    for slot in nuova.parse_disk_slots(body):
        if slot.presence != "equipped":
            continue
        state = OK if slot.operability == "operable" else BAD
        metrics.disk_drive_status.labels(slot.name, *device.chassis, slot.id, "", "", "").set(state)


class NuovaPlugin:
    def __init__(self, exporter: "Exporter"):
        self.exporter = exporter
        self.endpoint = f"{exporter.url}/nuova"

    def has_raid_controller(self) -> bool:
        url = f"{self.exporter.url}/redfish/v1/Systems/{self.exporter.device.serial_number}/Storage/MRAID"
        try:
            self.exporter.fetcher.execute(url, self.exporter.host)
        except ScrapeError as e:
            logger.debug(f"No MRAID controller at {url}: {e}")
            return False
        return True

    def fetch_drives(self) -> bytes:
        fetcher = self.exporter.fetcher
        credential = fetcher.credential_for(self.exporter.host)

        cookie = nuova.parse_login(fetcher.post(self.endpoint, nuova.login_payload(credential.user, credential.password)))
        try:
            return fetcher.post(self.endpoint, nuova.resolve_class_payload(cookie, nuova.DRIVE_CLASS_ID))
        finally:
            try:
                fetcher.post(self.endpoint, nuova.logout_payload(cookie))
            except ScrapeError as e:
                logger.warning(f"IMC logout from {self.endpoint} failed: {e}")

    def apply(self):
        if self.has_raid_controller():
            return
        self.exporter.pool.add_task(FetchTask(self.endpoint, MetricTag.XML_DRIVE, self.fetch_drives))


PLUGINS = {
    NAME: NuovaPlugin,
}
