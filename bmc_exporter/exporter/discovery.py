"""
Bootstrap discovery - the sequential Redfish walk that finds every endpoint
a scrape will fetch.

Each call goes through the scrape's Fetcher, so discovery shares the pacing,
404 retry and 401 refresh rules of the task batch.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Pattern, Type
from urllib.parse import urlparse
import logging

from bmc_exporter.models import redfish
from bmc_exporter.models.redfish import M, decode
from bmc_exporter.services.http_client import Fetcher

logger = logging.getLogger(__name__)

MAX_FIRMWARE_COMPONENTS = 75


def append_slash(url: str) -> str:
    return url if url.endswith("/") else url + "/"


def pick_manager(urls: List[str]) -> str:
    """First manager, skipping CIMC entries when there is a choice."""
    if not urls:
        return ""
    if len(urls) > 1:
        for url in urls:
            if "CIMC" not in url:
                return url
    return urls[0]


def _unique(urls: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(u for u in urls if u))


@dataclass
class SystemEndpoints:
    systems: List[str] = field(default_factory=list)
    storage_controllers: List[str] = field(default_factory=list)
    drives: List[str] = field(default_factory=list)
    power: List[str] = field(default_factory=list)
    thermal: List[str] = field(default_factory=list)


@dataclass
class DriveEndpoints:
    array_controllers: List[str] = field(default_factory=list)
    logical_drives: List[str] = field(default_factory=list)
    physical_drives: List[str] = field(default_factory=list)

    def extend(self, other: "DriveEndpoints"):
        self.array_controllers = _unique(self.array_controllers + other.array_controllers)
        self.logical_drives = _unique(self.logical_drives + other.logical_drives)
        self.physical_drives = _unique(self.physical_drives + other.physical_drives)


class Discovery:
    """Redfish walker bound to one device and one credential profile."""

    def __init__(self, fetcher: Fetcher, base_url: str, host: str, uri: str = "/redfish/v1",
                 profile: Optional[str] = None, aliases: Optional[Dict[str, str]] = None,
                 drive_exclude: Optional[Pattern] = None, firmware_exclude: Optional[Pattern] = None):
        self.fetcher = fetcher
        self.base_url = base_url
        self.host = host
        self.uri = uri
        self.profile = profile
        self.aliases = aliases
        self.drive_exclude = drive_exclude
        self.firmware_exclude = firmware_exclude

    def absolute(self, url: str) -> str:
        """Resolve an @odata.id path against the device URL."""
        if urlparse(url).scheme:
            return url
        return self.base_url + url

    def get(self, url: str, model: Type[M]) -> M:
        body = self.fetcher.execute(self.absolute(url), self.host, self.profile, self.aliases)
        return decode(model, body)

    def member_urls(self, url: str) -> List[str]:
        return [self.absolute(u) for u in self.get(url, redfish.Collection).urls]

    def _drive_excluded(self, url: str) -> bool:
        return self.drive_exclude is not None and self.drive_exclude.search(url) is not None

    def chassis_urls(self) -> List[str]:
        return self.member_urls(f"{self.base_url}{self.uri}/Chassis/")

    def manager_url(self) -> str:
        return pick_manager(self.member_urls(f"{self.base_url}{self.uri}/Managers/"))

    def system_endpoints(self, chassis_urls: List[str]) -> SystemEndpoints:
        endpoints = SystemEndpoints()
        for chassis_url in chassis_urls:
            chassis = self.get(chassis_url, redfish.Chassis)
            links = chassis.links

            if links.computer_systems:
                endpoints.systems.append(self.absolute(append_slash(links.computer_systems[0].url)))
            endpoints.storage_controllers.extend(self.absolute(s.url) for s in links.storage if s.url)
            for drive in links.drives:
                if not drive.url:
                    continue
                url = self.absolute(drive.url)
                if self._drive_excluded(url):
                    logger.debug(f"Skipping excluded drive {url}")
                    continue
                endpoints.drives.append(url)

            if chassis.power is not None and chassis.power.url:
                endpoints.power.append(self.absolute(chassis.power.url))
            else:
                endpoints.power.append(append_slash(chassis_url) + "Power/")
            if chassis.thermal is not None and chassis.thermal.url:
                endpoints.thermal.append(self.absolute(chassis.thermal.url))
            else:
                endpoints.thermal.append(append_slash(chassis_url) + "Thermal/")

        endpoints.systems = _unique(endpoints.systems)
        endpoints.storage_controllers = _unique(endpoints.storage_controllers)
        endpoints.drives = _unique(endpoints.drives)
        endpoints.power = _unique(endpoints.power)
        endpoints.thermal = _unique(endpoints.thermal)
        return endpoints

    def system(self, system_url: str) -> redfish.System:
        return self.get(system_url, redfish.System)

    def dimm_urls(self, system: redfish.System) -> List[str]:
        if not system.memory_url:
            return []
        return self.member_urls(append_slash(system.memory_url))

    def processor_urls(self, system_url: str) -> List[str]:
        return self.member_urls(append_slash(system_url) + "Processors/")

    def drive_endpoints(self, collection_url: str) -> DriveEndpoints:
        """
        Walk an array controller or storage collection.

        SmartStorage controllers link LogicalDrives and PhysicalDrives
        collections, standard Storage members list their Drives inline.
        """
        endpoints = DriveEndpoints()
        for controller_url in self.member_urls(append_slash(collection_url)):
            endpoints.array_controllers.append(controller_url)
            controller = self.get(controller_url, redfish.GenericDrive)

            for url in controller.linked("logical_drives"):
                endpoints.logical_drives.extend(self.member_urls(append_slash(url)))
            for url in controller.linked("physical_drives"):
                endpoints.physical_drives.extend(self.member_urls(append_slash(url)))
            for drive in controller.drives:
                if drive.url:
                    endpoints.physical_drives.append(self.absolute(drive.url))

        endpoints.array_controllers = _unique(endpoints.array_controllers)
        endpoints.logical_drives = _unique(endpoints.logical_drives)
        endpoints.physical_drives = _unique(u for u in endpoints.physical_drives if not self._drive_excluded(u))
        return endpoints

    def firmware_inventory_urls(self, system: redfish.System) -> List[str]:
        urls: List[str] = []
        if system.firmware_inventory_url:
            inventory = self.absolute(system.firmware_inventory_url)
            urls = self.member_urls(inventory) or [inventory]
        else:
            root = self.get(f"{self.base_url}{self.uri}/", redfish.ServiceRoot)
            if root.update_service is not None and root.update_service.url:
                update = self.get(root.update_service.url, redfish.UpdateService)
                links = [self.absolute(link.url) for link in update.firmware_inventory if link.url]
                if len(links) == 1:
                    urls = self.member_urls(links[0])
                else:
                    urls = links

        if len(urls) >= MAX_FIRMWARE_COMPONENTS:
            logger.info(f"Skipping firmware inventory of {self.host}, {len(urls)} components")
            return []
        if self.firmware_exclude is not None:
            urls = [u for u in urls if self.firmware_exclude.search(u) is None]
        return urls
