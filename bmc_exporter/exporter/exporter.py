"""
Device Scrape Orchestrator.

One Exporter serves one scrape of one BMC:

    CheckIgnored -> Bootstrap -> BuildTasks -> RunPool -> Translate -> Aggregate

Bootstrap discovery runs sequentially; the endpoints it finds become the
task batch that the pool fetches. Results are translated in submission
order, so the first failing task decides how the scrape ends.

The scrape deadline covers bootstrap and the start of the pool. Once the
pool runs, each task finishes or fails on its own request timeout.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Pattern, Sequence, Set, Tuple
from urllib.parse import urlparse
import logging

from bmc_exporter.exporter.discovery import Discovery, DriveEndpoints, SystemEndpoints, append_slash
from bmc_exporter.exporter.handlers import HANDLERS, DeviceLabels, Handler, MetricTag
from bmc_exporter.exporter.metrics import DeviceMetrics
from bmc_exporter.exporter.nuova import PLUGINS, export_xml_drives
from bmc_exporter.models import redfish
from bmc_exporter.services.errors import DiscoveryError, InvalidCredentialError, ScrapeError
from bmc_exporter.services.http_client import Fetcher
from bmc_exporter.services.ignored import IgnoredDevice, IgnoreList, chassis_endpoint
from bmc_exporter.services.pool import FetchTask, ScrapeStatus, TaskPool, aggregate_status

logger = logging.getLogger(__name__)

REDFISH_URI = "/redfish/v1"

TAG_HANDLERS: Dict[str, List[Handler]] = {
    **HANDLERS,
    MetricTag.XML_DRIVE: [export_xml_drives],
}


class Component(str, Enum):
    THERMAL = "thermal"
    POWER = "power"
    MEMORY = "memory"
    PROCESSOR = "processor"
    DRIVES = "drives"
    STORAGE_CONTROLLER = "storage_controller"
    FIRMWARE = "firmware"
    SYSTEM = "system"


ALL_COMPONENTS = frozenset(Component)

# components whose endpoints hang off the first computer system
SYSTEM_COMPONENTS = frozenset({
    Component.MEMORY, Component.PROCESSOR, Component.DRIVES,
    Component.STORAGE_CONTROLLER, Component.FIRMWARE, Component.SYSTEM,
})


def parse_components(value: Optional[str]) -> Set[Component]:
    """Parse a comma separated component list, dropping unknown names."""
    components = set()
    for name in (value or "").split(","):
        name = name.strip().lower()
        if not name:
            continue
        try:
            components.add(Component(name))
        except ValueError:
            logger.warning(f"Ignoring unknown component {name!r}")
    return components


def normalize_target(target: str, scheme: str = "https") -> Tuple[str, str]:
    """Return (url, host) for a target given with or without a scheme."""
    target = target.strip()
    parsed = urlparse(target if "://" in target else f"{scheme}://{target}")
    if not parsed.hostname:
        raise ValueError(f"invalid target {target!r}")
    return f"{parsed.scheme}://{parsed.netloc}", parsed.hostname


@dataclass
class TaskResult:
    url: str
    tag: str
    ok: bool
    error: Optional[Exception] = None


@dataclass
class ScrapeOutcome:
    status: ScrapeStatus
    results: List[TaskResult] = field(default_factory=list)


class Exporter:
    """Scrapes one BMC into a fresh DeviceMetrics registry."""

    def __init__(self, target: str, model: str, fetcher: Fetcher, ignore_list: IgnoreList,
                 credential_profile: str = "", aliases: Optional[Dict[str, str]] = None,
                 components: Optional[Iterable[Component]] = None, plugins: Sequence[str] = (),
                 concurrency: int = 1, scheme: str = "https",
                 drive_exclude: Optional[Pattern] = None, firmware_exclude: Optional[Pattern] = None):
        self.url, self.host = normalize_target(target, scheme)
        self.model = model
        self.fetcher = fetcher
        self.ignore_list = ignore_list
        self.credential_profile = credential_profile
        self.aliases = aliases or {}
        self.components = frozenset(components) if components is not None else ALL_COMPONENTS
        self.plugins = [p for p in plugins if p]
        self.device = DeviceLabels(model=model)
        self.metrics = DeviceMetrics()
        self.pool = TaskPool(concurrency=concurrency)
        self.discovery = Discovery(
            fetcher, self.url, self.host, REDFISH_URI,
            profile=credential_profile or None, aliases=self.aliases,
            drive_exclude=drive_exclude, firmware_exclude=firmware_exclude,
        )

        for name in self.plugins:
            if name not in PLUGINS:
                raise ValueError(f"unknown plugin {name!r}")

    def wants(self, component: Component) -> bool:
        return component in self.components

    def _add(self, urls: Iterable[str], tag: MetricTag):
        for url in urls:
            self.pool.add_task(FetchTask(
                url, tag,
                self.fetcher.fetch(url, self.host, self.credential_profile or None, self.aliases),
            ))

    def _ignore(self, error: InvalidCredentialError):
        logger.error(f"Invalid credentials for {self.host}, ignoring host: {error}")
        self.ignore_list.add(IgnoredDevice(
            host=self.host,
            endpoint=chassis_endpoint(self.url),
            model=self.model,
            credential_profile=self.credential_profile,
        ))

    def _finish(self, status: ScrapeStatus, results: Optional[List[TaskResult]] = None) -> ScrapeOutcome:
        self.metrics.set_up(status)
        return ScrapeOutcome(status, results or [])

    # ========================================================================
    # Bootstrap
    # ========================================================================

    def _drive_endpoints(self, system: redfish.System, endpoints: SystemEndpoints) -> DriveEndpoints:
        drives = DriveEndpoints()
        if system.smart_storage_url:
            drives.extend(self.discovery.drive_endpoints(append_slash(system.smart_storage_url) + "ArrayControllers/"))
        missing_controllers = not endpoints.storage_controllers and not drives.array_controllers
        missing_drives = not endpoints.drives and not drives.physical_drives
        if system.storage_url and (missing_controllers or missing_drives):
            drives.extend(self.discovery.drive_endpoints(system.storage_url))
        return drives

    def bootstrap(self):
        """Discover the device and queue one task per endpoint."""
        discovery = self.discovery
        chassis_urls = discovery.chassis_urls()

        manager_url = ""
        if self.wants(Component.FIRMWARE) or self.wants(Component.SYSTEM):
            manager_url = discovery.manager_url()

        endpoints = discovery.system_endpoints(chassis_urls)
        system_url = endpoints.systems[0] if endpoints.systems else ""
        system = redfish.System()
        if system_url and self.components & SYSTEM_COMPONENTS:
            system = discovery.system(system_url)
            self.device.bios_version = system.bios_version
            self.device.serial_number = system.serial_number.rstrip()
            logger.debug(f"Discovered system {system_url} serial={self.device.serial_number} "
                         f"hostname={system.host_name}")

        if self.wants(Component.SYSTEM) and system_url:
            self._add([system_url], MetricTag.SYSTEM)
        if self.wants(Component.POWER):
            self._add(endpoints.power, MetricTag.POWER)
        if self.wants(Component.THERMAL):
            self._add(endpoints.thermal, MetricTag.THERMAL)
        if self.wants(Component.MEMORY):
            self._add(discovery.dimm_urls(system), MetricTag.MEMORY)
        if self.wants(Component.PROCESSOR) and system_url:
            self._add(discovery.processor_urls(system_url), MetricTag.PROCESSOR)

        if self.wants(Component.STORAGE_CONTROLLER) or self.wants(Component.DRIVES):
            drives = self._drive_endpoints(system, endpoints)
            if self.wants(Component.STORAGE_CONTROLLER):
                self._add(endpoints.storage_controllers + drives.array_controllers, MetricTag.STORAGE_CONTROLLER)
            if self.wants(Component.DRIVES):
                self._add(drives.logical_drives, MetricTag.LOGICAL_DRIVE)
                self._add(endpoints.drives + drives.physical_drives, MetricTag.UNKNOWN_DRIVE)

        if self.wants(Component.FIRMWARE):
            if manager_url:
                self._add([manager_url], MetricTag.MANAGER)
            self._add(discovery.firmware_inventory_urls(system), MetricTag.FIRMWARE_INVENTORY)

        for name in self.plugins:
            PLUGINS[name](self).apply()

    # ========================================================================
    # Translation
    # ========================================================================

    def _handle(self, task: FetchTask) -> bool:
        handlers = TAG_HANDLERS.get(task.tag)
        if handlers is None:
            logger.warning(f"No handler for tag {task.tag}, dropping {task.url}")
            return True

        ok = True
        for handler in handlers:
            try:
                handler(self.metrics, self.device, task.body)
            except ScrapeError as e:
                logger.error(f"Error handling {task.tag} response from {task.url}: {e}")
                ok = False
        return ok

    def translate(self) -> ScrapeOutcome:
        results: List[TaskResult] = []
        for task in self.pool:
            if task.error is not None:
                results.append(TaskResult(task.url, task.tag, False, task.error))
                if isinstance(task.error, InvalidCredentialError):
                    self._ignore(task.error)
                    return self._finish(ScrapeStatus.IGNORED, results)
                logger.error(f"Error fetching {task.tag} from {task.url}: {task.error}")
                return self._finish(ScrapeStatus.UNHEALTHY, results)

            results.append(TaskResult(task.url, task.tag, self._handle(task)))

        return self._finish(aggregate_status([r.ok for r in results]), results)

    def collect(self) -> ScrapeOutcome:
        """Run the whole scrape. Gauges and `up` are left in self.metrics."""
        self.metrics.reset()

        if self.host in self.ignore_list:
            logger.info(f"Host {self.host} is on the ignored list, skipping scrape")
            return self._finish(ScrapeStatus.IGNORED)

        try:
            self.bootstrap()
            self.fetcher.context.check()
        except InvalidCredentialError as e:
            self._ignore(e)
            return self._finish(ScrapeStatus.IGNORED)
        except ScrapeError as e:
            raise DiscoveryError(f"error discovering {self.host}", e) from e

        # dispatched tasks are bounded by the per-request timeout only
        self.fetcher.context.clear_deadline()
        logger.debug(f"Running {len(self.pool)} tasks for {self.host}")
        self.pool.run()
        return self.translate()

    def render(self) -> bytes:
        return self.metrics.render()
