"""
Pytest configuration and fixtures for all tests
"""
import json

import pytest
from fastapi.testclient import TestClient

from bmc_exporter.config import Settings
from bmc_exporter.deps import get_credential_store, get_ignore_list, get_settings
from bmc_exporter.main import app
from bmc_exporter.services.credentials import Credential, CredentialProfile, CredentialStore
from bmc_exporter.services.http_client import Fetcher, RetryPolicy, new_session
from bmc_exporter.services.ignored import IgnoreList

BMC = "https://bmc.example.com"


@pytest.fixture
def test_settings():
    """Settings without waits so retry paths run instantly"""
    return Settings(
        _env_file=None,
        BMC_USERNAME="admin",
        BMC_PASSWORD="secret",
        BMC_TIMEOUT=30,
        BMC_RETRY_MAX=0,
        BMC_RETRY_WAIT=0,
        BMC_REQUEST_DELAY=0,
        VAULT_ADDRESS=None,
    )


@pytest.fixture
def credential_store():
    return CredentialStore()


@pytest.fixture
def ignore_list():
    return IgnoreList()


@pytest.fixture
def client(test_settings, credential_store, ignore_list):
    """Create test client with overridden settings and fresh shared state"""
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_credential_store] = lambda: credential_store
    app.dependency_overrides[get_ignore_list] = lambda: ignore_list
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()


@pytest.fixture
def no_wait_policy():
    return RetryPolicy(wait_seconds=0, pacing_delay=0)


@pytest.fixture
def fetcher(credential_store, no_wait_policy):
    """Fetcher with static credentials and no backend"""
    session = new_session(retry_max=0)
    yield Fetcher(session, credential_store, Credential("admin", "secret"), policy=no_wait_policy)
    session.close()


class FakeBackend:
    """In-memory secret backend recording every read"""

    def __init__(self, secrets=None, error=None):
        self.secrets = secrets or {}
        self.error = error
        self.reads = []

    def read_secret(self, profile, path):
        self.reads.append((profile.name, path))
        if self.error is not None:
            raise self.error
        return self.secrets.get(path, {})


@pytest.fixture
def default_profile():
    return CredentialProfile(name="default", mount_path="kv2", path="bmc")


def payload(data) -> str:
    return json.dumps(data)


# ============================================================================
# A small HPE style device
# ============================================================================

def link(url: str) -> dict:
    return {"@odata.id": url}


def collection(*urls: str) -> dict:
    return {"Members": [link(u) for u in urls], "Members@odata.count": len(urls)}


def mock_device():
    """
    Path -> JSON body for a healthy single-chassis device.

    Every status is OK so a full scrape yields up=1.
    """
    ok = {"State": "Enabled", "Health": "OK"}
    return {
        "/redfish/v1/Chassis/": collection("/redfish/v1/Chassis/1/"),
        "/redfish/v1/Managers/": collection("/redfish/v1/Managers/1/"),
        "/redfish/v1/Chassis/1/": {
            "Id": "1",
            "Links": {"ComputerSystems": [link("/redfish/v1/Systems/1/")]},
            "Power": link("/redfish/v1/Chassis/1/Power/"),
            "Thermal": link("/redfish/v1/Chassis/1/Thermal/"),
        },
        "/redfish/v1/Systems/1/": {
            "BiosVersion": "U30 v2.50",
            "SerialNumber": "SN12345  ",
            "HostName": "node01",
            "MemorySummary": {"Status": {"HealthRollup": "OK"}, "TotalSystemMemoryGiB": 256},
            "Memory": link("/redfish/v1/Systems/1/Memory/"),
            "Oem": {"Hpe": {
                "SmartStorageBattery": [{"Index": 1, "Model": "P01366", "ProductName": "HPE Smart Storage Battery ",
                                         "Status": ok}],
                "Links": {"SmartStorage": link("/redfish/v1/Systems/1/SmartStorage/"),
                          "FirmwareInventory": link("/redfish/v1/Systems/1/FirmwareInventory/")},
            }},
        },
        "/redfish/v1/Chassis/1/Power/": {
            "@odata.id": "/redfish/v1/Chassis/1/Power/",
            "PowerControl": [{"MemberId": "0", "PowerConsumedWatts": 221}],
            "PowerSupplies": [{"Name": "PSU 1", "Manufacturer": "LTEON ", "SerialNumber": "PS1",
                               "FirmwareVersion": "1.00", "PowerSupplyType": "AC", "Model": "865414",
                               "LastPowerOutputWatts": 110, "Status": ok,
                               "Oem": {"Hpe": {"BayNumber": 1, "PowerSupplyStatus": {"State": "Ok"}}}}],
        },
        "/redfish/v1/Chassis/1/Thermal/": {
            "@odata.id": "/redfish/v1/Chassis/1/Thermal/",
            "Fans": [{"Name": "Fan 1", "Reading": 23, "Status": ok}],
            "Temperatures": [{"Name": "01-Inlet Ambient", "ReadingCelsius": 21, "Status": ok}],
        },
        "/redfish/v1/Systems/1/Memory/": collection("/redfish/v1/Systems/1/Memory/proc1dimm1/"),
        "/redfish/v1/Systems/1/Memory/proc1dimm1/": {
            "Name": "proc1dimm1", "Manufacturer": "HPE", "PartNumber": "P00924-B21",
            "CapacityMiB": 32768, "Status": ok,
        },
        "/redfish/v1/Systems/1/Processors/": collection("/redfish/v1/Systems/1/Processors/1/"),
        "/redfish/v1/Systems/1/Processors/1/": {
            "Id": "1", "Socket": "Proc 1", "Model": "Intel(R) Xeon(R) Gold 6230", "TotalCores": 20, "Status": ok,
        },
        "/redfish/v1/Systems/1/SmartStorage/ArrayControllers/": collection(
            "/redfish/v1/Systems/1/SmartStorage/ArrayControllers/0/"),
        "/redfish/v1/Systems/1/SmartStorage/ArrayControllers/0/": {
            "Name": "HpeSmartStorageArrayController", "Model": "HPE Smart Array P408i-a SR Gen10",
            "FirmwareVersion": "2.65", "Location": "Slot 0", "Status": ok,
            "Links": {
                "LogicalDrives": link("/redfish/v1/Systems/1/SmartStorage/ArrayControllers/0/LogicalDrives/"),
                "PhysicalDrives": link("/redfish/v1/Systems/1/SmartStorage/ArrayControllers/0/DiskDrives/"),
            },
        },
        "/redfish/v1/Systems/1/SmartStorage/ArrayControllers/0/LogicalDrives/": collection(
            "/redfish/v1/Systems/1/SmartStorage/ArrayControllers/0/LogicalDrives/1/"),
        "/redfish/v1/Systems/1/SmartStorage/ArrayControllers/0/LogicalDrives/1/": {
            "Name": "HpeSmartStorageLogicalDrive", "LogicalDriveName": "TESTDRIVE NAME 1",
            "VolumeUniqueIdentifier": "ABCDEF12345", "Raid": "1", "Status": ok,
        },
        "/redfish/v1/Systems/1/SmartStorage/ArrayControllers/0/DiskDrives/": collection(
            "/redfish/v1/Systems/1/SmartStorage/ArrayControllers/0/DiskDrives/0/"),
        "/redfish/v1/Systems/1/SmartStorage/ArrayControllers/0/DiskDrives/0/": {
            "Id": "0", "Name": "HpeSmartStorageDiskDrive", "Protocol": "SAS", "Location": "1I:1:1",
            "SerialNumber": "ABC123", "CapacityMiB": 915715, "Status": ok,
        },
        "/redfish/v1/Managers/1/": {
            "Description": "iLO 5", "FirmwareVersion": "iLO 5 v2.30",
            "Oem": {"Hpe": {"iLOSelfTestResults": [{"SelfTestName": "NVRAMData", "Status": "OK"}]}},
        },
        "/redfish/v1/Systems/1/FirmwareInventory/": collection("/redfish/v1/Systems/1/FirmwareInventory/1/"),
        "/redfish/v1/Systems/1/FirmwareInventory/1/": {
            "Id": "1", "Name": "iLO 5", "Description": "SystemBMC", "Version": "2.30",
        },
    }


def register_device(rsps, device, base=BMC):
    """Register every path of a mock device with a `responses` mock."""
    for path, body in device.items():
        rsps.add(rsps.GET, base + path, json=body)
