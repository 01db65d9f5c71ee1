"""
Unit tests for the IMC XML API plugin
"""

import responses

from bmc_exporter.exporter.exporter import Component, Exporter
from bmc_exporter.exporter.handlers import DeviceLabels, MetricTag
from bmc_exporter.exporter.metrics import DeviceMetrics
from bmc_exporter.exporter.nuova import export_xml_drives
from bmc_exporter.models.nuova import IMCLoginError
from bmc_exporter.services.ignored import IgnoreList
from bmc_exporter.services.pool import ScrapeStatus
from tests.conftest import BMC, mock_device, register_device

NUOVA = BMC + "/nuova"
MRAID = BMC + "/redfish/v1/Systems/SN12345/Storage/MRAID"

LOGIN = b'<aaaLogin cookie="" response="yes" outCookie="1700000000/abcd-ef"/>'
DISK_SLOTS = (
    b'<configResolveClass cookie="1700000000/abcd-ef" response="yes" classId="storageLocalDiskSlotEp">'
    b'<outConfigs>'
    b'<storageLocalDiskSlotEp id="1" dn="sys/rack-unit-1/board/disk-1" operability="operable" presence="equipped"/>'
    b'<storageLocalDiskSlotEp id="2" dn="sys/rack-unit-1/board/disk-2" operability="inoperable" '
    b'presence="equipped"/>'
    b'<storageLocalDiskSlotEp id="3" dn="sys/rack-unit-1/board/disk-3" operability="N/A" presence="missing"/>'
    b'</outConfigs></configResolveClass>'
)
LOGOUT = b'<aaaLogout cookie="" response="yes" outStatus="success"/>'


def make_exporter(fetcher):
    return Exporter("bmc.example.com", "C220M5", fetcher, IgnoreList(),
                    components={Component.SYSTEM}, plugins=["nuova"])


def post_bodies():
    return [call.request.body for call in responses.calls if call.request.method == "POST"]


def drive_status(metrics, name, drive_id):
    return metrics.registry.get_sample_value("redfish_disk_drive_status", {
        "name": name, "chassisSerialNumber": "SN12345", "chassisModel": "C220M5",
        "id": drive_id, "location": "", "serialnumber": "", "capacityMiB": "",
    })


class TestExportXmlDrives:
    """Test translation of storageLocalDiskSlotEp documents"""

    def test_equipped_slots(self):
        metrics = DeviceMetrics()
        device = DeviceLabels(model="C220M5", serial_number="SN12345")

        export_xml_drives(metrics, device, DISK_SLOTS)

        assert drive_status(metrics, "sys/rack-unit-1/board/disk-1", "1") == 1
        assert drive_status(metrics, "sys/rack-unit-1/board/disk-2", "2") == 0
        assert drive_status(metrics, "sys/rack-unit-1/board/disk-3", "3") is None


class TestNuovaPlugin:
    """Test the plugin inside a scrape"""

    @responses.activate
    def test_queries_xml_api_without_mraid(self, fetcher):
        register_device(responses, mock_device())
        responses.add(responses.POST, NUOVA, body=LOGIN)
        responses.add(responses.POST, NUOVA, body=DISK_SLOTS)
        responses.add(responses.POST, NUOVA, body=LOGOUT)
        exporter = make_exporter(fetcher)

        outcome = exporter.collect()

        assert outcome.status == ScrapeStatus.HEALTHY
        assert [result.tag for result in outcome.results] == [MetricTag.SYSTEM, MetricTag.XML_DRIVE]
        bodies = post_bodies()
        assert len(bodies) == 3
        assert bodies[0].startswith(b"<aaaLogin ")
        assert b'classId="storageLocalDiskSlotEp"' in bodies[1]
        assert b'cookie="1700000000/abcd-ef"' in bodies[1]
        assert bodies[2].startswith(b"<aaaLogout ")
        assert drive_status(exporter.metrics, "sys/rack-unit-1/board/disk-1", "1") == 1

    @responses.activate
    def test_skipped_with_mraid(self, fetcher):
        register_device(responses, mock_device())
        responses.add(responses.GET, MRAID, json={"Id": "MRAID"})
        exporter = make_exporter(fetcher)

        outcome = exporter.collect()

        assert outcome.status == ScrapeStatus.HEALTHY
        assert [result.tag for result in outcome.results] == [MetricTag.SYSTEM]
        assert post_bodies() == []

    @responses.activate
    def test_login_failure_fails_task(self, fetcher):
        register_device(responses, mock_device())
        responses.add(responses.POST, NUOVA,
                      body=b'<aaaLogin cookie="" response="yes" errorCode="551" errorDescr="Authorization failed"/>')
        exporter = make_exporter(fetcher)

        outcome = exporter.collect()

        assert outcome.status == ScrapeStatus.UNHEALTHY
        assert isinstance(outcome.results[-1].error, IMCLoginError)
        assert len(post_bodies()) == 1

    @responses.activate
    def test_logout_failure_keeps_result(self, fetcher):
        register_device(responses, mock_device())
        responses.add(responses.POST, NUOVA, body=LOGIN)
        responses.add(responses.POST, NUOVA, body=DISK_SLOTS)
        responses.add(responses.POST, NUOVA, status=500)
        exporter = make_exporter(fetcher)

        outcome = exporter.collect()

        assert outcome.status == ScrapeStatus.HEALTHY
        assert drive_status(exporter.metrics, "sys/rack-unit-1/board/disk-2", "2") == 0
