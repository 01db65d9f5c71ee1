"""
Unit tests for payload decoding

Covers the shape normalisation in the Redfish models and the IMC XML
documents.
"""

import pytest

from bmc_exporter.models import nuova, redfish
from bmc_exporter.models.redfish import decode
from bmc_exporter.services.errors import DecodeError


class TestFlexibleFields:
    """Test normalisation of ambiguous JSON shapes"""

    @pytest.mark.parametrize("raw,expected", [
        (12, 12.0),
        (12.5, 12.5),
        ("13", 13.0),
        (" 7.5 ", 7.5),
        ("n/a", None),
        (None, None),
        (True, None),
        ({"x": 1}, None),
    ])
    def test_flex_number(self, raw, expected):
        assert redfish.flex_number(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        (16384, "16384"),
        (16384.0, "16384"),
        ("32", "32"),
        (None, ""),
        (False, ""),
    ])
    def test_flex_label(self, raw, expected):
        assert redfish.flex_label(raw) == expected

    def test_link_variants(self):
        """Test @odata.id, href and bare string links"""
        chassis = decode(redfish.Chassis, b'{"Links": {"ComputerSystems": ['
                                           b'{"@odata.id": "/a/"}, {"href": "/b/"}, "/c/"]}}')
        assert [link.url for link in chassis.links.computer_systems] == ["/a/", "/b/", "/c/"]

    def test_single_link_from_list(self):
        chassis = decode(redfish.Chassis, b'{"Power": [{"@odata.id": "/power/"}]}')
        assert chassis.power.url == "/power/"

    def test_object_where_list_expected(self):
        thermal = decode(redfish.ThermalMetrics, b'{"Fans": {"Name": "Fan 1"}}')
        assert [fan.name for fan in thermal.fans] == ["Fan 1"]

    def test_null_status(self):
        voltage = decode(redfish.Voltage, b'{"Name": "V", "Status": null}')
        assert voltage.status.state == ""

    def test_unknown_fields_ignored(self):
        manager = decode(redfish.Manager, b'{"FirmwareVersion": "1.0", "Whatever": {"deep": [1, 2]}}')
        assert manager.firmware_version == "1.0"

    def test_invalid_json(self):
        with pytest.raises(DecodeError):
            decode(redfish.Manager, b"not json")


class TestSystemLinks:
    """Test link lookups on the computer system"""

    def test_hpe_oem_links(self):
        system = decode(redfish.System, b'{"Oem": {"Hpe": {"Links": {'
                                        b'"SmartStorage": {"@odata.id": "/ss/"},'
                                        b'"FirmwareInventory": {"@odata.id": "/fw/"}}}}}')
        assert system.smart_storage_url == "/ss/"
        assert system.firmware_inventory_url == "/fw/"

    def test_hp_lowercase_links(self):
        system = decode(redfish.System, b'{"Oem": {"Hp": {"links": {"Memory": {"href": "/mem/"}}}}}')
        assert system.memory_url == "/mem/"

    def test_standard_links(self):
        system = decode(redfish.System, b'{"Memory": {"@odata.id": "/m/"}, "Storage": {"@odata.id": "/s/"},'
                                        b'"FirmwareInventory": {"@odata.id": "/f/"}}')
        assert system.memory_url == "/m/"
        assert system.storage_url == "/s/"
        assert system.firmware_inventory_url == "/f/"
        assert system.smart_storage_url == ""

    def test_drive_links(self):
        controller = decode(redfish.GenericDrive, b'{"Links": {"LogicalDrives": {"@odata.id": "/ld/"}},'
                                                  b'"links": {"PhysicalDrives": {"href": "/pd/"}}}')
        assert controller.linked("logical_drives") == ["/ld/"]
        assert controller.linked("physical_drives") == ["/pd/"]


class TestNuovaPayloads:
    """Test the IMC XML API documents"""

    def test_login_payload(self):
        payload = nuova.login_payload("admin", "p&ss")
        assert payload.startswith(b"<aaaLogin ")
        assert b'inName="admin"' in payload
        assert b'inPassword="p&amp;ss"' in payload

    def test_resolve_class_payload(self):
        payload = nuova.resolve_class_payload("cookie1", nuova.DRIVE_CLASS_ID)
        assert b'classId="storageLocalDiskSlotEp"' in payload
        assert b'cookie="cookie1"' in payload
        assert b'inHierarchical="false"' in payload

    def test_parse_login(self):
        assert nuova.parse_login(b'<aaaLogin cookie="" response="yes" outCookie="1234/abcd"/>') == "1234/abcd"

    def test_parse_login_error(self):
        with pytest.raises(nuova.IMCLoginError) as exc_info:
            nuova.parse_login(b'<aaaLogin cookie="" response="yes" errorCode="551" '
                              b'errorDescr="Authorization failed"/>')
        assert exc_info.value.error_code == "551"
        assert "Authorization failed" in str(exc_info.value)

    def test_parse_wrong_document(self):
        with pytest.raises(DecodeError):
            nuova.parse_login(b'<aaaLogout outStatus="success"/>')

    def test_parse_garbage(self):
        with pytest.raises(DecodeError):
            nuova.parse_disk_slots(b"<configResolveClass")

    def test_parse_disk_slots(self):
        slots = nuova.parse_disk_slots(
            b'<configResolveClass cookie="c" response="yes" classId="storageLocalDiskSlotEp"><outConfigs>'
            b'<storageLocalDiskSlotEp id="1" dn="sys/rack-unit-1/board/disk-1" operability="operable" '
            b'presence="equipped"/>'
            b'<storageLocalDiskSlotEp id="2" name="Slot 2" dn="sys/rack-unit-1/board/disk-2" '
            b'operability="N/A" presence="missing"/>'
            b'</outConfigs></configResolveClass>'
        )
        assert [s.id for s in slots] == ["1", "2"]
        assert slots[0].name == "sys/rack-unit-1/board/disk-1"
        assert slots[1].name == "Slot 2"
        assert slots[1].presence == "missing"
