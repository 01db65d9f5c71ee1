"""
Unit tests for the Ignore List
"""

import pytest
import requests
import responses

from bmc_exporter.services.credentials import Credential, CredentialProfile, CredentialStore
from bmc_exporter.services.errors import BackendUnavailableError, IgnoredHostNotFoundError
from bmc_exporter.services.ignored import IgnoredDevice, IgnoreList, chassis_endpoint
from tests.conftest import FakeBackend

STATIC = Credential("admin", "secret")


@pytest.fixture
def listed():
    ignore_list = IgnoreList()
    ignore_list.add(IgnoredDevice(host="bmc1", endpoint=chassis_endpoint("bmc1"), model="DL380",
                                  credential_profile="default"))
    return ignore_list


class TestIgnoreList:
    """Test IgnoreList bookkeeping"""

    def test_chassis_endpoint(self):
        assert chassis_endpoint("10.0.0.5") == "https://10.0.0.5/redfish/v1/Chassis/"
        assert chassis_endpoint("http://bmc1:8080") == "http://bmc1:8080/redfish/v1/Chassis/"

    def test_add_and_contains(self, listed):
        assert "bmc1" in listed
        assert "bmc2" not in listed
        assert len(listed) == 1
        assert listed.get("bmc1").model == "DL380"

    def test_list_sorted(self):
        ignore_list = IgnoreList()
        for host in ("c", "a", "b"):
            ignore_list.add(IgnoredDevice(host=host, endpoint=chassis_endpoint(host)))
        assert [d.host for d in ignore_list.list()] == ["a", "b", "c"]

    def test_readd_replaces(self, listed):
        listed.add(IgnoredDevice(host="bmc1", endpoint=chassis_endpoint("bmc1"), model="DL360"))
        assert len(listed) == 1
        assert listed.get("bmc1").model == "DL360"

    def test_remove(self, listed):
        assert listed.remove("bmc1") is True
        assert listed.remove("bmc1") is False
        assert "bmc1" not in listed

    def test_remove_host_missing(self):
        with pytest.raises(IgnoredHostNotFoundError) as exc_info:
            IgnoreList().remove_host("bmc9")
        assert str(exc_info.value) == "host bmc9 is not in the ignored list"


class TestConnectionTest:
    """Test IgnoreList.test_connection"""

    @responses.activate
    def test_connected(self, listed):
        responses.add(responses.GET, chassis_endpoint("bmc1"), json={}, status=200)

        result = listed.test_connection("bmc1", CredentialStore(), requests.Session(), STATIC)

        assert result.connected is True
        assert result.error is None
        assert "bmc1" in listed

    @responses.activate
    def test_still_unauthorized(self, listed):
        responses.add(responses.GET, chassis_endpoint("bmc1"), status=401)

        result = listed.test_connection("bmc1", CredentialStore(), requests.Session(), STATIC)

        assert result.connected is False
        assert result.error == "HTTP status 401"

    @responses.activate
    def test_unreachable(self, listed):
        responses.add(responses.GET, chassis_endpoint("bmc1"), body=requests.exceptions.ConnectionError("refused"))

        result = listed.test_connection("bmc1", CredentialStore(), requests.Session(), STATIC)

        assert result.connected is False
        assert "refused" in result.error

    @responses.activate
    def test_refreshes_credentials_from_backend(self, listed):
        """Test the stored profile is used to re-read the secret and the result is cached"""
        responses.add(responses.GET, chassis_endpoint("bmc1"), json={}, status=200)
        backend = FakeBackend(secrets={"bmc/bmc1": {"user": "fresh", "password": "pw"}})
        store = CredentialStore(backend=backend,
                                profiles=[CredentialProfile(name="default", mount_path="kv2", path="bmc")])

        result = listed.test_connection("bmc1", store, requests.Session(), STATIC)

        assert result.connected is True
        assert backend.reads == [("default", "bmc/bmc1")]
        assert store.get("bmc1") == Credential("fresh", "pw")

    def test_backend_failure(self, listed):
        store = CredentialStore(backend=FakeBackend(error=BackendUnavailableError("vault down")),
                                profiles=[CredentialProfile(name="default", mount_path="kv2")])

        result = listed.test_connection("bmc1", store, requests.Session(), STATIC)

        assert result.connected is False
        assert "vault down" in result.error

    def test_not_listed(self, listed):
        with pytest.raises(IgnoredHostNotFoundError):
            listed.test_connection("bmc2", CredentialStore(), requests.Session(), STATIC)

    @responses.activate
    def test_uses_stored_endpoint(self):
        """Test the connection test uses the scheme and port the scrape used"""
        ignore_list = IgnoreList()
        ignore_list.add(IgnoredDevice(host="bmc2", endpoint=chassis_endpoint("http://bmc2:8080")))
        responses.add(responses.GET, "http://bmc2:8080/redfish/v1/Chassis/", json={}, status=200)

        result = ignore_list.test_connection("bmc2", CredentialStore(), requests.Session(), STATIC)

        assert result.connected is True
        assert responses.calls[0].request.url == "http://bmc2:8080/redfish/v1/Chassis/"
