"""
Cisco IMC XML API ("nuova") payloads.

The API is a login/query/logout sequence of POSTs to /nuova. Every document
is a single element whose attributes carry the data.
"""

from dataclasses import dataclass
from typing import List
import xml.etree.ElementTree as ET

from bmc_exporter.services.errors import DecodeError, ScrapeError

DRIVE_CLASS_ID = "storageLocalDiskSlotEp"


class IMCLoginError(ScrapeError):
    def __init__(self, error_code: str, error_descr: str):
        self.error_code = error_code
        self.error_descr = error_descr
        super().__init__(
            f"failed to login to IMC xml api - errorCode: {error_code}, errorDescr: {error_descr}"
        )


@dataclass
class DiskSlot:
    id: str
    dn: str
    name: str
    operability: str
    presence: str


def _element(tag: str, **attrs: str) -> bytes:
    return ET.tostring(ET.Element(tag, attrs))


def login_payload(user: str, password: str) -> bytes:
    return _element("aaaLogin", inName=user, inPassword=password)


def logout_payload(cookie: str) -> bytes:
    return _element("aaaLogout", cookie=cookie, inCookie=cookie)


def resolve_class_payload(cookie: str, class_id: str) -> bytes:
    return _element("configResolveClass", cookie=cookie, inHierarchical="false", classId=class_id)


def _parse(body: bytes, expected: str) -> ET.Element:
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        raise DecodeError(f"error decoding {expected} response: {e}") from e
    if root.tag != expected:
        raise DecodeError(f"unexpected {root.tag} element, expected {expected}")
    return root


def parse_login(body: bytes) -> str:
    """Return the session cookie from an aaaLogin response."""
    root = _parse(body, "aaaLogin")
    if root.get("errorCode"):
        raise IMCLoginError(root.get("errorCode", ""), root.get("errorDescr", ""))
    cookie = root.get("outCookie", "")
    if not cookie:
        raise DecodeError("aaaLogin response carried no outCookie")
    return cookie


def parse_disk_slots(body: bytes) -> List[DiskSlot]:
    root = _parse(body, "configResolveClass")
    slots = []
    for element in root.iter(DRIVE_CLASS_ID):
        dn = element.get("dn", "")
        slots.append(DiskSlot(
            id=element.get("id", ""),
            dn=dn,
            name=element.get("name") or dn,
            operability=element.get("operability", ""),
            presence=element.get("presence", ""),
        ))
    return slots
