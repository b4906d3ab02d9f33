"""Shared fixtures: sample SSDP replies, SOAP response builders and a test device."""

from xml.sax.saxutils import escape

import aiohttp
import pytest
import pytest_asyncio

from sonosnet.device import Device

SOAP_ENVELOPE = (
    '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/"'
    ' s:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">'
    '<s:Body>{body}</s:Body></s:Envelope>'
)

SONOS_REPLY = (
    'HTTP/1.1 200 OK\r\n'
    'CACHE-CONTROL: max-age = 1800\r\n'
    'EXT:\r\n'
    'LOCATION: http://192.168.1.50:1400/xml/device_description.xml\r\n'
    'SERVER: Linux UPnP/1.0 Sonos/56.0-76060 (ZP120)\r\n'
    'ST: urn:schemas-upnp-org:device:ZonePlayer:1\r\n'
    'USN: uuid:RINCON_ABC123::urn:schemas-upnp-org:device:ZonePlayer:1\r\n'
    'X-RINCON-HOUSEHOLD: Sonos_myhouse123\r\n'
    'X-RINCON-BOOTSEQ: 72\r\n'
    '\r\n'
)

ZONE_GROUP_STATE = (
    '<ZoneGroupState><ZoneGroups>'
    '<ZoneGroup Coordinator="RINCON_ABC123" ID="RINCON_ABC123:42">'
    '<ZoneGroupMember UUID="RINCON_ABC123" Location="http://192.168.1.50:1400/xml/device_description.xml"'
    ' ZoneName="Kitchen" Icon="x-rincon-roomicon:kitchen" Configuration="1"/>'
    '<ZoneGroupMember UUID="RINCON_DEF456" Location="http://192.168.1.51:1400/xml/device_description.xml"'
    ' ZoneName="Living Room" Icon="x-rincon-roomicon:living" Configuration="1"/>'
    '</ZoneGroup>'
    '<ZoneGroup Coordinator="RINCON_GHI789" ID="RINCON_GHI789:7">'
    '<ZoneGroupMember UUID="RINCON_GHI789" Location="http://192.168.1.52:1400/xml/device_description.xml"'
    ' ZoneName="Office" Icon="x-rincon-roomicon:office" Configuration="1">'
    '<Satellite UUID="RINCON_SUB001" Location="http://192.168.1.53:1400/xml/device_description.xml"'
    ' ZoneName="Office" Invisible="1"/>'
    '</ZoneGroupMember>'
    '</ZoneGroup>'
    '</ZoneGroups><VanishedDevices/></ZoneGroupState>'
)


def build_soap_response(action, namespace, **values):
    args = ''.join(f'<{name}>{escape(str(value))}</{name}>' for name, value in values.items())
    body = f'<u:{action}Response xmlns:u="{namespace}">{args}</u:{action}Response>'
    return SOAP_ENVELOPE.format(body=body)


def build_fault_response(code):
    body = (
        '<s:Fault><faultcode>s:Client</faultcode><faultstring>UPnPError</faultstring>'
        '<detail><UPnPError xmlns="urn:schemas-upnp-org:control-1-0">'
        f'<errorCode>{code}</errorCode>'
        '</UPnPError></detail></s:Fault>'
    )
    return SOAP_ENVELOPE.format(body=body)


@pytest.fixture
def soap_response():
    return build_soap_response


@pytest.fixture
def fault_response():
    return build_fault_response


@pytest.fixture
def sonos_reply():
    return SONOS_REPLY


@pytest.fixture
def zone_group_state():
    return ZONE_GROUP_STATE


@pytest.fixture
def device():
    return Device(
        network_address='192.168.1.50',
        unique_id='RINCON_ABC123',
        household_id='myhouse123',
        model_name='ZP120',
        firmware_version='56.0-76060',
        display_name='Kitchen',
        icon_ref='x-rincon-roomicon:kitchen',
        zone_config=1,
    )


@pytest_asyncio.fixture
async def session():
    async with aiohttp.ClientSession() as client_session:
        yield client_session
