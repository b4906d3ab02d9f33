"""Tests for posting SOAP requests to devices."""

import asyncio

import aiohttp
import pytest
from aioresponses import aioresponses
from yarl import URL

from sonosnet import soap, transport
from sonosnet.exceptions import FaultDomain, ResponseParseError, SoapFault, TransportError, UnknownFault

RENDERER_URL = 'http://192.168.1.50:1400/MediaRenderer/RenderingControl/Control'
CONTENT_URL = 'http://192.168.1.50:1400/MediaServer/ContentDirectory/Control'


def test_control_url(device):
    request = soap.build('zone', 'GetZoneGroupState')
    assert transport.control_url(device, request) == 'http://192.168.1.50:1400/ZoneGroupTopology/Control'


@pytest.mark.asyncio
async def test_post_returns_body_on_success(session, device, soap_response):
    body = soap_response('GetVolume', soap.SERVICES['renderer'].namespace, CurrentVolume=12)
    request = soap.build('renderer', 'GetVolume', [['InstanceID', 0], ['Channel', 'Master']])

    with aioresponses() as mock_resp:
        mock_resp.post(RENDERER_URL, body=body)
        result = await transport.post(session, request, device)

        assert result == body
        call = mock_resp.requests[('POST', URL(RENDERER_URL))][0]
        assert call.kwargs['headers'] == {
            'Content-Type': 'text/xml; charset="utf-8"',
            'SOAPACTION': '"urn:schemas-upnp-org:service:RenderingControl:1#GetVolume"',
        }
        assert call.kwargs['data'] == soap.render(request)
        assert call.kwargs['timeout'].total == 5.0


@pytest.mark.asyncio
async def test_post_raises_generic_fault(session, device, fault_response):
    request = soap.build('renderer', 'SetVolume', [['InstanceID', 0], ['Channel', 'Master'], ['DesiredVolume', 5]])

    with aioresponses() as mock_resp:
        mock_resp.post(RENDERER_URL, status=500, body=fault_response(701))
        with pytest.raises(SoapFault) as exc_info:
            await transport.post(session, request, device)

    assert exc_info.value.code == 701
    assert exc_info.value.message == "Transition not available"
    assert exc_info.value.domain is FaultDomain.GENERIC


@pytest.mark.asyncio
async def test_post_uses_content_directory_table(session, device, fault_response):
    request = soap.build('content', 'Browse', [['ObjectID', 'A:ALBUM']])

    with aioresponses() as mock_resp:
        mock_resp.post(CONTENT_URL, status=500, body=fault_response(701))
        with pytest.raises(SoapFault) as exc_info:
            await transport.post(session, request, device)

    assert exc_info.value.message == "No such object"
    assert exc_info.value.domain is FaultDomain.CONTENT_DIRECTORY


@pytest.mark.asyncio
async def test_post_unknown_fault(session, device, fault_response):
    request = soap.build('renderer', 'GetVolume')

    with aioresponses() as mock_resp:
        mock_resp.post(RENDERER_URL, status=500, body=fault_response(999))
        with pytest.raises(UnknownFault):
            await transport.post(session, request, device)


@pytest.mark.asyncio
async def test_post_unexpected_status(session, device):
    with aioresponses() as mock_resp:
        mock_resp.post(RENDERER_URL, status=404, body='Not Found')
        with pytest.raises(TransportError) as exc_info:
            await transport.post(session, soap.build('renderer', 'GetVolume'), device)

    assert exc_info.value.status == 404


@pytest.mark.asyncio
async def test_post_connection_refused(session, device):
    with aioresponses() as mock_resp:
        mock_resp.post(RENDERER_URL, exception=aiohttp.ClientConnectionError("Connection refused"))
        with pytest.raises(TransportError, match="Connection refused"):
            await transport.post(session, soap.build('renderer', 'GetVolume'), device)


@pytest.mark.asyncio
async def test_post_timeout(session, device):
    with aioresponses() as mock_resp:
        mock_resp.post(RENDERER_URL, exception=asyncio.TimeoutError())
        with pytest.raises(TransportError, match="timed out"):
            await transport.post(session, soap.build('renderer', 'GetVolume'), device, timeout=0.5)


@pytest.mark.asyncio
async def test_post_undecodable_body(session, device):
    with aioresponses() as mock_resp:
        mock_resp.post(RENDERER_URL, body=b'<s:Envelope>\xff\xfe</s:Envelope>',
                       content_type='text/xml; charset=utf-8')
        with pytest.raises(ResponseParseError, match="undecodable"):
            await transport.post(session, soap.build('renderer', 'GetVolume'), device)
