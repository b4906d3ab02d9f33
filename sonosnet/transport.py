import asyncio
import logging

import aiohttp

from . import soap
from .config import get_settings
from .exceptions import ResponseParseError, TransportError

logger = logging.getLogger(__name__)

CONTROL_PORT = 1400


def control_url(device, request):
    return f'http://{device.network_address}:{CONTROL_PORT}{request.path}'


async def post(session, request, device, timeout=None):
    """Sends a SoapRequest to a device and returns the response body.

    Raises SoapFault when the device answers with a UPnP error and TransportError when
    it cannot be reached, times out or answers with any other status.
    """
    if timeout is None:
        timeout = get_settings().request_timeout
    url = control_url(device, request)
    try:
        async with session.post(
            url,
            data=soap.render(request),
            headers=soap.headers(request),
            timeout=aiohttp.ClientTimeout(total=timeout)
        ) as response:
            try:
                text = await response.text()
            except UnicodeDecodeError as e:
                raise ResponseParseError(
                    f"{request.action} on {device.network_address} sent an undecodable body: {e}") from e
            if response.status == 200:
                return text
            if response.status == 500:
                fault = soap.parse_fault(text, soap.is_content_directory(request))
                logger.info(f"{request.action} on {device.network_address} failed: {fault}")
                raise fault
            raise TransportError(
                f"{request.action} on {device.network_address} returned HTTP {response.status}",
                status=response.status)
    except asyncio.TimeoutError as e:
        raise TransportError(f"{request.action} on {device.network_address} timed out after {timeout}s") from e
    except aiohttp.ClientError as e:
        raise TransportError(f"{request.action} on {device.network_address} failed: {e}") from e
