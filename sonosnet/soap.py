"""
SOAP request building and fault decoding for Sonos control services.

A request is built from a service kind (a key into SERVICES), an action name and an
ordered list of (name, value) parameters. Devices reject some actions when arguments
arrive out of order, so the rendered body keeps the parameters exactly as given.
"""

import logging
import xml.etree.ElementTree as ET
from collections import namedtuple
from xml.sax.saxutils import escape

from .exceptions import FaultDomain, SoapFault, UnknownFault

logger = logging.getLogger(__name__)

Service = namedtuple('Service', ['namespace', 'control', 'event'])

SoapRequest = namedtuple('SoapRequest', ['path', 'action', 'namespace', 'params'])

CONTENT_DIRECTORY_NAMESPACE = 'urn:schemas-upnp-org:service:ContentDirectory:1'

SERVICES = {
    'device': Service(
        'urn:schemas-upnp-org:service:DeviceProperties:1',
        '/DeviceProperties/Control',
        '/DeviceProperties/Event'),
    'zone': Service(
        'urn:schemas-upnp-org:service:ZoneGroupTopology:1',
        '/ZoneGroupTopology/Control',
        '/ZoneGroupTopology/Event'),
    'av': Service(
        'urn:schemas-upnp-org:service:AVTransport:1',
        '/MediaRenderer/AVTransport/Control',
        '/MediaRenderer/AVTransport/Event'),
    'renderer': Service(
        'urn:schemas-upnp-org:service:RenderingControl:1',
        '/MediaRenderer/RenderingControl/Control',
        '/MediaRenderer/RenderingControl/Event'),
    'group_renderer': Service(
        'urn:schemas-upnp-org:service:GroupRenderingControl:1',
        '/MediaRenderer/GroupRenderingControl/Control',
        '/MediaRenderer/GroupRenderingControl/Event'),
    'connection': Service(
        'urn:schemas-upnp-org:service:ConnectionManager:1',
        '/MediaRenderer/ConnectionManager/Control',
        '/MediaRenderer/ConnectionManager/Event'),
    'queue': Service(
        'urn:schemas-sonos-com:service:Queue:1',
        '/MediaRenderer/Queue/Control',
        '/MediaRenderer/Queue/Event'),
    'content': Service(
        CONTENT_DIRECTORY_NAMESPACE,
        '/MediaServer/ContentDirectory/Control',
        '/MediaServer/ContentDirectory/Event'),
    'alarm': Service(
        'urn:schemas-upnp-org:service:AlarmClock:1',
        '/AlarmClock/Control',
        '/AlarmClock/Event'),
    'system': Service(
        'urn:schemas-upnp-org:service:SystemProperties:1',
        '/SystemProperties/Control',
        '/SystemProperties/Event'),
    'music_services': Service(
        'urn:schemas-upnp-org:service:MusicServices:1',
        '/MusicServices/Control',
        '/MusicServices/Event'),
    'audio_in': Service(
        'urn:schemas-upnp-org:service:AudioIn:1',
        '/AudioIn/Control',
        '/AudioIn/Event'),
}

# http://upnp.org/specs/av/UPnP-av-AVTransport-v1-Service.pdf
SOAP_ERRORS = {
    400: "Bad Request",
    401: "Invalid Action",
    402: "Invalid Args",
    404: "Invalid Var",
    412: "Precondition Failed",
    501: "Action Failed",
    600: "Argument Value Invalid",
    601: "Argument Value Out of Range",
    602: "Optional Action Not Implemented",
    603: "Out Of Memory",
    604: "Human Intervention Required",
    605: "String Argument Too Long",
    606: "Action Not Authorized",
    607: "Signature Failure",
    608: "Signature Missing",
    609: "Not Encrypted",
    610: "Invalid Sequence",
    611: "Invalid Control URL",
    612: "No Such Session",
    701: "Transition not available",
    702: "No contents",
    703: "Read error",
    704: "Format not supported for playback",
    705: "Transport is locked",
    706: "Write error",
    707: "Media is protected or not writeable",
    708: "Format not supported for recording",
    709: "Media is full",
    710: "Seek mode not supported",
    711: "Illegal seek target",
    712: "Play mode not supported",
    713: "Record quality not supported",
    714: "Illegal MIME-Type",
    715: "Content BUSY",
    716: "Resource Not found",
    717: "Play speed not supported",
    718: "Invalid InstanceID",
    719: "Destination resource access denied",
    720: "Cannot process the request",
    737: "No DNS Server",
    738: "Bad Domain Name",
    739: "Server Error",
}

# Table 2.7.16 in http://upnp.org/specs/av/UPnP-av-ContentDirectory-v1-Service.pdf
CONTENT_DIRECTORY_ERRORS = {
    701: "No such object",
    702: "Invalid CurrentTagValue",
    703: "Invalid NewTagValue",
    704: "Required tag",
    705: "Read only tag",
    706: "Parameter Mismatch",
    708: "Unsupported or invalid search criteria",
    709: "Unsupported or invalid sort criteria",
    710: "No such container",
    711: "Restricted object",
    712: "Bad metadata",
    713: "Restricted parent object",
    714: "No such source resource",
    715: "Resource access denied",
    716: "Transfer busy",
    717: "No such file transfer",
    718: "No such destination resource",
}

UNKNOWN_ERROR = "Unknown Error"

ENVELOPE = (
    '<?xml version="1.0"?>'
    '<s:Envelope xmlns:s="http://schemas.xmlsoap.org/soap/envelope/"'
    ' s:encodingStyle="http://schemas.xmlsoap.org/soap/encoding/">'
    '<s:Body>{body}</s:Body>'
    '</s:Envelope>'
)


def build(service, action, params=(), event=False):
    """Builds a SoapRequest for an action on one of the SERVICES."""
    serv = SERVICES[service]
    path = serv.event if event else serv.control
    return SoapRequest(path, action, serv.namespace, tuple(tuple(p) for p in params))


def format_value(value):
    """Renders a parameter value as element text."""
    if value is None:
        return ''
    if isinstance(value, bool):
        return '1' if value else '0'
    if isinstance(value, int):
        return str(value)
    return escape(str(value))


def render(request):
    """Serializes a SoapRequest into the XML body sent to the device."""
    args = ''.join(
        f'<{name}>{format_value(value)}</{name}>' for name, value in request.params
    )
    body = f'<u:{request.action} xmlns:u="{request.namespace}">{args}</u:{request.action}>'
    return ENVELOPE.format(body=body).encode('utf-8')


def headers(request):
    """Returns the HTTP headers for posting a SoapRequest."""
    return {
        'Content-Type': 'text/xml; charset="utf-8"',
        'SOAPACTION': f'"{request.namespace}#{request.action}"'
    }


def is_content_directory(request):
    """Tells whether faults from this request use the content directory error table."""
    return request.namespace == CONTENT_DIRECTORY_NAMESPACE


def parse_fault(body, content_directory=False):
    """Decodes a UPnPError response body into a SoapFault.

    Content directory faults reuse the 7xx codes with their own meanings, so their table
    is consulted first. Codes found in neither table produce an UnknownFault.
    """
    domain = FaultDomain.CONTENT_DIRECTORY if content_directory else FaultDomain.GENERIC
    code = None
    try:
        root = ET.fromstring(body)
        element = root.find('.//{*}UPnPError/{*}errorCode')
        if element is not None and element.text:
            code = int(element.text.strip())
    except (ET.ParseError, ValueError) as e:
        logger.warning(f"Could not read fault code from response: {e}")

    message = None
    if code is not None:
        if content_directory:
            message = CONTENT_DIRECTORY_ERRORS.get(code)
        if message is None:
            message = SOAP_ERRORS.get(code)
    if message is None:
        return UnknownFault(code, UNKNOWN_ERROR, domain)
    return SoapFault(code, message, domain)
