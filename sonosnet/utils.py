import xml.etree.ElementTree as ET
import logging
from urllib.parse import urlparse

from .exceptions import ResponseParseError

logger = logging.getLogger(__name__)


def parse_xml(text):
    """Parses an XML document, raising ResponseParseError when it is malformed."""
    try:
        return ET.fromstring(text)
    except ET.ParseError as e:
        raise ResponseParseError(f"Malformed XML: {e}") from e


def get_xml_text(element, path, default=None):
    """Helper function to safely get text from an XML element."""
    found = element.find(path)
    if found is None or found.text is None:
        return default
    return found.text


def parse_soap_response(response_text, action, *names):
    """Returns the text of the named children of an <action>Response element.

    Sonos leaves the response arguments unqualified while the response element carries
    the service namespace, so both lookups use the {*} wildcard.
    """
    root = parse_xml(response_text)
    response = root.find(f'.//{{*}}{action}Response')
    if response is None:
        raise ResponseParseError(f"No {action}Response element in response")
    return {name: get_xml_text(response, f'{{*}}{name}') for name in names}


def ip_from_location(location):
    """Extracts the host of a device description URL."""
    if not location:
        return None
    return urlparse(location).hostname
