"""Exceptions raised by the sonosnet library."""

from enum import Enum


class FaultDomain(Enum):
    """Which error table a SOAP fault code was looked up in."""

    GENERIC = "generic"
    CONTENT_DIRECTORY = "content-directory"


class SonosError(Exception):
    """Base class for all sonosnet errors."""


class DiscoveryError(SonosError):
    """The discovery socket could not be opened."""


class TransportError(SonosError):
    """A device could not be reached, timed out or answered with an unexpected status."""

    def __init__(self, message, status=None):
        super().__init__(message)
        self.status = status


class SoapFault(SonosError):
    """A device answered a control request with a UPnP fault."""

    def __init__(self, code, message, domain=FaultDomain.GENERIC):
        super().__init__(f"{message} ({code})" if code is not None else message)
        self.code = code
        self.message = message
        self.domain = domain

    def __repr__(self):
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r}, domain={self.domain.value!r})"

    def __eq__(self, other):
        if not isinstance(other, SoapFault):
            return NotImplemented
        return (self.code, self.message, self.domain) == (other.code, other.message, other.domain)

    def __hash__(self):
        return hash((self.code, self.message, self.domain))


class UnknownFault(SoapFault):
    """A fault whose code is missing from the error tables."""


class ResponseParseError(SonosError):
    """A successful response did not contain the expected elements."""


class DeviceNotFoundError(SonosError):
    """No device with the given name or id is known."""
