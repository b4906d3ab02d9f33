"""
Sonos Control Library

This library discovers Sonos speakers on the local network, keeps a live directory of them
and their group topology, and controls them over UPnP/SOAP. All network operations are
async and take an aiohttp.ClientSession.
"""

import logging

from .config import Settings, get_settings
from .device import Device, DeviceDirectory
from .discovery import DiscoveryEngine, parse_reply, resolve_interface_address
from .exceptions import (
    DeviceNotFoundError,
    DiscoveryError,
    FaultDomain,
    ResponseParseError,
    SoapFault,
    SonosError,
    TransportError,
    UnknownFault,
)
from .topology import (
    ZoneGroup,
    ZoneGroupMember,
    get_zone_group_state,
    resolve_groups,
    group_of,
    is_grouped,
)
from .control import (
    get_zone_attributes,
    set_name,
    get_volume,
    set_volume,
    get_mute,
    set_mute,
    get_transport_info,
    get_position_info,
    get_track_info,
    control_playback,
    join_group,
    join_group_by_name,
    leave_group,
)

logger = logging.getLogger(__name__)

__all__ = [
    'Settings',
    'get_settings',
    'Device',
    'DeviceDirectory',
    'DiscoveryEngine',
    'parse_reply',
    'resolve_interface_address',
    'DeviceNotFoundError',
    'DiscoveryError',
    'FaultDomain',
    'ResponseParseError',
    'SoapFault',
    'SonosError',
    'TransportError',
    'UnknownFault',
    'ZoneGroup',
    'ZoneGroupMember',
    'get_zone_group_state',
    'resolve_groups',
    'group_of',
    'is_grouped',
    'get_zone_attributes',
    'set_name',
    'get_volume',
    'set_volume',
    'get_mute',
    'set_mute',
    'get_transport_info',
    'get_position_info',
    'get_track_info',
    'control_playback',
    'join_group',
    'join_group_by_name',
    'leave_group',
]
