"""
Zone group topology.

GetZoneGroupState returns the whole household's grouping as an XML document that is
itself escaped inside the SOAP response. Parsing the SOAP envelope unescapes the inner
document once; the resulting text is then parsed a second time.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

from . import soap, transport
from .utils import ip_from_location, parse_xml, parse_soap_response

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ZoneGroupMember:
    name: str
    unique_id: str
    location: str
    zone_config: int = 0
    icon: str = ''
    invisible: bool = False

    @property
    def network_address(self):
        return ip_from_location(self.location)


@dataclass(frozen=True)
class ZoneGroup:
    coordinator_id: str
    group_id: Optional[str] = None
    members: Tuple[ZoneGroupMember, ...] = field(default_factory=tuple)

    def member_ids(self):
        return [m.unique_id for m in self.members]

    def visible_members(self):
        return [m for m in self.members if not m.invisible]

    def __contains__(self, unique_id):
        return unique_id in self.member_ids()

    def __len__(self):
        return len(self.members)


def _int_attr(element, name, default=0):
    value = element.get(name)
    try:
        return int(value) if value is not None else default
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={value!r} on {element.get('UUID')}")
        return default


def parse_zone_group_state(state):
    """Decodes the inner ZoneGroupState document into a list of ZoneGroups."""
    root = parse_xml(state)
    groups = []
    # Older firmware has <ZoneGroups> at the root, newer wraps it in <ZoneGroupState>
    for group in root.iter('ZoneGroup'):
        members = tuple(
            ZoneGroupMember(
                name=member.get('ZoneName', ''),
                unique_id=member.get('UUID', ''),
                location=member.get('Location', ''),
                zone_config=_int_attr(member, 'Configuration'),
                icon=member.get('Icon', ''),
                invisible=member.get('Invisible', '0') != '0',
            )
            for member in group.findall('ZoneGroupMember')
        )
        groups.append(ZoneGroup(
            coordinator_id=group.get('Coordinator', ''),
            group_id=group.get('ID'),
            members=members,
        ))
    return groups


def find_group(groups, unique_id):
    for group in groups:
        if unique_id in group:
            return group
    return None


async def get_zone_group_state(session, device):
    """Gets the raw zone group state document from a Sonos device."""
    body = await transport.post(session, soap.build('zone', 'GetZoneGroupState'), device)
    return parse_soap_response(body, 'GetZoneGroupState', 'ZoneGroupState')['ZoneGroupState'] or ''


async def resolve_groups(session, device):
    """Returns every zone group in the household, as seen by the given device."""
    state = await get_zone_group_state(session, device)
    groups = parse_zone_group_state(state)
    logger.debug(f"{device.network_address} reports {len(groups)} zone groups")
    return groups


async def group_of(session, device):
    """Returns the group containing the device, or None if it is not listed."""
    return find_group(await resolve_groups(session, device), device.unique_id)


async def is_grouped(session, device):
    group = await group_of(session, device)
    return group is not None and len(group) > 1


async def get_zone_group_attributes(session, device):
    """Returns (group name, coordinator id, member ids) for the device's group.

    A device outside of any group reports an empty group name; its coordinator id is
    None and its member list is empty.
    """
    body = await transport.post(session, soap.build('zone', 'GetZoneGroupAttributes'), device)
    values = parse_soap_response(
        body, 'GetZoneGroupAttributes',
        'CurrentZoneGroupName', 'CurrentZoneGroupID', 'CurrentZonePlayerUUIDsInGroup')
    name = values['CurrentZoneGroupName']
    if not name:
        return None, None, []
    coordinator_id = (values['CurrentZoneGroupID'] or '').split(':')[0] or None
    members = [m for m in (values['CurrentZonePlayerUUIDsInGroup'] or '').split(',') if m]
    return name, coordinator_id, members
