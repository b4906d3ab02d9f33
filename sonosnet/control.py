import logging
import xml.etree.ElementTree as ET

from . import soap, transport
from .exceptions import DeviceNotFoundError, ResponseParseError
from .utils import get_xml_text, parse_soap_response

logger = logging.getLogger(__name__)

PLAYBACK_ACTIONS = {
    'play': 'Play',
    'pause': 'Pause',
    'stop': 'Stop',
    'previous': 'Previous',
    'next': 'Next',
}


async def call(session, device, service, action, params=()):
    """Builds and posts one control request, returning the raw response body."""
    return await transport.post(session, soap.build(service, action, params), device)


def _to_int(value, what):
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ResponseParseError(f"Invalid {what}: {value!r}") from e


async def get_zone_attributes(session, device):
    """Gets the zone name, icon and configuration of a Sonos device."""
    body = await call(session, device, 'device', 'GetZoneAttributes')
    values = parse_soap_response(
        body, 'GetZoneAttributes', 'CurrentZoneName', 'CurrentIcon', 'CurrentConfiguration')
    return {
        'name': values['CurrentZoneName'] or '',
        'icon': values['CurrentIcon'] or '',
        'config': _to_int(values['CurrentConfiguration'] or 0, 'zone configuration'),
    }


async def set_name(session, device, name):
    """Renames a Sonos device, keeping its icon and configuration."""
    await call(session, device, 'device', 'SetZoneAttributes', [
        ('DesiredZoneName', name),
        ('DesiredIcon', device.icon_ref or ''),
        ('DesiredConfiguration', device.zone_config if device.zone_config is not None else ''),
    ])
    logger.info(f"Renamed {device.unique_id} from {device.display_name!r} to {name!r}")


async def get_volume(session, device):
    """Gets the current volume level from a Sonos device."""
    body = await call(session, device, 'renderer', 'GetVolume', [
        ('InstanceID', 0),
        ('Channel', 'Master'),
    ])
    volume = parse_soap_response(body, 'GetVolume', 'CurrentVolume')['CurrentVolume']
    return _to_int(volume, 'volume')


async def set_volume(session, device, volume):
    """Sets the volume level for a Sonos device and returns the level sent."""
    volume = max(0, min(100, int(volume)))
    await call(session, device, 'renderer', 'SetVolume', [
        ('InstanceID', 0),
        ('Channel', 'Master'),
        ('DesiredVolume', volume),
    ])
    return volume


async def get_mute(session, device):
    """Gets the current mute state from a Sonos device."""
    body = await call(session, device, 'renderer', 'GetMute', [
        ('InstanceID', 0),
        ('Channel', 'Master'),
    ])
    return parse_soap_response(body, 'GetMute', 'CurrentMute')['CurrentMute'] == '1'


async def set_mute(session, device, mute):
    """Sets the mute state for a Sonos device."""
    await call(session, device, 'renderer', 'SetMute', [
        ('InstanceID', 0),
        ('Channel', 'Master'),
        ('DesiredMute', bool(mute)),
    ])


async def control_playback(session, device, action):
    """Controls playback (play, pause, stop, previous, next) on a Sonos device."""
    try:
        soap_action = PLAYBACK_ACTIONS[action.lower()]
    except KeyError:
        raise ValueError(f"Unknown playback action {action!r}") from None

    params = [('InstanceID', 0)]
    if soap_action == 'Play':
        params.append(('Speed', 1))
    await call(session, device, 'av', soap_action, params)
    logger.info(f"{soap_action} sent to {device.display_name or device.network_address}")


async def get_transport_info(session, device):
    """Gets the current transport state from a Sonos device."""
    body = await call(session, device, 'av', 'GetTransportInfo', [('InstanceID', 0)])
    values = parse_soap_response(
        body, 'GetTransportInfo',
        'CurrentTransportState', 'CurrentTransportStatus', 'CurrentSpeed')
    return {
        'state': values['CurrentTransportState'],
        'status': values['CurrentTransportStatus'],
        'speed': values['CurrentSpeed'],
    }


def parse_track_metadata(metadata):
    """Extracts title, artist and album from a DIDL-Lite track description."""
    if not metadata or not metadata.lstrip().startswith('<'):
        return {}
    try:
        root = ET.fromstring(metadata)
    except ET.ParseError:
        logger.debug(f"Ignoring unparseable track metadata: {metadata[:80]!r}")
        return {}
    return {
        'title': get_xml_text(root, './/{*}title'),
        'artist': get_xml_text(root, './/{*}creator'),
        'album': get_xml_text(root, './/{*}album'),
    }


async def get_position_info(session, device):
    """Gets the current track and playback position from a Sonos device."""
    body = await call(session, device, 'av', 'GetPositionInfo', [('InstanceID', 0)])
    values = parse_soap_response(
        body, 'GetPositionInfo',
        'Track', 'TrackDuration', 'TrackMetaData', 'TrackURI', 'RelTime')
    info = {
        'track': _to_int(values['Track'] or 0, 'track number'),
        'duration': values['TrackDuration'],
        'uri': values['TrackURI'],
        'position': values['RelTime'],
    }
    info.update(parse_track_metadata(values['TrackMetaData']))
    return info


async def get_track_info(session, device):
    """Gets a "title - artist - album" description of the current track, or None."""
    info = await get_position_info(session, device)
    parts = [info.get(key) for key in ('title', 'artist', 'album') if info.get(key)]
    if parts:
        return " - ".join(parts)
    return None


async def join_group(session, device, coordinator):
    """Makes a device play in sync with the group led by coordinator."""
    await call(session, device, 'av', 'SetAVTransportURI', [
        ('InstanceID', 0),
        ('CurrentURI', f'x-rincon:{coordinator.unique_id}'),
        ('CurrentURIMetaData', ''),
    ])
    logger.info(f"{device.unique_id} joined group of {coordinator.unique_id}")


async def join_group_by_name(session, device, coordinator_name, engine):
    """Looks up the coordinator by zone name through the engine, then joins its group.

    Returns the coordinator device.
    """
    coordinator = await engine.find_by_name(coordinator_name)
    if coordinator is None:
        raise DeviceNotFoundError(f"No device named {coordinator_name!r}")
    await join_group(session, device, coordinator)
    return coordinator


async def leave_group(session, device):
    """Takes a device out of its group."""
    await call(session, device, 'av', 'BecomeCoordinatorOfStandaloneGroup', [('InstanceID', 0)])
    logger.info(f"{device.unique_id} left its group")
