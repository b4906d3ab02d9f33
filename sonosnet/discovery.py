"""
SSDP discovery of Sonos players.

DiscoveryEngine owns the multicast socket and the DeviceDirectory. Everything that touches
the directory, whether an incoming probe reply or a caller asking for the device list,
goes through one mailbox drained by a single worker task, so replies are handled one at a
time in arrival order and no locking is needed. Enriching a reply awaits its SOAP calls
inside the worker; a slow device delays the next message by at most the request timeout.
"""

import asyncio
import contextlib
import ipaddress
import logging
import re
import socket
from collections import namedtuple

import aiohttp
import netifaces

from . import control, topology
from .config import get_settings
from .device import Device, DeviceDirectory
from .exceptions import DeviceNotFoundError, DiscoveryError, SonosError

logger = logging.getLogger(__name__)

SSDP_ADDR = "239.255.255.250"
SSDP_PORT = 1900
SEARCH_TARGET = "urn:schemas-upnp-org:device:ZonePlayer:1"

PLAYER_SEARCH = (
    'M-SEARCH * HTTP/1.1\r\n'
    f'HOST: {SSDP_ADDR}:{SSDP_PORT}\r\n'
    'MAN: "ssdp:discover"\r\n'
    'MX: 1\r\n'
    f'ST: {SEARCH_TARGET}\r\n'
    '\r\n'
).encode()

HOUSEHOLD_RE = re.compile(r'^X-RINCON-HOUSEHOLD:\s*[^_\s]+_(\S+)', re.IGNORECASE)
SERVER_RE = re.compile(r'^SERVER:\s*Linux UPnP/\d+\.\d+ Sonos/(\S+) \((.*)\)', re.IGNORECASE)
USN_RE = re.compile(r'^USN:\s*uuid:(.+?)::', re.IGNORECASE)

_Reply = namedtuple('_Reply', ['data', 'addr'])
_Call = namedtuple('_Call', ['fn', 'future'])


def _first_match(lines, regex):
    for line in lines:
        match = regex.match(line.strip())
        if match:
            return match.groups()
    return None


def parse_reply(ip, packet):
    """Parses an SSDP reply into a partial Device, or returns None to discard it."""
    if isinstance(packet, bytes):
        packet = packet.decode('utf-8', errors='replace')
    lines = packet.split('\r\n')

    if not any('Sonos' in line for line in lines):
        return None

    usn = _first_match(lines, USN_RE)
    household = _first_match(lines, HOUSEHOLD_RE)
    if usn is None or household is None:
        logger.debug(f"Discarding Sonos reply from {ip} without USN or household")
        return None

    version, model = _first_match(lines, SERVER_RE) or (None, None)
    return Device(
        network_address=ip,
        unique_id=usn[0],
        household_id=household[0],
        model_name=model,
        firmware_version=version,
    )


def resolve_interface_address(selector=None):
    """Finds the local IPv4 address to run discovery on.

    The selector may be an IPv4 address or an interface name. Without one, the first
    interface with a broadcast address is used. Returns None to leave the choice to the OS.
    """
    if selector:
        with contextlib.suppress(ValueError):
            return str(ipaddress.IPv4Address(selector))

    for iface in netifaces.interfaces():
        if selector and iface != selector:
            continue
        for addr in netifaces.ifaddresses(iface).get(netifaces.AF_INET, []):
            if addr.get('addr') and addr.get('broadcast'):
                return addr['addr']

    if selector:
        logger.warning(f"No broadcast-capable IPv4 address on {selector}, using the OS default")
    return None


def open_discovery_socket(address=None, ttl=4):
    """Opens a non-blocking UDP socket joined to the SSDP multicast group."""
    sock = None
    try:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_TTL, ttl)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, 65536)
        if address:
            sock.setsockopt(socket.IPPROTO_IP, socket.IP_MULTICAST_IF, socket.inet_aton(address))
        sock.bind((address or '0.0.0.0', 0))
        membership = socket.inet_aton(SSDP_ADDR) + socket.inet_aton(address or '0.0.0.0')
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, membership)
        sock.setblocking(False)
    except OSError as e:
        if sock:
            sock.close()
        raise DiscoveryError(f"Could not open discovery socket on {address or 'default interface'}: {e}") from e
    return sock


async def enrich_device(session, device):
    """Fills in zone, group and volume attributes of a freshly parsed device."""
    attributes = await control.get_zone_attributes(session, device)
    _, coordinator_id, _ = await topology.get_zone_group_attributes(session, device)
    volume = await control.get_volume(session, device)
    return device.updated(
        display_name=attributes['name'],
        icon_ref=attributes['icon'],
        zone_config=attributes['config'],
        coordinator_id=coordinator_id,
        current_volume=volume,
    )


class _ReplyProtocol(asyncio.DatagramProtocol):

    def __init__(self, engine):
        self.engine = engine

    def datagram_received(self, data, addr):
        self.engine.deliver(data, addr)

    def error_received(self, exc):
        logger.warning(f"Discovery socket error: {exc}")


class DiscoveryEngine:
    """Discovers Sonos players and keeps the directory of known devices."""

    def __init__(self, settings=None, session=None):
        self.settings = settings or get_settings()
        self.interface_address = None
        self.loop = None
        self._directory = DeviceDirectory()
        self._session = session
        self._owns_session = False
        self._mailbox = None
        self._transport = None
        self._worker = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    @property
    def listening(self):
        return self._transport is not None

    async def start(self):
        """Opens the discovery socket, starts the worker and sends the first probes."""
        if self._transport is not None:
            return

        self.loop = asyncio.get_running_loop()
        self.interface_address = resolve_interface_address(self.settings.listen_on_interface)
        sock = open_discovery_socket(self.interface_address, self.settings.multicast_ttl)
        self._transport, _ = await self.loop.create_datagram_endpoint(
            lambda: _ReplyProtocol(self), sock=sock)

        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        self._mailbox = asyncio.Queue()
        self._worker = asyncio.create_task(self._run())

        logger.info(f"Discovery listening on {self.interface_address or 'default interface'}")
        self.probe()

    async def stop(self):
        if self._worker:
            self._worker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._worker
            self._worker = None
        if self._mailbox is not None:
            while not self._mailbox.empty():
                message = self._mailbox.get_nowait()
                if isinstance(message, _Call) and not message.future.done():
                    message.future.set_exception(DiscoveryError("Discovery engine stopped"))
            self._mailbox = None
        if self._transport:
            self._transport.close()
            self._transport = None
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None
            self._owns_session = False
        logger.info("Discovery stopped")

    def probe(self):
        """Sends the search request to the multicast group."""
        if self._transport is None:
            raise DiscoveryError("Discovery engine is not running")
        for _ in range(self.settings.probe_count):
            self._transport.sendto(PLAYER_SEARCH, (SSDP_ADDR, SSDP_PORT))
        logger.debug(f"Sent {self.settings.probe_count} discovery probes")

    def deliver(self, data, addr):
        """Queues a received datagram for the worker."""
        if self._mailbox is not None:
            self._mailbox.put_nowait(_Reply(data, addr))

    async def _call(self, fn):
        if self._mailbox is None:
            raise DiscoveryError("Discovery engine is not running")
        future = self.loop.create_future()
        self._mailbox.put_nowait(_Call(fn, future))
        return await future

    async def _run(self):
        while True:
            message = await self._mailbox.get()
            try:
                if isinstance(message, _Reply):
                    await self._handle_reply(message.data, message.addr)
                else:
                    await self._handle_call(message)
            except Exception:
                logger.exception(f"Discovery worker failed to handle {type(message).__name__}")

    async def _handle_call(self, message):
        if message.future.done():
            return
        try:
            result = await message.fn(self._directory)
        except asyncio.CancelledError:
            if not message.future.done():
                message.future.set_exception(DiscoveryError("Discovery engine stopped"))
            raise
        except Exception as e:
            if not message.future.done():
                message.future.set_exception(e)
        else:
            if not message.future.done():
                message.future.set_result(result)

    async def _handle_reply(self, data, addr):
        device = parse_reply(addr[0], data)
        if device is None:
            return
        try:
            device = await enrich_device(self._session, device)
        except SonosError as e:
            logger.warning(f"Skipping {device.unique_id} at {device.network_address}: {e}")
            return
        self._directory.upsert(device)

    async def list_devices(self):
        async def snapshot(directory):
            return directory.list()
        return await self._call(snapshot)

    async def find_by_name(self, name):
        async def lookup(directory):
            return directory.find_by_name(name)
        return await self._call(lookup)

    async def find_by_id(self, unique_id):
        async def lookup(directory):
            return directory.find_by_id(unique_id)
        return await self._call(lookup)

    async def refresh_volume(self, unique_id):
        """Re-reads one device's volume and stores it; returns the updated device."""
        async def refresh(directory):
            device = directory.find_by_id(unique_id)
            if device is None:
                raise DeviceNotFoundError(f"No device with id {unique_id!r}")
            volume = await control.get_volume(self._session, device)
            return directory.upsert(device.updated(current_volume=volume))
        return await self._call(refresh)

    async def refresh_topology(self):
        """Recomputes every device's coordinator from the household's zone group state.

        Asks each known device in turn until one answers; if none does, the last error is
        raised. Returns the zone groups that were applied.
        """
        async def refresh(directory):
            devices = directory.list()
            if not devices:
                return []
            error = None
            for device in devices:
                try:
                    groups = await topology.resolve_groups(self._session, device)
                    break
                except SonosError as e:
                    logger.warning(f"Could not get zone group state from {device.network_address}: {e}")
                    error = e
            else:
                raise error

            for device in devices:
                group = topology.find_group(groups, device.unique_id)
                coordinator_id = group.coordinator_id if group is not None else None
                if coordinator_id != device.coordinator_id:
                    directory.upsert(device.updated(coordinator_id=coordinator_id))
            return groups
        return await self._call(refresh)

    def run_threadsafe(self, coro):
        """Schedules a coroutine on the engine's loop from another thread.

        Returns a concurrent.futures.Future; wrap it with asyncio.wrap_future to await it
        from a different event loop.
        """
        if self.loop is None:
            raise DiscoveryError("Discovery engine is not running")
        return asyncio.run_coroutine_threadsafe(coro, self.loop)
