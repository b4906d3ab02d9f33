"""
Discovered devices and the directory that holds them.

Device values are frozen; refreshing an attribute produces a new value through
Device.updated() which is then upserted. Snapshots handed to callers therefore never
change underneath them.
"""

import logging
import time
from dataclasses import dataclass, replace, asdict
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Device:
    network_address: str
    unique_id: str
    household_id: str
    model_name: Optional[str] = None
    firmware_version: Optional[str] = None
    display_name: Optional[str] = None
    icon_ref: Optional[str] = None
    zone_config: Optional[int] = None
    coordinator_id: Optional[str] = None
    current_volume: Optional[int] = None
    last_seen: Optional[float] = None

    IDENTITY_FIELDS = ('network_address', 'unique_id', 'household_id', 'model_name', 'firmware_version')

    def updated(self, **changes):
        """Returns a copy with the given mutable attributes changed."""
        frozen = set(changes) & set(self.IDENTITY_FIELDS)
        if frozen:
            raise AttributeError(f"Cannot change identity fields {sorted(frozen)} of {self.unique_id}")
        return replace(self, **changes)

    @property
    def is_coordinator(self):
        return self.coordinator_id is None or self.coordinator_id == self.unique_id

    def to_dict(self):
        data = asdict(self)
        data['is_coordinator'] = self.is_coordinator
        return data


class DeviceDirectory:
    """In-memory registry of devices keyed by unique id.

    Not thread-safe: a directory belongs to one DiscoveryEngine and is only touched from
    its worker task.
    """

    def __init__(self):
        self._devices = {}

    def upsert(self, device):
        """Inserts a device or replaces the entry with the same unique id."""
        device = replace(device, last_seen=time.monotonic())
        known = device.unique_id in self._devices
        self._devices[device.unique_id] = device
        if known:
            logger.debug(f"Updated {device.unique_id} ({device.display_name})")
        else:
            logger.info(f"Added {device.unique_id} ({device.display_name}) at {device.network_address}")
        return device

    def list(self):
        return list(self._devices.values())

    def find_by_id(self, unique_id):
        return self._devices.get(unique_id)

    def find_by_name(self, name):
        for device in self._devices.values():
            if device.display_name == name:
                return device
        return None

    def __len__(self):
        return len(self._devices)

    def __contains__(self, unique_id):
        return unique_id in self._devices
