"""Tests for Device values and the DeviceDirectory."""

import dataclasses

import pytest

from sonosnet.device import Device, DeviceDirectory


def make_device(unique_id='RINCON_ABC123', name='Kitchen', ip='192.168.1.50'):
    return Device(network_address=ip, unique_id=unique_id, household_id='myhouse123', display_name=name)


def test_updated_changes_mutable_fields(device):
    refreshed = device.updated(current_volume=30, coordinator_id='RINCON_DEF456')
    assert refreshed.current_volume == 30
    assert refreshed.coordinator_id == 'RINCON_DEF456'
    assert refreshed.unique_id == device.unique_id
    assert device.current_volume is None


@pytest.mark.parametrize('field', ['unique_id', 'network_address', 'household_id', 'model_name', 'firmware_version'])
def test_updated_refuses_identity_fields(device, field):
    with pytest.raises(AttributeError):
        device.updated(**{field: 'changed'})


def test_device_is_frozen(device):
    with pytest.raises(dataclasses.FrozenInstanceError):
        device.display_name = 'Bathroom'


def test_is_coordinator(device):
    assert device.is_coordinator
    assert device.updated(coordinator_id='RINCON_ABC123').is_coordinator
    assert not device.updated(coordinator_id='RINCON_DEF456').is_coordinator


def test_upsert_appends_new_devices():
    directory = DeviceDirectory()
    directory.upsert(make_device())
    directory.upsert(make_device('RINCON_DEF456', 'Living Room', '192.168.1.51'))

    assert len(directory) == 2
    assert {d.unique_id for d in directory.list()} == {'RINCON_ABC123', 'RINCON_DEF456'}


def test_upsert_replaces_same_unique_id():
    directory = DeviceDirectory()
    directory.upsert(make_device())
    directory.upsert(make_device().updated(display_name='Kitchen 2', current_volume=10))

    assert len(directory) == 1
    stored = directory.find_by_id('RINCON_ABC123')
    assert stored.display_name == 'Kitchen 2'
    assert stored.current_volume == 10


def test_upsert_stamps_last_seen():
    directory = DeviceDirectory()
    first = directory.upsert(make_device())
    second = directory.upsert(make_device())
    assert first.last_seen is not None
    assert second.last_seen >= first.last_seen


def test_list_is_a_snapshot():
    directory = DeviceDirectory()
    directory.upsert(make_device())
    snapshot = directory.list()
    directory.upsert(make_device('RINCON_DEF456', 'Living Room'))

    assert len(snapshot) == 1
    snapshot.clear()
    assert len(directory) == 2


def test_find_by_name_and_id():
    directory = DeviceDirectory()
    directory.upsert(make_device())
    directory.upsert(make_device('RINCON_DEF456', 'Living Room'))

    assert directory.find_by_name('Living Room').unique_id == 'RINCON_DEF456'
    assert directory.find_by_name('Garage') is None
    assert directory.find_by_id('RINCON_ABC123').display_name == 'Kitchen'
    assert directory.find_by_id('RINCON_NOPE') is None
    assert 'RINCON_ABC123' in directory
