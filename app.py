from flask import Flask, jsonify
from dataclasses import asdict
from statistics import mean
import aiohttp
import asyncio
import logging

from sonosnet import (
    DiscoveryEngine,
    DeviceNotFoundError,
    SonosError,
    get_settings,
    get_volume,
    set_volume,
    set_mute,
    set_name,
    get_transport_info,
    get_position_info,
    get_track_info,
    control_playback,
    group_of,
    join_group_by_name,
    leave_group,
)

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

app = Flask(__name__)
engine = DiscoveryEngine(settings)


async def on_engine(coro):
    """Runs a coroutine on the discovery engine's loop and waits for it from this request."""
    return await asyncio.wrap_future(engine.run_threadsafe(coro))


async def find_device(name):
    device = await on_engine(engine.find_by_name(name))
    if device is None:
        raise DeviceNotFoundError(f"No device named {name!r}")
    return device


async def join_by_name(device, coordinator_name):
    """Joins a group on the engine's loop, where the coordinator lookup runs."""
    async with aiohttp.ClientSession() as session:
        return await join_group_by_name(session, device, coordinator_name, engine)


def failure(error):
    logger.error(str(error))
    return jsonify({"success": False, "error": str(error)})


@app.route("/api/devices")
async def list_devices():
    try:
        devices = await on_engine(engine.list_devices())
        devices.sort(key=lambda d: (d.display_name or '').lower())
        return jsonify({"success": True, "devices": [d.to_dict() for d in devices]})
    except SonosError as e:
        return failure(e)


@app.route("/api/discover")
async def discover():
    """Sends a fresh round of discovery probes."""
    engine.loop.call_soon_threadsafe(engine.probe)
    return jsonify({"success": True})


@app.route("/api/groups")
async def list_groups():
    try:
        groups = await on_engine(engine.refresh_topology())
        return jsonify({"success": True, "groups": [asdict(g) for g in groups]})
    except SonosError as e:
        return failure(e)


@app.route("/api/control/<name>/<action>")
async def control_device(name, action):
    """Handle device control requests."""
    try:
        device = await find_device(name)
        async with aiohttp.ClientSession() as session:
            if action == "GetState":
                info = await get_transport_info(session, device)
                return jsonify({"success": True, "state": info['state']})
            elif action == "GetPositionInfo":
                info = await get_position_info(session, device)
                return jsonify({"success": True, "position": info})
            elif action == "GetTrackInfo":
                track = await get_track_info(session, device)
                return jsonify({"success": True, "track": track})
            elif action in ["Play", "Pause", "Stop", "Next", "Previous"]:
                await control_playback(session, device, action)
                if action in ["Next", "Previous"]:
                    await asyncio.sleep(0.5)  # Give the device a moment to update
                info = await get_transport_info(session, device)
                track = None
                if info['state'] == "PLAYING":
                    track = await get_track_info(session, device)
                return jsonify({"success": True, "state": info['state'], "track": track})
    except (SonosError, ValueError) as e:
        return failure(e)

    return jsonify({"success": False, "error": f"Unknown action {action}"})


@app.route("/api/rename/<name>/<new_name>")
async def rename_device(name, new_name):
    try:
        device = await find_device(name)
        async with aiohttp.ClientSession() as session:
            await set_name(session, device, new_name)
        return jsonify({"success": True, "name": new_name})
    except SonosError as e:
        return failure(e)


@app.route("/api/volume/<name>/<path:action>")
async def control_volume(name, action):
    """Handle volume control requests."""
    try:
        device = await find_device(name)
        if action == "get":
            device = await on_engine(engine.refresh_volume(device.unique_id))
            return jsonify({"success": True, "volume": device.current_volume})

        async with aiohttp.ClientSession() as session:
            if action in ["mute", "unmute"]:
                await set_mute(session, device, action == "mute")
                return jsonify({"success": True})
            elif action.startswith("set/"):
                try:
                    volume = int(action.split("/")[-1])
                except ValueError:
                    return jsonify({"success": False, "error": "Invalid volume value"})
                await set_volume(session, device, volume)
                new_volume = await get_volume(session, device)
                return jsonify({"success": True, "volume": new_volume})
            elif action in ["up", "down"]:
                current_volume = await get_volume(session, device)
                new_volume = current_volume + (2 if action == "up" else -2)
                new_volume = await set_volume(session, device, new_volume)
                return jsonify({"success": True, "volume": new_volume})
    except SonosError as e:
        return failure(e)

    return jsonify({"success": False, "error": f"Unknown volume action {action}"})


@app.route("/api/group/volume/<name>/<action>")
async def control_group_volume(name, action):
    """Handle group volume control requests."""
    if action not in ["mean", "up", "down"]:
        return jsonify({"success": False, "error": f"Unknown group volume action {action}"})
    try:
        device = await find_device(name)
        async with aiohttp.ClientSession() as session:
            group = await group_of(session, device)
            if group is None:
                return jsonify({"success": False, "error": "No group members found"})

            members = []
            for member in group.visible_members():
                member_device = await on_engine(engine.find_by_id(member.unique_id))
                if member_device is not None:
                    members.append(member_device)
            if not members:
                return jsonify({"success": False, "error": "No group members found"})

            volumes = {m.unique_id: await get_volume(session, m) for m in members}
            results = []
            for member in members:
                if action == "mean":
                    new_volume = round(mean(volumes.values()))
                else:
                    new_volume = volumes[member.unique_id] + (2 if action == "up" else -2)
                new_volume = await set_volume(session, member, new_volume)
                results.append({"name": member.display_name, "volume": new_volume})
            return jsonify({"success": True, "results": results})
    except SonosError as e:
        return failure(e)


@app.route("/api/group/join/<name>/<coordinator_name>")
async def join(name, coordinator_name):
    try:
        device = await find_device(name)
        coordinator = await on_engine(join_by_name(device, coordinator_name))
        return jsonify({"success": True, "coordinator": coordinator.unique_id})
    except SonosError as e:
        return failure(e)


@app.route("/api/group/leave/<name>")
async def leave(name):
    try:
        device = await find_device(name)
        async with aiohttp.ClientSession() as session:
            await leave_group(session, device)
        return jsonify({"success": True})
    except SonosError as e:
        return failure(e)


async def main():
    import hypercorn
    import hypercorn.asyncio

    config = hypercorn.Config()
    config.bind = [settings.http_bind]
    async with engine:
        await hypercorn.asyncio.serve(app, config, mode="wsgi")


if __name__ == "__main__":
    asyncio.run(main())
