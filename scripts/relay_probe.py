#!/usr/bin/env python3
"""Live probe for a relay ingestion server and its push channel.

Runs a :class:`~pyblerelay.RelayClient` with sync enabled, optionally
reports a fixed position every few seconds, and prints the merged device
table as pushed events arrive. Configuration comes from ``RELAY_*``
environment variables; the flags below override the most common ones.

Use this to check that uploads, queue flushes and pushed events line up
end to end.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyblerelay import ChannelState, LocationSample, RelayClient, RelayConfig  # noqa: E402


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--base-url", help="Ingestion server base URL (overrides RELAY_BASE_URL)")
    parser.add_argument("--realtime-url", help="Socket.IO server URL (overrides RELAY_REALTIME_URL)")
    parser.add_argument("--lat", type=float, help="Report this latitude periodically")
    parser.add_argument("--lon", type=float, help="Report this longitude periodically")
    parser.add_argument("--report-every", type=float, default=10.0, help="Seconds between position reports")
    parser.add_argument("--duration", type=float, default=0.0, help="Stop after N seconds (0 = run until Ctrl+C)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args()


def _print_devices(client: RelayClient) -> None:
    devices = client.devices
    print(f"[probe] {len(devices)} device(s), queue stats={client.delivery.stats}")
    for device_id, event in sorted(devices.items()):
        marker = "*" if device_id == client.device_id else " "
        via = f" via {event.uploader_device_id}" if event.relayed else ""
        print(
            f"  {marker} {device_id:<40} {event.timestamp.isoformat()} "
            f"lat={event.latitude} lon={event.longitude} rssi={event.signal_strength}{via}",
        )


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, str] = {}
    if args.base_url:
        overrides["base_url"] = args.base_url
    if args.realtime_url:
        overrides["realtime_url"] = args.realtime_url
    config = RelayConfig.from_env(**overrides)

    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)

    def on_state(state: ChannelState) -> None:
        print(f"[probe] push channel {state}")

    reporting = args.lat is not None and args.lon is not None
    async with RelayClient(config, on_channel_state=on_state) as client:
        print(f"[probe] device id {client.device_id}, uploading to {config.events_url}")
        await client.enable_sync()
        started = loop.time()
        seen = -1

        while not stop.is_set():
            if args.duration > 0 and loop.time() - started >= args.duration:
                print(f"[probe] Reached --duration={args.duration}s, stopping.")
                break

            if reporting:
                delivered = await client.report_location(LocationSample(latitude=args.lat, longitude=args.lon))
                print(f"[probe] reported position delivered={delivered}")

            await client.context.updates.join()
            if client.channel.received != seen or reporting:
                seen = client.channel.received
                _print_devices(client)

            try:
                await asyncio.wait_for(stop.wait(), timeout=args.report_every)
            except TimeoutError:
                pass

        pending = await client.delivery.queue.size()
        print(f"[probe] exiting with {pending} event(s) still queued")
    return 0


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(_main())
