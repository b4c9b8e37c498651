#!/usr/bin/env python3
"""Log in to Kwikset and keep the locks of one home in sync.

Prints every discover/update/remove event until interrupted.  On first
run (or after ``--forget``) a verification code is texted to the account's
phone; open the logged URL and enter it there.

Usage
-----
::

    export KWIKSET_EMAIL="you@example.com"
    export KWIKSET_PASSWORD="your-password"
    export KWIKSET_HOME_NAME="Cabin"
    python scripts/kwikset_sync.py

Options::

    --home NAME          Home to track (overrides KWIKSET_HOME_NAME)
    --mfa-port PORT      Port of the verification code form (default: 8888)
    --credentials FILE   Token cache file
    --forget             Delete cached tokens before logging in
    --once               Reconcile once, print the locks and exit
    --lock DEVICE_ID     Lock a device after discovery
    --unlock DEVICE_ID   Unlock a device after discovery
    --verbose / -v       Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pykwikset import (  # noqa: E402
    DeviceEvent,
    KwiksetClient,
    KwiksetConfig,
    KwiksetError,
    LockTargetState,
    TrackedEntity,
)


def _describe(entity: TrackedEntity) -> str:
    battery = "?" if entity.battery_percentage is None else f"{entity.battery_percentage}%"
    low = " LOW" if entity.low_battery else ""
    return (
        f"{entity.name or '(unnamed)'} [{entity.device_id}] "
        f"{entity.lock_state} (target {entity.target_state}) battery {battery}{low}"
    )


def _print_event(event: DeviceEvent) -> None:
    print(f"{event.observed_at:%H:%M:%S} {event.type:<10} {_describe(event.entity)}")


async def run(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {}
    if args.home:
        overrides["home_name"] = args.home
    if args.mfa_port is not None:
        overrides["mfa_port"] = args.mfa_port
    if args.credentials:
        overrides["credentials_path"] = args.credentials
    config = KwiksetConfig.from_env(**overrides)

    async with KwiksetClient(config) as client:
        if args.forget:
            client.forget_credentials()
        await client.login()

        engine = client.create_engine(_print_event)
        try:
            if args.once:
                await engine.reconcile()
            else:
                await engine.start()

            for device_id, target in ((args.lock, LockTargetState.SECURED), (args.unlock, LockTargetState.UNSECURED)):
                if device_id:
                    entity = await engine.set_lock_state(device_id, target)
                    print(f"-> {_describe(entity)}")

            if args.once:
                for entity in engine.entities:
                    print(_describe(entity))
                return 0

            await asyncio.Event().wait()
        finally:
            await engine.stop()
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Keep the Kwikset locks of one home in sync.")
    parser.add_argument("--home", help="Home to track (overrides KWIKSET_HOME_NAME)")
    parser.add_argument("--mfa-port", type=int, help="Port of the verification code form")
    parser.add_argument("--credentials", help="Token cache file")
    parser.add_argument("--forget", action="store_true", help="Delete cached tokens before logging in")
    parser.add_argument("--once", action="store_true", help="Reconcile once, print the locks and exit")
    parser.add_argument("--lock", metavar="DEVICE_ID", help="Lock a device after discovery")
    parser.add_argument("--unlock", metavar="DEVICE_ID", help="Unlock a device after discovery")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

    try:
        with contextlib.suppress(KeyboardInterrupt):
            sys.exit(asyncio.run(run(args)))
    except KwiksetError as exc:
        print(f"error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
