#!/usr/bin/env python3
"""Run the fleetsim engine against an in-memory demo fleet.

Seeds a handful of Nairobi vehicles (half following a CBD route, half
replaying canned scenarios), provisions their default triggers, runs a
number of passes and prints what was recorded.

Usage
-----
::

    python scripts/run_simulation.py --vehicles 4 --passes 6

Options::

    --vehicles N        Number of demo vehicles (default: 4)
    --passes N          Number of passes to run back to back (default: 4)
    --run-for SECONDS   Run the real ticker for SECONDS instead of --passes
    --tick SECONDS      Tick interval when using --run-for (default: 2)
    --seed N            Random seed (default: 1)
    --json              Output history as machine-readable JSON
    --output FILE       Write output to FILE instead of stdout
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from fleetsim import InMemoryStorage, Route, SimulationConfig, SimulationEngine, Vehicle  # noqa: E402

_DEMO_ROUTE = {
    "id": "route-cbd",
    "name": "CBD - Upper Hill",
    "stops": [
        {"sequence": 1, "name": "Kencom", "coordinates": {"latitude": -1.2864, "longitude": 36.8254}},
        {"sequence": 2, "name": "Haile Selassie", "coordinates": {"latitude": -1.2921, "longitude": 36.8219}},
        {"sequence": 3, "name": "Kenyatta Hospital", "coordinates": {"latitude": -1.3010, "longitude": 36.8070}},
        {"sequence": 4, "name": "Upper Hill", "coordinates": {"latitude": -1.2990, "longitude": 36.8150}},
    ],
}


def _section(title: str) -> str:
    line = "=" * 60
    return f"\n{line}\n  {title}\n{line}"


def _demo_fleet(count: int) -> list[Vehicle]:
    return [
        Vehicle.model_validate(
            {
                "id": f"veh-{i + 1:02d}",
                "plateNumber": f"KD{i + 1:02d} {chr(65 + i % 26)}",
                "status": "in_use" if i % 2 == 0 else "available",
                "assignedRoute": _DEMO_ROUTE["id"] if i % 2 == 0 else None,
            }
        )
        for i in range(count)
    ]


async def main() -> None:
    parser = argparse.ArgumentParser(description="Run the fleetsim engine on an in-memory demo fleet.")
    parser.add_argument("--vehicles", type=int, default=4, help="Number of demo vehicles")
    parser.add_argument("--passes", type=int, default=4, help="Passes to run back to back")
    parser.add_argument("--run-for", type=float, help="Run the real ticker for this many seconds")
    parser.add_argument("--tick", type=float, default=2.0, help="Tick interval when using --run-for")
    parser.add_argument("--seed", type=int, default=1, help="Random seed")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Output machine-readable JSON")
    parser.add_argument("--output", "-o", help="Write output to FILE instead of stdout")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    fleet = _demo_fleet(args.vehicles)
    storage = InMemoryStorage(routes=[Route.model_validate(_DEMO_ROUTE)])
    config = SimulationConfig.from_env(tick_interval=args.tick, seed=args.seed)

    async with SimulationEngine(storage, config) as engine:
        for vehicle in fleet:
            storage.put_vehicle(vehicle)
            await engine.handle_new_vehicle(vehicle.id)

        if args.run_for:
            await engine.start()
            await asyncio.sleep(args.run_for)
        else:
            for _ in range(args.passes):
                await engine.trigger_once()
        status = engine.status()

    result: dict[str, Any] = {
        "passes": status.passes,
        "skipped_ticks": status.skipped_ticks,
        "scenario": status.scenario,
        "vehicles": {},
    }
    out: list[str] = [_section("fleetsim demo")]
    out.append(f"  passes    : {status.passes} ({status.skipped_ticks} ticks skipped)")
    out.append(f"  vehicles  : {status.vehicles}")
    out.append(f"  scenario  : {status.scenario} #{status.scenario_snapshot + 1}")

    for vehicle in fleet:
        entries = storage.history(vehicle.id)
        result["vehicles"][vehicle.id] = [entry.model_dump(mode="json", by_alias=True) for entry in entries]
        snapshot = storage.vehicle(vehicle.id)
        out.append(_section(f"{vehicle.label} ({vehicle.id})"))
        if snapshot is not None:
            out.append(f"  mileage   : {snapshot.mileage:.3f} km")
            out.append(f"  passengers: {snapshot.total_passengers_ferried} over {snapshot.total_trips:.1f} trips")
        for entry in entries:
            tag = entry.trigger_type.value if entry.trigger_type is not None else "baseline"
            out.append(
                f"  {entry.timestamp:%H:%M:%S.%f}  {entry.location.latitude:9.5f},{entry.location.longitude:9.5f}"
                f"  {entry.speed.current:5.1f} km/h  {tag}"
            )

    if args.json_mode:
        payload = json.dumps(result, indent=2, default=str, ensure_ascii=False)
    else:
        payload = "\n".join(out)

    if args.output:
        Path(args.output).write_text(payload, encoding="utf-8")
        print(f"Output written to {args.output}", file=sys.stderr)
    else:
        print(payload)


if __name__ == "__main__":
    asyncio.run(main())
