#!/usr/bin/env python3
"""
Refresh or clear cached vehicle lookups for a batch of plates.

Usage:
    python refresh_lookups.py --plates AB12CDE XY34ZAB
    python refresh_lookups.py --file data/plates.txt --mileage 60000
    python refresh_lookups.py --plates AB12CDE --clear
"""

import argparse
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent))

from platecheck.db import close_db, get_db
from platecheck.services.enhanced_vehicle import get_enhanced_vehicle_service
from platecheck.services.plate_lock import close_redis_client
from platecheck.utils.plates import normalize_plate, validate_plate


def read_plates(plates: list[str], filepath: str | None) -> list[str]:
    """Collect plates from the command line and an optional one-per-line file, deduplicated in order."""
    collected = list(plates or [])
    if filepath:
        path = Path(filepath)
        if not path.exists():
            print(f"Error: file not found: {path}")
        else:
            with open(path, encoding="utf-8") as f:
                collected.extend(line.strip() for line in f if line.strip() and not line.startswith("#"))

    seen: set[str] = set()
    result = []
    for plate in collected:
        normalized = normalize_plate(plate)
        if normalized and normalized not in seen:
            seen.add(normalized)
            result.append(normalized)
    return result


async def run(plates: list[str], clear: bool, mileage: int | None) -> int:
    await get_db()
    service = get_enhanced_vehicle_service()
    count = 0
    try:
        for plate in plates:
            error = validate_plate(plate)
            if error:
                print(f"  skip {plate}: {error}")
                continue
            if clear:
                cleared = await service.clear_cache(plate)
                print(f"  {'- cleared' if cleared else '  no cache'} {plate}")
                count += int(cleared)
                continue
            record = await service.lookup(plate, use_cache=False, mileage=mileage)
            warnings = service.generate_warnings(record)
            make = record.value_of("make") or "?"
            model = record.value_of("model") or "?"
            suffix = f" ({'; '.join(warnings)})" if warnings else ""
            print(f"  + {plate} cache_id={record.cache_id} {make} {model}{suffix}")
            count += 1
    finally:
        await close_redis_client()
        await close_db()
    return count


def main():
    parser = argparse.ArgumentParser(description="Refresh or clear cached vehicle lookups")
    parser.add_argument("--plates", nargs="*", default=[], help="Registration plates")
    parser.add_argument("--file", help="Text file with one plate per line")
    parser.add_argument("--clear", action="store_true", help="Delete cached rows instead of refreshing")
    parser.add_argument("--mileage", type=int, help="Mileage used for every valuation")
    args = parser.parse_args()

    plates = read_plates(args.plates, args.file)
    if not plates:
        parser.error("no plates given (use --plates or --file)")

    n = asyncio.run(run(plates, args.clear, args.mileage))
    print(f"{'Cleared' if args.clear else 'Refreshed'} {n} plates.")


if __name__ == "__main__":
    main()
