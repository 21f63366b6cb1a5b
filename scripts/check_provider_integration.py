"""
Smoke-check the provider integration end to end.

Lists the available sources, counts the merged listing per source, then fetches
details and availability for the first experience.

Usage:
    python scripts/check_provider_integration.py
    python scripts/check_provider_integration.py --days 7 --memory
"""
import argparse
import asyncio
import sys
from collections import Counter
from datetime import date, timedelta
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dotenv import load_dotenv
load_dotenv(Path(__file__).parent.parent / ".env")

from database import init_db, session_factory
from experiences.aggregator import create_aggregator
from experiences.catalog import InMemoryCatalogStore, SqlCatalogStore
from observability import setup_logging


async def check(days: int, use_memory: bool) -> int:
    if use_memory:
        store = InMemoryCatalogStore()
    else:
        await init_db()
        store = SqlCatalogStore(session_factory())
    aggregator = create_aggregator(store)

    print("1. Checking available providers...")
    providers = await aggregator.list_provider_names()
    print(f"   Available providers: {', '.join(providers)}")

    print("2. Fetching experiences from all sources...")
    start = date.today()
    listing = await aggregator.list_all_with_status(start, start + timedelta(days=days))
    print(f"   Total experiences found: {len(listing.experiences)}")
    for source, count in Counter(e.source for e in listing.experiences).items():
        print(f"   - {source}: {count} experiences")

    print("3. Source status...")
    for status in listing.source_statuses:
        latency = f"{status.latency_ms}ms" if status.latency_ms is not None else "-"
        suffix = f" ({status.message})" if status.message else ""
        print(f"   - {status.source}: {status.status}, {status.result_count} results, {latency}{suffix}")

    if not listing.experiences:
        print("⚠️  No experiences found, skipping details and availability")
        return 1

    first = listing.experiences[0]
    print(f"4. Testing experience details retrieval for ID {first.id}...")
    details = await aggregator.get_details(first.id)
    if details is None:
        print(f"   ✗ No details for ID {first.id}")
        return 1
    print(f"   ✓ {details.title} ({details.source}), {len(details.images)} images")

    print(f"5. Testing availability for ID {first.id} on {start.isoformat()}...")
    availability = await aggregator.get_availability(first.id, start)
    print(f"   Available: {availability.available}, {len(availability.prices)} price slots")

    print("✅ Provider integration check complete")
    return 0


def main():
    parser = argparse.ArgumentParser(description="Check the experience provider integration")
    parser.add_argument("--days", type=int, default=14, help="Listing window length in days")
    parser.add_argument("--memory", action="store_true", help="Use an empty in-memory catalog instead of the database")
    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(check(args.days, args.memory)))


if __name__ == "__main__":
    main()
