"""Print the live membership queue and its statistics.

Reads active_member_queue_view through the same repository and aggregator
the API uses, so the numbers match what /api/queue/statistics reports.

Usage:
    python backend/scripts/queue_check.py [--limit N] [--search TERM]
"""

import argparse
import asyncio
import os
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import asyncpg
from dotenv import load_dotenv

from tenure_shared.models.queue import QueueStatistics
from tenure_shared.repositories.queue import QueueRepository

load_dotenv(Path(__file__).resolve().parent.parent / "tenure_api" / ".env")


async def main(limit: int, search: str | None) -> None:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL not set")
        sys.exit(1)

    pool = await asyncpg.create_pool(
        database_url, min_size=0, max_size=1, statement_cache_size=0
    )
    try:
        repo = QueueRepository(pool)
        if not await repo.ping():
            print("ERROR: database did not answer SELECT 1")
            sys.exit(1)

        members = await repo.get_all_queue_members()
        shown = await repo.search_queue_members(search, limit) if search else members[:limit]

        print("=" * 72)
        print(f"MEMBERSHIP QUEUE ({len(members)} members, showing {len(shown)})")
        print("=" * 72)
        for m in shown:
            flags = []
            if m.is_eligible:
                flags.append("eligible")
            if m.meets_time_requirement:
                flags.append("12+ payments")
            if m.has_received_payout:
                flags.append("paid out")
            print(
                f"  #{m.queue_position:<4} {m.display_name[:28]:<28} "
                f"${m.lifetime_payment_total:>10,.2f}  {', '.join(flags) or '-'}"
            )

        stats = QueueStatistics.from_members(
            members,
            max_winners=int(os.getenv("MAX_WINNERS_PER_PAYOUT", "2")),
            payout_threshold=int(os.getenv("DEFAULT_PAYOUT_THRESHOLD", "500000")),
        )
        print("\nSTATISTICS:")
        for key, value in stats.to_dict().items():
            print(f"  {key:<18} {value}")
    finally:
        await pool.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--limit", type=int, default=25, help="rows to print")
    parser.add_argument("--search", help="filter by email or name")
    args = parser.parse_args()
    asyncio.run(main(args.limit, args.search))
