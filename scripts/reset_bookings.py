"""Weekly reset: delete every booking. Intended to be run from cron."""

from __future__ import annotations

import argparse
import asyncio

from app.core.database import SessionLocal, UnitOfWork, close_engine
from app.modules.booking.repository import BookingRepository
from app.modules.booking.service import BookingService
from app.modules.catalog.repository import CatalogRepository
from app.modules.identity.repository import IdentityRepository
from app.shared.utils import utc_now


async def _run_reset() -> int:
    async with SessionLocal() as session:
        service = BookingService(
            booking_repository=BookingRepository(session),
            catalog_repository=CatalogRepository(session),
            identity_repository=IdentityRepository(session),
            unit_of_work=UnitOfWork(session),
        )
        return await service.reset_all_bookings()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Delete all bookings (weekly reset).")
    parser.add_argument(
        "--yes",
        action="store_true",
        help="Confirm the reset; without it the script exits without changes.",
    )
    return parser


def main() -> int:
    args = _build_parser().parse_args()
    if not args.yes:
        print("Refusing to reset bookings without --yes.")
        return 2

    try:
        deleted = asyncio.run(_run_reset())
    except Exception as exc:
        print(f"Booking reset failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())

    print(f"Booking reset completed at {utc_now().isoformat()}: {deleted} bookings deleted.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
