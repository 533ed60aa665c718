"""Seed the weekly session grid and, optionally, a student roster.

The roster file is a JSON list of objects with ``id``, ``name``, ``email`` and
optional ``phone_number``. Existing students are left untouched.
"""

from __future__ import annotations

import argparse
import asyncio
import json
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import SessionLocal, UnitOfWork, close_engine
from app.modules.booking.repository import BookingRepository
from app.modules.catalog.repository import CatalogRepository
from app.modules.catalog.service import CatalogService
from app.modules.identity.repository import IdentityRepository
from app.modules.identity.schemas import StudentCreate
from app.modules.identity.service import IdentityService
from app.shared.exceptions import AppException


@dataclass(slots=True)
class SeedStats:
    sessions_created: int = 0
    students_created: int = 0
    students_skipped: int = 0
    errors: list[str] = field(default_factory=list)


def _load_roster(path: Path) -> list[dict]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError("Roster file must contain a JSON list")
    return data


async def _seed_students(session: AsyncSession, roster: list[dict], stats: SeedStats) -> None:
    service = IdentityService(IdentityRepository(session))
    for entry in roster:
        try:
            payload = StudentCreate.model_validate(entry)
            await service.create_student(payload)
        except ValidationError as exc:
            stats.errors.append(f"{entry.get('id', '?')}: {exc.errors()[0]['msg']}")
            continue
        except AppException as exc:
            stats.students_skipped += 1
            stats.errors.append(f"{entry.get('id', '?')}: {exc.message}")
            continue
        stats.students_created += 1


async def _run_seed(*, roster: list[dict], allow_production: bool) -> SeedStats:
    settings = get_settings()
    app_env = settings.app_env.strip().lower()
    if roster and app_env in {"production", "prod"} and not allow_production:
        raise RuntimeError("Refusing to seed students in production without --allow-production")

    stats = SeedStats()
    async with SessionLocal() as session:
        catalog = CatalogService(
            repository=CatalogRepository(session),
            booking_repository=BookingRepository(session),
            unit_of_work=UnitOfWork(session),
        )
        stats.sessions_created = await catalog.ensure_catalog()

        try:
            await _seed_students(session, roster, stats)
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    return stats


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Seed the weekly session catalog and an optional student roster.",
    )
    parser.add_argument(
        "--students",
        type=Path,
        default=None,
        help="Path to a JSON roster of students to create.",
    )
    parser.add_argument(
        "--allow-production",
        action="store_true",
        help="Allow seeding students even when APP_ENV is production/prod.",
    )
    return parser


def _print_summary(stats: SeedStats) -> None:
    print("Catalog seed completed.")
    print(f"- Sessions created: {stats.sessions_created}")
    print(f"- Students created: {stats.students_created}")
    print(f"- Students skipped: {stats.students_skipped}")
    for error in stats.errors:
        print(f"  ! {error}")


def main() -> int:
    parser = _build_parser()
    args = parser.parse_args()

    try:
        roster = _load_roster(args.students) if args.students else []
        stats = asyncio.run(_run_seed(roster=roster, allow_production=args.allow_production))
    except Exception as exc:
        print(f"Catalog seed failed: {exc}")
        return 1
    finally:
        asyncio.run(close_engine())

    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
