"""Seed script for marketplace test data.

Creates event tickets, merchandise and a few rewards so you can exercise
checkout, payment confirmation and redemption end-to-end.

Usage:
    python -m services.marketplace_service.seed_marketplace_data
"""

import asyncio
from datetime import timedelta
from decimal import Decimal

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from libs.db.config import build_engine, build_session_factory
from services.marketplace_service.models import Product, Reward, RewardType, Ticket
from sqlalchemy import func, select

settings = get_settings()


async def seed_marketplace_data():
    engine = build_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)
    if settings.is_sqlite:
        # Local SQLite databases are not migrated with Alembic
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    session_factory = build_session_factory(engine)
    async with session_factory() as db:
        print("Seeding marketplace data...")

        # Check if data already exists
        count = await db.scalar(select(func.count()).select_from(Ticket))
        if count:
            print(f"Marketplace data already exists ({count} tickets). Skipping seed.")
            await engine.dispose()
            return

        # =========================================================================
        # 1. TICKETS
        # =========================================================================
        starts = utc_now() + timedelta(days=30)
        tickets = [
            Ticket(
                event_name="Harbour Lights Festival",
                ticket_type="general",
                event_starts_at=starts,
                price=Decimal("45.00"),
                quantity_available=500,
                limit_per_user=4,
                points_earned_per_unit=45,
            ),
            Ticket(
                event_name="Harbour Lights Festival",
                ticket_type="vip",
                event_starts_at=starts,
                price=Decimal("120.00"),
                quantity_available=50,
                limit_per_user=2,
                points_earned_per_unit=150,
            ),
            Ticket(
                event_name="Midnight Jazz Session",
                ticket_type="general",
                event_starts_at=starts + timedelta(days=7),
                price=Decimal("30.00"),
                quantity_available=120,
                points_earned_per_unit=30,
            ),
        ]
        db.add_all(tickets)

        # =========================================================================
        # 2. PRODUCTS
        # =========================================================================
        products = [
            Product(
                name="Festival Tee",
                sku="MKT-TEE-001",
                price=Decimal("25.00"),
                quantity_available=200,
                points_earned_per_unit=10,
            ),
            Product(
                name="Enamel Pin Set",
                sku="MKT-PIN-001",
                price=Decimal("12.50"),
                quantity_available=300,
                limit_per_user=5,
                points_earned_per_unit=5,
            ),
            Product(
                name="Signed Tour Poster",
                sku="MKT-PST-001",
                price=Decimal("60.00"),
                quantity_available=25,
                limit_per_user=1,
                points_earned_per_unit=60,
            ),
        ]
        db.add_all(products)
        await db.flush()

        # =========================================================================
        # 3. REWARDS
        # =========================================================================
        rewards = [
            Reward(
                name="10% off your next order",
                points_required=100,
                reward_type=RewardType.DISCOUNT,
                discount_percent=10,
            ),
            Reward(
                name="Free Enamel Pin Set",
                points_required=150,
                reward_type=RewardType.PRODUCT,
                product_id=products[1].id,
            ),
            Reward(
                name="Jazz Session ticket",
                points_required=400,
                reward_type=RewardType.TICKET,
                ticket_id=tickets[2].id,
                expires_at=starts,
            ),
        ]
        db.add_all(rewards)

        await db.commit()
        print("=" * 60)
        print("Marketplace data seeded successfully!")
        print("=" * 60)
        print(f"  Tickets: {len(tickets)}")
        print(f"  Products: {len(products)}")
        print(f"  Rewards: {len(rewards)}")
        print("=" * 60)

    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(seed_marketplace_data())
