# dropserver/aggregation.py
"""
Derived drop statistics.

Two tables are caches over `drops` and every refresh rebuilds both from
scratch:

* `drop_stats`: event count and quantity per (zone, item name).
* `drop_rates`: quantity per (mob id, item id) against the kills recorded for
  that mob.

Kill records are ordinary rows whose item name carries the ``MOB-`` prefix and
whose ``item_id`` is the id of the defeated mob, so kill counts come from the
same table as the drops they are compared against.
"""
import asyncio
import logging
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Mapping, Optional

from sqlalchemy import delete, func, insert, not_, select
from sqlalchemy.exc import SQLAlchemyError

from dropserver.errors import TransientStoreError
from dropserver.models import DropEvent, DropRate, DropStat
from dropserver.schemas import AggregatedStat, DropRateStat

logger = logging.getLogger(__name__)

KILL_RECORD_PREFIX = "MOB-"
STORE_ERRORS = (SQLAlchemyError, OSError, asyncio.TimeoutError)


def drop_rate(total_drops: int, total_kills: int) -> float:
    """Percentage of drops per kill, rounded half-up to two decimals. 0 without kills."""
    if not total_kills or total_kills <= 0:
        return 0.0
    rate = Decimal(total_drops) / Decimal(total_kills) * 100
    return float(rate.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# --- QUERIES ---
def kill_counts_query():
    return (
        select(DropEvent.item_id.label("mob_id"), func.sum(DropEvent.quantity).label("total_kills"))
        .where(DropEvent.item_name.like(f"{KILL_RECORD_PREFIX}%"))
        .group_by(DropEvent.item_id)
    )


def drop_totals_query():
    return (
        select(
            DropEvent.zone_id,
            DropEvent.item_name,
            func.max(DropEvent.source_mob).label("source_mob"),
            func.count().label("drop_count"),
            func.sum(DropEvent.quantity).label("total_quantity"),
        )
        .where(not_(DropEvent.item_name.like(f"{KILL_RECORD_PREFIX}%")))
        .group_by(DropEvent.zone_id, DropEvent.item_name)
    )


def mob_drop_totals_query():
    # Kill records carry no source mob, so this only sees drops
    return (
        select(
            DropEvent.source_mob_id,
            DropEvent.item_id,
            func.max(DropEvent.source_mob).label("mob_name"),
            func.max(DropEvent.item_name).label("item_name"),
            func.sum(DropEvent.quantity).label("total_drops"),
        )
        .where(DropEvent.source_mob.is_not(None))
        .group_by(DropEvent.source_mob_id, DropEvent.item_id)
    )


# --- SNAPSHOT BUILDERS ---
def build_stats(totals: Iterable[Mapping], refreshed_at: Optional[datetime] = None) -> List[Dict]:
    refreshed_at = refreshed_at or datetime.now(timezone.utc)
    return [
        {
            "zone_id": total["zone_id"],
            "item_name": total["item_name"],
            "source_mob": total["source_mob"],
            "drop_count": int(total["drop_count"]),
            "total_quantity": int(total["total_quantity"] or 0),
            "refreshed_at": refreshed_at,
        }
        for total in totals
    ]


def build_drop_rates(
    totals: Iterable[Mapping],
    kill_counts: Mapping[int, int],
    refreshed_at: Optional[datetime] = None,
) -> List[Dict]:
    """Left-join per (mob, item) drop totals against kill counts keyed by mob id."""
    refreshed_at = refreshed_at or datetime.now(timezone.utc)
    rows = []
    for total in totals:
        mob_id = total["source_mob_id"]
        kills = int(kill_counts.get(mob_id, 0)) if mob_id is not None else 0
        drops = int(total["total_drops"] or 0)
        rows.append({
            "source_mob_id": mob_id,
            "item_id": total["item_id"],
            "mob_name": total["mob_name"],
            "item_name": total["item_name"],
            "total_drops": drops,
            "total_kills": kills,
            "drop_rate": drop_rate(drops, kills),
            "refreshed_at": refreshed_at,
        })
    rows.sort(key=lambda r: (r["mob_name"], r["item_name"]))
    return rows


class StatsRepository:
    def __init__(self, session_factory):
        self.session_factory = session_factory

    async def refresh(self) -> int:
        """
        Rebuild `drop_stats` and `drop_rates` from `drops` in a single
        transaction. Readers keep seeing the previous snapshot until the
        commit; any failure rolls both tables back.
        """
        refreshed_at = datetime.now(timezone.utc)
        async with self.session_factory() as session:
            async with session.begin():
                totals = (await session.execute(drop_totals_query())).mappings().all()
                stats = build_stats(totals, refreshed_at)
                await session.execute(delete(DropStat))
                if stats:
                    await session.execute(insert(DropStat), stats)

                kills = {
                    row.mob_id: row.total_kills
                    for row in (await session.execute(kill_counts_query())).all()
                }
                mob_totals = (await session.execute(mob_drop_totals_query())).mappings().all()
                rates = build_drop_rates(mob_totals, kills, refreshed_at)
                await session.execute(delete(DropRate))
                if rates:
                    await session.execute(insert(DropRate), rates)

        logger.debug("Rebuilt %d stat rows and %d drop rate rows", len(stats), len(rates))
        return len(stats)

    async def snapshot(self) -> List[AggregatedStat]:
        query = select(DropStat).order_by(DropStat.source_mob.asc(), DropStat.item_name.asc())
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                return [AggregatedStat.model_validate(row) for row in result.scalars().all()]
        except STORE_ERRORS as e:
            logger.error("Stats read error: %s", e)
            raise TransientStoreError() from e

    async def drop_rates(self) -> List[DropRateStat]:
        query = select(DropRate).order_by(DropRate.mob_name.asc(), DropRate.item_name.asc())
        try:
            async with self.session_factory() as session:
                result = await session.execute(query)
                return [DropRateStat.model_validate(row) for row in result.scalars().all()]
        except STORE_ERRORS as e:
            logger.error("Drop rate read error: %s", e)
            raise TransientStoreError() from e


# --- BACKGROUND REFRESH ---
async def run_refresh_loop(repository, interval_seconds: float):
    """Refresh now, then every interval. A failed tick keeps the old snapshot."""
    logger.info("Stats refresher started (every %ss)", interval_seconds)
    while True:
        try:
            logger.info("Refreshing drop stats...")
            count = await repository.refresh()
            logger.info("Drop stats refreshed: %d rows", count)
        except Exception:
            logger.exception("Failed to refresh stats")
        await asyncio.sleep(interval_seconds)
