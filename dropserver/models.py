# dropserver/models.py
from sqlalchemy import BigInteger, Boolean, Column, DateTime, Float, Integer, String
from sqlalchemy.sql import func

from dropserver.database import Base

# SQLite only autoincrements INTEGER primary keys
BigId = BigInteger().with_variant(Integer, "sqlite")


class DropEvent(Base):
    """Raw, append-only drop or kill observation reported by the plugin."""
    __tablename__ = "drops"

    id = Column(BigId, primary_key=True, autoincrement=True)
    zone_id = Column(Integer, nullable=False, index=True)
    item_name = Column(String, nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    is_hq = Column(Boolean, nullable=False, default=False)
    reporter_hash = Column(String, nullable=False, index=True)
    # Always assigned by the server, client timestamps are ignored
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    source_mob = Column(String, nullable=True)
    item_id = Column(Integer, nullable=False, index=True)
    source_mob_id = Column(Integer, nullable=True, index=True)


class DropStat(Base):
    """Per (zone, item) totals derived from `drops`. Replaced wholesale on every refresh."""
    __tablename__ = "drop_stats"

    zone_id = Column(Integer, primary_key=True, autoincrement=False)
    item_name = Column(String, primary_key=True)
    source_mob = Column(String, nullable=True)
    drop_count = Column(BigInteger, nullable=False, default=0)
    total_quantity = Column(BigInteger, nullable=False, default=0)
    refreshed_at = Column(DateTime(timezone=True), nullable=False)


class DropRate(Base):
    """Per (mob, item) drop rate against recorded kills. Rebuilt with `drop_stats`."""
    __tablename__ = "drop_rates"

    id = Column(BigId, primary_key=True, autoincrement=True)
    source_mob_id = Column(Integer, nullable=True)
    item_id = Column(Integer, nullable=False)
    mob_name = Column(String, nullable=False)
    item_name = Column(String, nullable=False)
    total_drops = Column(BigInteger, nullable=False, default=0)
    total_kills = Column(BigInteger, nullable=False, default=0)
    drop_rate = Column(Float, nullable=False, default=0.0)
    refreshed_at = Column(DateTime(timezone=True), nullable=False)
