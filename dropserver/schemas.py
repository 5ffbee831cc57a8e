# dropserver/schemas.py
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

# Bounds of the 32-bit integer columns
INT32_MIN = -2**31
INT32_MAX = 2**31 - 1


# --- REQUEST (wire names as sent by the plugin) ---
class DropSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    zone_id: int = Field(alias="ZoneID", ge=INT32_MIN, le=INT32_MAX)
    item_name: str = Field(alias="ItemName")
    quantity: int = Field(alias="Quantity", ge=INT32_MIN, le=INT32_MAX)
    is_hq: bool = Field(alias="IsHQ")
    user_hash: str = Field(alias="UserHash")
    source_mob: Optional[str] = Field(default=None, alias="SourceMob")
    item_id: int = Field(alias="ItemID", ge=INT32_MIN, le=INT32_MAX)
    source_mob_id: Optional[int] = Field(default=None, alias="SourceMobID", ge=INT32_MIN, le=INT32_MAX)


# --- WRITE PATH ---
class AcceptedDrop(BaseModel):
    """A submission that passed filtering and sanitizing, ready to insert."""
    model_config = ConfigDict(frozen=True)

    zone_id: int
    item_name: str
    quantity: int
    is_hq: bool
    reporter_hash: str
    source_mob: Optional[str] = None
    item_id: int
    source_mob_id: Optional[int] = None


class SubmitResponse(BaseModel):
    success: bool = True
    count: int


# --- READ PATH ---
class AggregatedStat(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    zone_id: int
    item_name: str
    source_mob: Optional[str] = None
    drop_count: int
    total_quantity: int
    refreshed_at: Optional[datetime] = None


class DropRateStat(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)

    mob_name: str
    item_name: str
    source_mob_id: Optional[int] = None
    item_id: int
    total_drops: int
    total_kills: int = 0
    drop_rate: float = 0.0
    refreshed_at: Optional[datetime] = None
