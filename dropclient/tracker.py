# dropclient/tracker.py
"""
Chat-log side of the Drop Logger plugin.

Turns game chat lines into drop and kill records, buffers them and uploads
them in batches to the server's submit endpoint.
"""
import logging
import re
import threading
from datetime import datetime, timedelta, timezone

import requests

logger = logging.getLogger(__name__)

USER_AGENT = "DropLogger-Plugin/1.0"
DEFAULT_API_URL = "http://localhost:3000/api/v1/submit"

DROP_PATTERN = re.compile(r"You obtain (an? )?(\d+ )?(.+?)\.", re.IGNORECASE)
KILL_PATTERN = re.compile(r"You defeat the (.+?)\.", re.IGNORECASE)

HQ_GLYPH = "\ue03c"
KILL_ATTRIBUTION_WINDOW = timedelta(seconds=5)
UPLOAD_INTERVAL = timedelta(minutes=5)

CURRENCY_ITEM_IDS = set(range(1, 100)) | {21072}
CURRENCY_WORDS = ("gil", "tomestone", "venture", "seal", "materia")


def _utcnow():
    return datetime.now(timezone.utc)


class DropTracker:
    def __init__(self, user_hash, zone_id=0, api_url=DEFAULT_API_URL, buffer_size=20,
                 item_ids=None, mob_ids=None, session=None):
        self.user_hash = user_hash
        self.zone_id = zone_id
        self.api_url = api_url
        self.buffer_size = buffer_size
        # Optional name -> id catalogs (the game client resolves these from its data sheets)
        self.item_ids = {k.lower(): v for k, v in (item_ids or {}).items()}
        self.mob_ids = {k.lower(): v for k, v in (mob_ids or {}).items()}
        self.session = session or requests.Session()

        self.buffer = []
        self._lock = threading.Lock()
        self._last_upload = _utcnow()
        self._last_mob = "Unknown"
        self._last_mob_id = 0
        self._last_kill_at = None

    # --- PARSING ---
    def feed(self, line, now=None):
        """Handle one chat line. Returns the buffered record or None."""
        now = now or _utcnow()

        kill = KILL_PATTERN.search(line)
        if kill:
            return self._handle_kill(kill.group(1), now)

        drop = DROP_PATTERN.search(line)
        if drop:
            return self._handle_drop(drop, now)
        return None

    def _handle_kill(self, mob_name, now):
        mob_id = self.mob_ids.get(mob_name.lower(), 0)
        self._last_mob = mob_name
        self._last_mob_id = mob_id
        self._last_kill_at = now

        # Kill records reuse ItemID as the mob id and carry no source mob
        return self._buffer(f"MOB-{mob_name}", mob_id, 1, False, None, None, now)

    def _handle_drop(self, match, now):
        quantity_text = (match.group(2) or "").strip()
        quantity = int(quantity_text) if quantity_text.isdigit() else 1

        raw_name = match.group(3)
        is_hq = HQ_GLYPH in raw_name
        name = raw_name.replace(HQ_GLYPH, "").strip()

        item_id = self.item_ids.get(name.lower(), 0)
        if item_id:
            if item_id in CURRENCY_ITEM_IDS:
                logger.debug("[Ignored] Currency ID: %s (%d)", name, item_id)
                return None
        elif any(word in name.lower() for word in CURRENCY_WORDS):
            logger.debug("[Ignored] Currency Text: %s", name)
            return None

        source_mob, source_mob_id = "Unknown", 0
        if self._last_kill_at is not None and now - self._last_kill_at < KILL_ATTRIBUTION_WINDOW:
            source_mob, source_mob_id = self._last_mob, self._last_mob_id

        return self._buffer(name, item_id, quantity, is_hq, source_mob, source_mob_id, now)

    # --- BUFFER & UPLOAD ---
    def _buffer(self, name, item_id, quantity, is_hq, source_mob, source_mob_id, now):
        record = {
            "ZoneID": self.zone_id,
            "ItemName": name,
            "ItemID": item_id,
            "Quantity": quantity,
            "IsHQ": is_hq,
            "UserHash": self.user_hash,
            "SourceMob": source_mob,
            "SourceMobID": source_mob_id,
        }
        with self._lock:
            self.buffer.append(record)
            due = len(self.buffer) >= self.buffer_size or now - self._last_upload > UPLOAD_INTERVAL
        if due:
            self.flush(now)
        return record

    def flush(self, now=None):
        """Upload everything buffered. Returns the HTTP status, or None if nothing was sent."""
        with self._lock:
            if not self.buffer:
                return None
            batch, self.buffer = self.buffer, []
            self._last_upload = now or _utcnow()

        try:
            response = self.session.post(
                self.api_url,
                json=batch,
                headers={"User-Agent": USER_AGENT},
                timeout=5,
            )
        except requests.RequestException as e:
            logger.error("Upload exception (%d events): %s", len(batch), e)
            return None

        if response.status_code != 200:
            logger.error("Upload failed: %s", response.status_code)
        else:
            logger.info("Synced %d events.", len(batch))
        return response.status_code
