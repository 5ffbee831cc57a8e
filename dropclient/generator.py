# dropclient/generator.py
import logging
import os
import random
import time

from faker import Faker

from dropclient.tracker import HQ_GLYPH, DropTracker

logger = logging.getLogger(__name__)

# Config
TARGET_URL = os.getenv("TARGET_URL", "http://localhost:3000/api/v1/submit")
PLAYER_COUNT = int(os.getenv("PLAYER_COUNT", "5"))
KILL_COUNT = int(os.getenv("KILL_COUNT", "200"))  # Kills per simulated player
DELAY = float(os.getenv("DELAY", "0.05"))  # Delay between chat lines (seconds)

fake = Faker()

# (zone id, mob id, mob name, [(item id, item name, drop chance)])
HUNTING_GROUNDS = [
    (135, 2001, "Wild Dodo", [(5, "Fire Shard", 0.9), (5346, "Dodo Skin", 0.35)]),
    (135, 2002, "Goobbue", [(7, "Wind Shard", 0.8), (5340, "Goobbue Horn", 0.15)]),
    (140, 3011, "Bomb", [(8, "Fire Crystal", 0.6), (5114, "Bomb Ash", 0.5)]),
    (140, 3012, "Coeurl", [(5285, "Coeurl Whisker", 0.25), (5286, "Coeurl Hide", 0.1)]),
]


def generate_player():
    """A simulated plugin user: content-id style hash plus its tracker."""
    user_hash = f"{fake.random_int(min=0x10000000, max=0xFFFFFFFF):X}"
    zone_id, mob_id, mob, loot = random.choice(HUNTING_GROUNDS)
    tracker = DropTracker(
        user_hash,
        zone_id=zone_id,
        api_url=TARGET_URL,
        item_ids={name: item_id for item_id, name, _ in loot},
        mob_ids={mob: mob_id},
    )
    return tracker, mob, loot


def chat_lines_for_kill(mob, loot):
    yield f"You defeat the {mob}."
    for _, name, chance in loot:
        if random.random() < chance:
            qty = random.randint(1, 3)
            hq = HQ_GLYPH if random.random() < 0.1 else ""
            yield f"You obtain {qty} {name}{hq}." if qty > 1 else f"You obtain a {name}{hq}."
    # Occasional currency line; the tracker must ignore it
    if random.random() < 0.2:
        yield f"You obtain {random.randint(10, 300)} gil."


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    logger.info("Starting simulated plugin... Target: %s", TARGET_URL)
    # Give the server a moment to come up
    time.sleep(5)

    players = [generate_player() for _ in range(PLAYER_COUNT)]
    for _ in range(KILL_COUNT):
        for tracker, mob, loot in players:
            for line in chat_lines_for_kill(mob, loot):
                tracker.feed(line)
        time.sleep(DELAY)

    for tracker, _, _ in players:
        tracker.flush()
    logger.info("Simulation finished: %d players x %d kills.", PLAYER_COUNT, KILL_COUNT)


if __name__ == "__main__":
    main()
