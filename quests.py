"""Daily quest rotation over the `quests` and `currentquest` collections."""

import logging
import random
from datetime import datetime, timezone
from typing import Optional

from pymongo import DESCENDING
from pymongo.database import Database

from schemas import CurrentQuest

logger = logging.getLogger(__name__)


def rotate_quest(db: Database, rng=random) -> dict:
    """Pick a quest not yet used in this cycle and make it current.

    When every quest has been cycled, all flags are reset first. The pick is
    appended to `currentquest` and marked cycled.
    """
    available = list(db["quests"].find({"isCycled": False}))

    if not available:
        db["quests"].update_many({}, {"$set": {"isCycled": False}})
        available = list(db["quests"].find({"isCycled": False}))
        logger.info("Reset all quests. Found %d quests available.", len(available))

    if not available:
        return {
            "success": False,
            "error": "No quests available in the database",
            "timestamp": datetime.now(timezone.utc),
        }

    selected = rng.choice(available)
    current = CurrentQuest(quest_id=selected["_id"], quest_data=selected)
    db["currentquest"].insert_one(current.model_dump(by_alias=True))
    db["quests"].update_one({"_id": selected["_id"]}, {"$set": {"isCycled": True}})

    logger.info("Rotated quest: %s at %s", selected["_id"], current.timestamp)
    return {
        "success": True,
        "selectedQuestId": selected["_id"],
        "timestamp": current.timestamp,
        "availableQuestsRemaining": len(available) - 1,
    }


def current_quest(db: Database) -> Optional[dict]:
    return db["currentquest"].find_one({}, sort=[("timestamp", DESCENDING)])
