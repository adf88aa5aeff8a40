import logging
from datetime import datetime, timezone

from bson import ObjectId
from fastapi import APIRouter, Depends
from pymongo.database import Database

from auth import get_db, get_storage, get_tokens, require_jwt
from engagement import as_utc, is_today
from quests import current_quest, rotate_quest
from responses import send_error, send_response, send_success
from routes.profiles import post_with_url
from schemas import UserRequest
from storage import MediaStorage
from tokens import TokenService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


@router.post("/rotateQuest")
def rotate(db: Database = Depends(get_db)):
    # Called by an external scheduler; no user token involved.
    try:
        result = rotate_quest(db)
    except Exception as e:
        logger.exception("Quest rotation error")
        return send_response({"success": False, "error": str(e), "timestamp": datetime.now(timezone.utc)}, 500)
    return send_response(result)


@router.get("/getCurrentQuest")
@router.get("/currentQuest")
def get_current_quest(db: Database = Depends(get_db)):
    try:
        current = current_quest(db)
    except Exception as e:
        logger.exception("Get current quest error")
        return send_response({"success": False, "error": str(e), "timestamp": datetime.now(timezone.utc)}, 500)

    if not current:
        return send_response({"success": False, "error": "No current quest found", "timestamp": datetime.now(timezone.utc)})

    return send_response({
        "success": True,
        "currentQuest": current,
        "questDescription": (current.get("questData") or {}).get("description"),
        "timestamp": datetime.now(timezone.utc),
    })


@router.post("/hasCompletedCurrentQuest")
def has_completed_current_quest(
    payload: UserRequest,
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
    tokens: TokenService = Depends(get_tokens),
):
    if not payload.user_id:
        return send_error("User ID is required", jwt_token, tokens, 400)

    try:
        user = db["users"].find_one({"_id": ObjectId(payload.user_id)}, {"questPosts": 1})
        posts = [p for p in (user or {}).get("questPosts") or [] if isinstance(p.get("timeStamp"), datetime)]
        latest = max(posts, key=lambda p: as_utc(p["timeStamp"]), default=None)
    except Exception as e:
        logger.exception("Has completed current quest error")
        return send_error(str(e), jwt_token, tokens, 500)

    if latest is None or not is_today(latest["timeStamp"]):
        return send_success({"success": True, "hasCompleted": False, "post": None}, jwt_token, tokens)
    return send_success({"success": True, "hasCompleted": True, "post": post_with_url(latest, storage)}, jwt_token, tokens)
