import logging
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends
from pymongo.database import Database

from auth import get_db, get_storage, get_tokens, require_jwt
from engagement import rank_entries
from responses import send_error, send_success
from schemas import RequestBody, UserRequest
from storage import MediaStorage
from tokens import TokenService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

CARD_FIELDS = {"profile.displayName": 1, "profile.PFP": 1, "questCompleted": 1}

# ---------------------- Models ----------------------

class FriendRequest(RequestBody):
    user_id: Optional[str] = None
    friend_id: Optional[str] = None

# ---------------------- Helpers ----------------------

def user_card(user: dict, storage: MediaStorage, id_field: str = "userId") -> dict:
    profile = user.get("profile") or {}
    return {
        id_field: user["_id"],
        "displayName": profile.get("displayName"),
        "pfp": storage.presigned_url(profile.get("PFP")),
        "questCompleted": user.get("questCompleted") or 0,
    }


def friend_ids(db: Database, user_id: ObjectId) -> list:
    user = db["users"].find_one({"_id": user_id}, {"friends": 1})
    return (user or {}).get("friends") or []

# ---------------------- Friends ----------------------

@router.post("/addFriend")
def add_friend(
    payload: FriendRequest,
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    tokens: TokenService = Depends(get_tokens),
):
    if not payload.user_id or not payload.friend_id:
        return send_error("User ID and Friend ID are required", jwt_token, tokens, 400)
    if payload.user_id == payload.friend_id:
        return send_error("You cannot add yourself as a friend", jwt_token, tokens, 400)

    try:
        user_id, friend_id = ObjectId(payload.user_id), ObjectId(payload.friend_id)
        if db["users"].count_documents({"_id": friend_id}) == 0:
            return send_error("The user you are trying to add does not exist", jwt_token, tokens, 404)

        result = db["users"].update_one({"_id": user_id}, {"$addToSet": {"friends": friend_id}})
        if result.matched_count == 0:
            return send_error("User not found", jwt_token, tokens, 404)
        friends = friend_ids(db, user_id)
    except Exception as e:
        logger.exception("Add friend error")
        return send_error(str(e), jwt_token, tokens, 500)

    return send_success({"friends": friends}, jwt_token, tokens)


@router.post("/removeFriend")
def remove_friend(
    payload: FriendRequest,
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    tokens: TokenService = Depends(get_tokens),
):
    if not payload.user_id or not payload.friend_id:
        return send_error("User ID and Friend ID are required", jwt_token, tokens, 400)

    try:
        user_id = ObjectId(payload.user_id)
        result = db["users"].update_one({"_id": user_id}, {"$pull": {"friends": ObjectId(payload.friend_id)}})
        if result.matched_count == 0:
            return send_error("User not found", jwt_token, tokens, 404)
        friends = friend_ids(db, user_id)
    except Exception as e:
        logger.exception("Remove friend error")
        return send_error(str(e), jwt_token, tokens, 500)

    return send_success({"friends": friends}, jwt_token, tokens)


@router.post("/fetchFriends")
def fetch_friends(
    payload: UserRequest,
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
    tokens: TokenService = Depends(get_tokens),
):
    if not payload.user_id:
        return send_error("User ID is required", jwt_token, tokens, 400)

    try:
        user = db["users"].find_one({"_id": ObjectId(payload.user_id)}, {"friends": 1})
        if not user:
            return send_error("User not found", jwt_token, tokens, 404)

        ids = user.get("friends") or []
        friends = db["users"].find({"_id": {"$in": ids}}, CARD_FIELDS) if ids else []
        cards = rank_entries(user_card(f, storage, id_field="_id") for f in friends)
    except Exception as e:
        logger.exception("Fetch friends error")
        return send_error(str(e), jwt_token, tokens, 500)

    return send_success({"friends": cards}, jwt_token, tokens)

# ---------------------- Scoreboard ----------------------

@router.post("/fetchScoreboard")
def fetch_scoreboard(
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
    tokens: TokenService = Depends(get_tokens),
):
    try:
        users = db["users"].find({"emailVerified": True}, CARD_FIELDS)
        scoreboard = rank_entries(user_card(u, storage) for u in users)
    except Exception as e:
        logger.exception("Fetch scoreboard error")
        return send_error(str(e), jwt_token, tokens, 500)

    return send_success({"scoreboard": scoreboard}, jwt_token, tokens)
