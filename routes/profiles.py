import logging
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, File, Form, UploadFile
from pymongo.database import Database

from auth import get_db, get_storage, get_tokens, require_jwt
from engagement import as_utc
from responses import send_error, send_success
from schemas import DEFAULT_PFP, RequestBody, UserRequest
from storage import MediaStorage, UnsupportedMediaType
from tokens import TokenService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

OLDEST = datetime.min.replace(tzinfo=timezone.utc)

# ---------------------- Models ----------------------

class EditProfileRequest(RequestBody):
    user_id: Optional[str] = None
    display_name: Optional[str] = None
    bio: Optional[str] = None

# ---------------------- Helpers ----------------------

def post_with_url(post: dict, storage: MediaStorage) -> dict:
    """Swap the storage key of a post for a signed link."""
    data = {k: v for k, v in post.items() if k != "mediaPath"}
    data["mediaUrl"] = storage.presigned_url(post.get("mediaPath"))
    return data


def post_time(post: dict) -> datetime:
    ts = post.get("timeStamp")
    return as_utc(ts) if isinstance(ts, datetime) else OLDEST


def media_keys(user: dict) -> list:
    keys = []
    pfp = (user.get("profile") or {}).get("PFP")
    if pfp and pfp != DEFAULT_PFP:
        keys.append(pfp)
    keys.extend(p["mediaPath"] for p in user.get("questPosts") or [] if p.get("mediaPath"))
    return keys

# ---------------------- Routes ----------------------

@router.post("/getProfile")
def get_profile(
    payload: UserRequest,
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
    tokens: TokenService = Depends(get_tokens),
):
    if not payload.user_id:
        return send_error("User ID is required", jwt_token, tokens, 400)

    try:
        user = db["users"].find_one(
            {"_id": ObjectId(payload.user_id)},
            {"questCompleted": 1, "profile": 1, "questPosts": 1},
        )
        if not user:
            return send_error("User not found", jwt_token, tokens, 404)

        profile = user.get("profile") or {}
        posts = [post_with_url(p, storage) for p in user.get("questPosts") or []]
        posts.sort(key=post_time, reverse=True)

        profile_data = {
            "questCompleted": user.get("questCompleted", 0),
            "displayName": profile.get("displayName"),
            "bio": profile.get("bio"),
            "pfp": storage.presigned_url(profile.get("PFP")),
            "questPosts": posts,
        }
    except Exception as e:
        logger.exception("Get profile error")
        return send_error(str(e), jwt_token, tokens, 500)

    return send_success({"profileData": profile_data}, jwt_token, tokens)


@router.post("/editProfile")
def edit_profile(
    payload: EditProfileRequest,
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    tokens: TokenService = Depends(get_tokens),
):
    if not payload.user_id:
        return send_error("User ID is required", jwt_token, tokens, 400)
    if not payload.display_name and not payload.bio:
        return send_error("At least one field (displayName or bio) is required to update.", jwt_token, tokens, 400)

    update_fields = {}
    if payload.display_name:
        update_fields["profile.displayName"] = payload.display_name
    if payload.bio:
        update_fields["profile.bio"] = payload.bio

    try:
        user_id = ObjectId(payload.user_id)
        result = db["users"].update_one({"_id": user_id}, {"$set": update_fields})
        if result.matched_count == 0:
            return send_error("User not found", jwt_token, tokens, 404)
        user = db["users"].find_one({"_id": user_id}, {"profile": 1})
    except Exception as e:
        logger.exception("Edit profile error")
        return send_error(str(e), jwt_token, tokens, 500)

    profile = user.get("profile") or {}
    updated = {"displayName": profile.get("displayName"), "bio": profile.get("bio")}
    return send_success({"success": True, "updatedProfile": updated}, jwt_token, tokens)


@router.post("/editPFP")
def edit_pfp(
    user_id: Optional[str] = Form(None, alias="userId"),
    file: Optional[UploadFile] = File(None),
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
    tokens: TokenService = Depends(get_tokens),
):
    if not user_id:
        return send_error("User ID is required", jwt_token, tokens, 400)
    if file is None:
        return send_error("File is required for PFP", jwt_token, tokens, 400)

    try:
        user = db["users"].find_one({"_id": ObjectId(user_id)}, {"profile": 1})
        if not user:
            return send_error("User not found", jwt_token, tokens, 404)

        old_path = (user.get("profile") or {}).get("PFP")
        if old_path and old_path != DEFAULT_PFP:
            try:
                storage.delete(old_path)
            except Exception:
                logger.exception("Failed to delete old PFP %s, proceeding with upload", old_path)

        new_path = storage.upload_pfp(file.file.read(), file.content_type, file.filename, user_id)
        db["users"].update_one({"_id": user["_id"]}, {"$set": {"profile.PFP": new_path}})
        signed_url = storage.presigned_url(new_path)
    except UnsupportedMediaType as e:
        return send_error(str(e), jwt_token, tokens, 400)
    except Exception as e:
        logger.exception("Edit PFP error")
        return send_error(str(e), jwt_token, tokens, 500)

    return send_success({"success": True, "pfpUrl": signed_url}, jwt_token, tokens)


@router.post("/toggleNotifications")
def toggle_notifications(
    payload: UserRequest,
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    tokens: TokenService = Depends(get_tokens),
):
    if not payload.user_id:
        return send_error("User ID is required", jwt_token, tokens, 400)

    try:
        user = db["users"].find_one({"_id": ObjectId(payload.user_id)}, {"settings": 1})
        if not user:
            return send_error("User not found", jwt_token, tokens, 404)

        notifications = not (user.get("settings") or {}).get("notifications", True)
        db["users"].update_one({"_id": user["_id"]}, {"$set": {"settings.notifications": notifications}})
    except Exception as e:
        logger.exception("Toggle notifications error")
        return send_error(str(e), jwt_token, tokens, 500)

    return send_success({"success": True, "notifications": notifications}, jwt_token, tokens)


@router.post("/deleteUser")
def delete_user(
    payload: UserRequest,
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
    tokens: TokenService = Depends(get_tokens),
):
    """Remove the account, its stored media, and its place in other users' friend lists."""
    if not payload.user_id:
        return send_error("User ID is required", jwt_token, tokens, 400)

    try:
        user_id = ObjectId(payload.user_id)
        user = db["users"].find_one({"_id": user_id}, {"profile": 1, "questPosts": 1})
        if not user:
            return send_error("User not found", jwt_token, tokens, 404)

        staged = list(db["media"].find({"userId": payload.user_id}))
        keys = media_keys(user) + [m["filePath"] for m in staged if m.get("filePath")]
        try:
            for key in dict.fromkeys(keys):
                storage.delete(key)
        except Exception:
            logger.exception("Failed to delete media of user %s from storage", payload.user_id)
            return send_error("Failed to delete user media from storage.", jwt_token, tokens, 500)

        db["media"].delete_many({"userId": payload.user_id})
        db["users"].update_many({"friends": user_id}, {"$pull": {"friends": user_id}})
        result = db["users"].delete_one({"_id": user_id})
        if result.deleted_count == 0:
            return send_error("Failed to delete user from database.", jwt_token, tokens, 500)
    except Exception as e:
        logger.exception("Delete user error")
        return send_error(str(e), jwt_token, tokens, 500)

    return send_success({"success": True, "message": "User deleted successfully"}, jwt_token, tokens)
