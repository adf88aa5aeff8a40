import logging
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends, File, Form, UploadFile
from pymongo import DESCENDING
from pymongo.database import Database

from auth import get_db, get_storage, get_tokens, require_jwt
from engagement import as_utc, flag_update, is_today, like_update, needs_review
from responses import send_error, send_success
from routes.profiles import post_with_url
from schemas import QuestPost, RequestBody
from storage import MediaStorage, UnsupportedMediaType
from tokens import TokenService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

UPDATE_ATTEMPTS = 3

# ---------------------- Models ----------------------

class MediaRequest(RequestBody):
    user_id: Optional[str] = None
    quest_id: Optional[str] = None


class QuestPostRequest(RequestBody):
    user_id: Optional[str] = None
    quest_post_id: Optional[str] = None


class OwnPostRequest(RequestBody):
    user_id: Optional[str] = None
    post_id: Optional[str] = None
    caption: Optional[str] = None


class FeedRequest(RequestBody):
    user_id: Optional[str] = None

# ---------------------- Helpers ----------------------

def find_post(db: Database, post_id: str):
    """Return (owner, post) for an embedded quest post, or (None, None)."""
    oid = ObjectId(post_id)
    owner = db["users"].find_one({"questPosts._id": oid})
    if not owner:
        return None, None
    post = next((p for p in owner.get("questPosts") or [] if p.get("_id") == oid), None)
    return owner, post


def update_post(db: Database, post_id: ObjectId, guard: dict, update: dict) -> bool:
    """Apply `update` to the embedded post while it still matches `guard`."""
    result = db["users"].update_one(
        {"questPosts": {"$elemMatch": {"_id": post_id, **guard}}},
        update,
    )
    return result.matched_count > 0

# ---------------------- Media staging ----------------------

@router.post("/uploadMedia")
def upload_media(
    user_id: Optional[str] = Form(None, alias="userId"),
    quest_id: Optional[str] = Form(None, alias="questId"),
    file: Optional[UploadFile] = File(None),
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
    tokens: TokenService = Depends(get_tokens),
):
    if not user_id:
        return send_error("User ID is required", jwt_token, tokens, 400)
    if not quest_id:
        return send_error("Quest ID is required", jwt_token, tokens, 400)
    if file is None:
        return send_error("No file provided", jwt_token, tokens, 400)

    try:
        key = storage.upload_staged_media(file.file.read(), file.content_type, file.filename, user_id, quest_id)
        db["media"].update_one(
            {"userId": user_id, "questId": quest_id},
            {"$set": {"filePath": key, "uploadTimestamp": datetime.now(timezone.utc)}},
            upsert=True,
        )
    except UnsupportedMediaType as e:
        return send_error(str(e), jwt_token, tokens, 400)
    except Exception as e:
        logger.exception("Storage upload or DB error")
        return send_error(str(e), jwt_token, tokens, 500)

    return send_success({"fileUrl": storage.public_url_for(key), "error": ""}, jwt_token, tokens)


@router.post("/getMedia")
def get_media(
    payload: MediaRequest,
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
    tokens: TokenService = Depends(get_tokens),
):
    if not payload.user_id or not payload.quest_id:
        return send_error("userId and questId are required", jwt_token, tokens, 400)

    try:
        record = db["media"].find_one(
            {"userId": payload.user_id, "questId": payload.quest_id},
            sort=[("uploadTimestamp", DESCENDING)],
        )
        if not record:
            return send_error("No media found for the given user and quest", jwt_token, tokens, 404)
        signed_url = storage.presigned_url(record["filePath"])
    except Exception as e:
        logger.exception("Error getting signed URL")
        return send_error(str(e), jwt_token, tokens, 500)

    return send_success({"signedUrl": signed_url, "error": ""}, jwt_token, tokens)

# ---------------------- Quest posts ----------------------

@router.post("/submitPost")
def submit_post(
    user_id: Optional[str] = Form(None, alias="userId"),
    quest_id: Optional[str] = Form(None, alias="questId"),
    caption: Optional[str] = Form(None),
    quest_description: Optional[str] = Form(None, alias="questDescription"),
    file: Optional[UploadFile] = File(None),
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
    tokens: TokenService = Depends(get_tokens),
):
    if not user_id:
        return send_error("User ID is required", jwt_token, tokens, 400)
    if not quest_id:
        return send_error("Quest ID is required", jwt_token, tokens, 400)
    if file is None:
        return send_error("File is required for submission", jwt_token, tokens, 400)

    try:
        post = QuestPost(
            quest_id=quest_id,
            user_id=user_id,
            caption=caption or "",
            quest_description=quest_description or "",
        )
        post.media_path = storage.upload_post_media(
            file.file.read(), file.content_type, file.filename, user_id, post.id
        )
        result = db["users"].update_one(
            {"_id": ObjectId(user_id)},
            {
                "$push": {"questPosts": post.model_dump(by_alias=True)},
                "$inc": {"questCompleted": 1},
            },
        )
        if result.matched_count == 0:
            return send_error("User not found", jwt_token, tokens, 404)
    except UnsupportedMediaType as e:
        return send_error(str(e), jwt_token, tokens, 400)
    except Exception as e:
        logger.exception("Submit post error")
        return send_error(str(e), jwt_token, tokens, 500)

    return send_success({"success": True, "questPostId": post.id}, jwt_token, tokens)


@router.post("/likePost")
def like_post(
    payload: QuestPostRequest,
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    tokens: TokenService = Depends(get_tokens),
):
    if not payload.user_id:
        return send_error("User ID is required", jwt_token, tokens, 400)
    if not payload.quest_post_id:
        return send_error("Quest Post ID is required", jwt_token, tokens, 400)

    try:
        for _ in range(UPDATE_ATTEMPTS):
            _, post = find_post(db, payload.quest_post_id)
            if post is None:
                return send_error("Quest post not found", jwt_token, tokens, 404)

            guard, update, liked = like_update(post, payload.user_id)
            if update_post(db, post["_id"], guard, update):
                break
        else:
            return send_error("Quest post is busy, please try again", jwt_token, tokens, 500)

        _, post = find_post(db, payload.quest_post_id)
        if post is None:
            return send_error("Quest post not found during update", jwt_token, tokens, 404)
    except Exception as e:
        logger.exception("Like post error")
        return send_error(str(e), jwt_token, tokens, 500)

    return send_success({"success": True, "liked": liked, "likeCount": post.get("likes", 0)}, jwt_token, tokens)


@router.post("/flagPost")
def flag_post_route(
    payload: QuestPostRequest,
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    tokens: TokenService = Depends(get_tokens),
):
    if not payload.user_id:
        return send_error("User ID is required", jwt_token, tokens, 400)
    if not payload.quest_post_id:
        return send_error("Quest Post ID is required", jwt_token, tokens, 400)

    try:
        _, post = find_post(db, payload.quest_post_id)
        if post is None:
            return send_error("Quest post not found", jwt_token, tokens, 404)

        flag = flag_update(post, payload.user_id)
        if flag:
            # a miss means this user's flag landed in the meantime
            update_post(db, post["_id"], *flag)
            _, post = find_post(db, payload.quest_post_id)
            if post is None:
                return send_error("Quest post not found", jwt_token, tokens, 404)

        review = needs_review(post)
        if review and not post.get("needsReview"):
            db["users"].update_one(
                {"questPosts._id": post["_id"]},
                {"$set": {"questPosts.$.needsReview": True}},
            )
    except Exception as e:
        logger.exception("Flag post error")
        return send_error(str(e), jwt_token, tokens, 500)

    return send_success({"success": True, "flagged": True, "needsReview": review}, jwt_token, tokens)



@router.post("/deletePost")
def delete_post(
    payload: OwnPostRequest,
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
    tokens: TokenService = Depends(get_tokens),
):
    if not payload.user_id:
        return send_error("User ID is required", jwt_token, tokens, 400)
    if not payload.post_id:
        return send_error("Post ID is required", jwt_token, tokens, 400)

    try:
        user_id, post_id = ObjectId(payload.user_id), ObjectId(payload.post_id)
        owner, post = find_post(db, payload.post_id)
        if post is None or owner["_id"] != user_id:
            return send_error("Post not found or you do not have permission to delete it.", jwt_token, tokens, 404)

        media_path = post.get("mediaPath")
        if media_path:
            try:
                storage.delete(media_path)
            except Exception:
                logger.exception("Failed to delete media %s, proceeding with DB deletion", media_path)

        result = db["users"].update_one(
            {"_id": user_id},
            {"$pull": {"questPosts": {"_id": post_id}}, "$inc": {"questCompleted": -1}},
        )
        if result.modified_count == 0:
            return send_error("Failed to delete post from user profile.", jwt_token, tokens, 500)
    except Exception as e:
        logger.exception("Delete post error")
        return send_error(str(e), jwt_token, tokens, 500)

    return send_success({"success": True, "message": "Post deleted successfully."}, jwt_token, tokens)


@router.post("/editCaption")
def edit_caption(
    payload: OwnPostRequest,
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    tokens: TokenService = Depends(get_tokens),
):
    if not payload.user_id:
        return send_error("User ID is required", jwt_token, tokens, 400)
    if not payload.post_id:
        return send_error("Post ID is required", jwt_token, tokens, 400)

    new_caption = payload.caption if payload.caption is not None else ""

    try:
        result = db["users"].update_one(
            {"_id": ObjectId(payload.user_id), "questPosts._id": ObjectId(payload.post_id)},
            {"$set": {"questPosts.$.caption": new_caption}},
        )
        if result.matched_count == 0:
            return send_error("Post not found or you do not have permission to edit it.", jwt_token, tokens, 404)
    except Exception as e:
        logger.exception("Edit caption error")
        return send_error(str(e), jwt_token, tokens, 500)

    return send_success({"success": True, "postId": payload.post_id, "newCaption": new_caption}, jwt_token, tokens)

# ---------------------- Feed ----------------------

@router.post("/getFeed")
def get_feed(
    payload: FeedRequest,
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    storage: MediaStorage = Depends(get_storage),
    tokens: TokenService = Depends(get_tokens),
):
    """Today's posts from every other verified user, newest first."""
    if not payload.user_id:
        return send_error("User ID is required", jwt_token, tokens, 400)

    try:
        requester = ObjectId(payload.user_id)
        items = []
        creators = db["users"].find(
            {"_id": {"$ne": requester}, "emailVerified": True},
            {"profile": 1, "questPosts": 1, "friends": 1},
        )
        for creator in creators:
            for post in creator.get("questPosts") or []:
                if is_today(post.get("timeStamp")):
                    items.append((creator, post))
        items.sort(key=lambda item: as_utc(item[1]["timeStamp"]), reverse=True)

        liker_ids = {uid for _, post in items for uid in post.get("likedBy") or [] if ObjectId.is_valid(uid)}
        logins = {
            str(u["_id"]): u.get("login")
            for u in db["users"].find({"_id": {"$in": [ObjectId(uid) for uid in liker_ids]}}, {"login": 1})
        }

        feed = []
        for creator, post in items:
            data = post_with_url(post, storage)
            data.pop("userId", None)
            data["postId"] = data.pop("_id")
            data["likedByLogins"] = [logins[uid] for uid in post.get("likedBy") or [] if uid in logins]
            profile = creator.get("profile") or {}
            data["creator"] = {
                "userId": creator["_id"],
                "displayName": profile.get("displayName"),
                "pfpUrl": storage.presigned_url(profile.get("PFP")),
                "isFriend": requester in (creator.get("friends") or []),
            }
            feed.append(data)
    except Exception as e:
        logger.exception("Get feed error")
        return send_error(str(e), jwt_token, tokens, 500)

    return send_success({"feed": feed}, jwt_token, tokens)
