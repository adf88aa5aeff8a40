"""
Likes, flags and rankings as pure functions over plain documents.

Handlers load a post and ask here what a like or flag should do. The answer is
a guard plus MongoDB update operators that the handler applies in one write.
"""

from datetime import datetime, time, timedelta, timezone
from typing import Iterable, List, Optional, Tuple

REVIEW_THRESHOLD = 3


def toggle_like(post: dict, user_id: str) -> Tuple[dict, bool]:
    """Like the post for `user_id`, or unlike it if already liked. Returns (post, liked)."""
    liked_by = list(post.get("likedBy") or [])
    likes = post.get("likes") or 0
    if user_id in liked_by:
        liked_by = [uid for uid in liked_by if uid != user_id]
        likes = max(0, likes - 1)
        liked = False
    else:
        liked_by.append(user_id)
        likes += 1
        liked = True
    return {**post, "likedBy": liked_by, "likes": likes}, liked


def needs_review(post: dict) -> bool:
    return len(post.get("flaggedBy") or []) >= REVIEW_THRESHOLD


def flag_post(post: dict, user_id: str) -> Tuple[dict, bool]:
    """Add a flag from `user_id`. Repeated flags are no-ops. Returns (post, newly_flagged)."""
    flagged_by = list(post.get("flaggedBy") or [])
    if user_id in flagged_by:
        return post, False
    flagged_by.append(user_id)
    new_post = {**post, "flaggedBy": flagged_by, "flagged": (post.get("flagged") or 0) + 1}
    new_post["needsReview"] = needs_review(new_post)
    return new_post, True


def like_update(post: dict, user_id: str) -> Tuple[dict, dict, bool]:
    """Element guard and update operators that apply `toggle_like` atomically.

    The guard only matches while the embedded post is still in the state `post`
    was read in for this user, so a concurrent toggle makes the write miss
    instead of overwriting it. Returns (guard, update, liked).
    """
    _, liked = toggle_like(post, user_id)
    if liked:
        return (
            {"likedBy": {"$ne": user_id}},
            {"$addToSet": {"questPosts.$.likedBy": user_id}, "$inc": {"questPosts.$.likes": 1}},
            True,
        )
    if (post.get("likes") or 0) > 0:
        return (
            {"likedBy": user_id, "likes": {"$gt": 0}},
            {"$pull": {"questPosts.$.likedBy": user_id}, "$inc": {"questPosts.$.likes": -1}},
            False,
        )
    # count already at zero, only drop the id
    return (
        {"likedBy": user_id, "likes": {"$not": {"$gt": 0}}},
        {"$pull": {"questPosts.$.likedBy": user_id}},
        False,
    )


def flag_update(post: dict, user_id: str) -> Optional[Tuple[dict, dict]]:
    """Element guard and update operators for a new flag, or None when `user_id` already flagged."""
    _, newly_flagged = flag_post(post, user_id)
    if not newly_flagged:
        return None
    return (
        {"flaggedBy": {"$ne": user_id}},
        {"$addToSet": {"questPosts.$.flaggedBy": user_id}, "$inc": {"questPosts.$.flagged": 1}},
    )


def rank_entries(entries: Iterable[dict]) -> List[dict]:
    """Most quests completed first; ties by display name."""
    return sorted(
        entries,
        key=lambda e: (-(e.get("questCompleted") or 0), (e.get("displayName") or "").casefold()),
    )


def as_utc(ts: datetime) -> datetime:
    # pymongo hands back naive datetimes that are already UTC
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def today_bounds(now: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    now = as_utc(now or datetime.now(timezone.utc))
    start = datetime.combine(now.date(), time.min, tzinfo=timezone.utc)
    end = start + timedelta(days=1) - timedelta(milliseconds=1)
    return start, end


def is_today(ts: Optional[datetime], now: Optional[datetime] = None) -> bool:
    if not isinstance(ts, datetime):
        return False
    start, end = today_bounds(now)
    return start <= as_utc(ts) <= end
