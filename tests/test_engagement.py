from datetime import datetime, timedelta, timezone

from engagement import flag_post, flag_update, is_today, like_update, rank_entries, toggle_like, today_bounds


def post(**fields):
    base = {"likes": 0, "flagged": 0, "likedBy": [], "flaggedBy": []}
    base.update(fields)
    return base


def test_like_then_unlike_restores_count():
    original = post(likes=4, likedBy=["a", "b", "c", "d"])

    liked_post, liked = toggle_like(original, "e")
    assert liked is True
    assert liked_post["likes"] == 5
    assert "e" in liked_post["likedBy"]

    unliked_post, liked = toggle_like(liked_post, "e")
    assert liked is False
    assert unliked_post["likes"] == 4
    assert "e" not in unliked_post["likedBy"]


def test_toggle_like_does_not_mutate_input():
    original = post()
    toggle_like(original, "a")
    assert original == post()


def test_unlike_never_goes_below_zero():
    inconsistent = post(likes=0, likedBy=["a"])
    new_post, liked = toggle_like(inconsistent, "a")
    assert liked is False
    assert new_post["likes"] == 0


def test_three_distinct_flags_need_review():
    p = post()
    for user in ("a", "b"):
        p, changed = flag_post(p, user)
        assert changed is True
        assert p["needsReview"] is False

    p, changed = flag_post(p, "c")
    assert changed is True
    assert p["flagged"] == 3
    assert p["needsReview"] is True


def test_repeat_flag_is_noop():
    p, _ = flag_post(post(), "a")
    again, changed = flag_post(p, "a")
    assert changed is False
    assert again["flagged"] == 1
    assert again["flaggedBy"] == ["a"]


def test_rank_entries_by_score_then_name():
    entries = [
        {"displayName": "zed", "questCompleted": 3},
        {"displayName": "Bea", "questCompleted": 5},
        {"displayName": "amy", "questCompleted": 3},
        {"displayName": None, "questCompleted": 3},
        {"displayName": "Cal"},
    ]
    ranked = rank_entries(entries)
    assert [e["displayName"] for e in ranked] == ["Bea", None, "amy", "zed", "Cal"]


def test_today_bounds_cover_whole_utc_day():
    now = datetime(2026, 3, 14, 15, 9, 26, tzinfo=timezone.utc)
    start, end = today_bounds(now)
    assert start == datetime(2026, 3, 14, tzinfo=timezone.utc)
    assert end == datetime(2026, 3, 14, 23, 59, 59, 999000, tzinfo=timezone.utc)


def test_is_today_accepts_naive_utc():
    now = datetime(2026, 3, 14, 0, 30, tzinfo=timezone.utc)
    assert is_today(datetime(2026, 3, 14, 0, 0), now) is True
    assert is_today(now - timedelta(hours=1), now) is False
    assert is_today(None, now) is False


def test_like_update_guards_on_read_state():
    guard, update, liked = like_update(post(likes=1, likedBy=["a"]), "b")
    assert liked is True
    assert guard == {"likedBy": {"$ne": "b"}}
    assert update == {"$addToSet": {"questPosts.$.likedBy": "b"}, "$inc": {"questPosts.$.likes": 1}}

    guard, update, liked = like_update(post(likes=1, likedBy=["a"]), "a")
    assert liked is False
    assert guard == {"likedBy": "a", "likes": {"$gt": 0}}
    assert update["$inc"] == {"questPosts.$.likes": -1}


def test_unlike_at_zero_only_pulls():
    _, update, liked = like_update(post(likes=0, likedBy=["a"]), "a")
    assert liked is False
    assert update == {"$pull": {"questPosts.$.likedBy": "a"}}


def test_flag_update_skips_repeat_flag():
    assert flag_update(post(flagged=1, flaggedBy=["a"]), "a") is None
    guard, update = flag_update(post(flagged=1, flaggedBy=["a"]), "b")
    assert guard == {"flaggedBy": {"$ne": "b"}}
    assert update == {"$addToSet": {"questPosts.$.flaggedBy": "b"}, "$inc": {"questPosts.$.flagged": 1}}
