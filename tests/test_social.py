from bson import ObjectId


def friend_payload(user_id, friend_id, token):
    return {"userId": user_id, "friendId": friend_id, "jwtToken": token}


def test_add_friend_is_a_set(client, db, make_user, token_for):
    ada = make_user(login="ada")
    bob = make_user(login="bob")
    token = token_for(ada)

    first = client.post("/api/addFriend", json=friend_payload(ada, bob, token)).json()
    second = client.post("/api/addFriend", json=friend_payload(ada, bob, token)).json()

    assert first["friends"] == [bob]
    assert second["friends"] == [bob]
    assert db["users"].find_one({"_id": ObjectId(ada)})["friends"] == [ObjectId(bob)]
    # one-directional
    assert db["users"].find_one({"_id": ObjectId(bob)})["friends"] == []


def test_add_self_is_rejected(client, make_user, token_for):
    ada = make_user()
    res = client.post("/api/addFriend", json=friend_payload(ada, ada, token_for(ada)))
    assert res.status_code == 400
    assert res.json()["error"] == "You cannot add yourself as a friend"


def test_add_unknown_friend(client, make_user, token_for):
    ada = make_user()
    res = client.post("/api/addFriend", json=friend_payload(ada, str(ObjectId()), token_for(ada)))
    assert res.status_code == 404
    assert res.json()["error"] == "The user you are trying to add does not exist"


def test_remove_friend(client, make_user, token_for):
    bob = make_user(login="bob")
    cat = make_user(login="cat")
    ada = make_user(login="ada", friends=[ObjectId(bob), ObjectId(cat)])

    body = client.post("/api/removeFriend", json=friend_payload(ada, bob, token_for(ada))).json()

    assert body["friends"] == [cat]


def test_fetch_friends_ranked(client, make_user, token_for):
    bob = make_user(login="bob", questCompleted=2)
    cat = make_user(login="cat", questCompleted=5)
    amy = make_user(login="amy", questCompleted=2)
    make_user(login="stranger", questCompleted=9)
    ada = make_user(login="ada", friends=[ObjectId(bob), ObjectId(cat), ObjectId(amy)])

    friends = client.post("/api/fetchFriends", json={"userId": ada, "jwtToken": token_for(ada)}).json()["friends"]

    assert [f["_id"] for f in friends] == [cat, amy, bob]
    assert friends[0] == {
        "_id": cat,
        "displayName": "Cat Tester",
        "pfp": "https://cdn.example/images/pfp-default.png",
        "questCompleted": 5,
    }


def test_fetch_friends_of_unknown_user(client, token_for):
    missing = str(ObjectId())
    res = client.post("/api/fetchFriends", json={"userId": missing, "jwtToken": token_for(missing)})
    assert res.status_code == 404


def test_scoreboard_lists_verified_users_by_score(client, make_user, token_for):
    ada = make_user(login="ada", questCompleted=1)
    make_user(login="zoe", questCompleted=4)
    make_user(login="bea", questCompleted=4, display_name="beatrice")
    make_user(login="ghost", questCompleted=10, verified=False)

    body = client.post("/api/fetchScoreboard", json={"jwtToken": token_for(ada)}).json()

    names = [entry["displayName"] for entry in body["scoreboard"]]
    assert names == ["beatrice", "Zoe Tester", "Ada Tester"]
    assert body["scoreboard"][-1]["userId"] == ada
    assert body["jwtToken"]["accessToken"]
