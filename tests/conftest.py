from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from main import create_app
from storage import MediaStorage
from tokens import TokenService

SECRET = "test-secret-that-is-long-enough-for-hs256"


class FakeS3Client:
    """Records calls the way boto3's S3 client would receive them."""

    def __init__(self):
        self.objects = {}
        self.deleted = []
        self.fail_deletes = False

    def put_object(self, Bucket, Key, Body, ContentType):
        self.objects[Key] = {"Body": Body, "ContentType": ContentType}

    def delete_object(self, Bucket, Key):
        if self.fail_deletes:
            raise RuntimeError("storage unavailable")
        self.deleted.append(Key)
        self.objects.pop(Key, None)

    def generate_presigned_url(self, ClientMethod, Params, ExpiresIn):
        return f"https://signed.example/{Params['Bucket']}/{Params['Key']}?expires={ExpiresIn}"


class FakeMailer:
    def __init__(self):
        self.sent = []

    def send(self, to, subject, html, idempotency_key=None):
        self.sent.append({"to": to, "subject": subject, "html": html, "idempotency_key": idempotency_key})
        return {"id": f"email-{len(self.sent)}"}


@pytest.fixture
def db():
    return mongomock.MongoClient().campusQuest


@pytest.fixture
def s3():
    return FakeS3Client()


@pytest.fixture
def storage(s3):
    return MediaStorage(s3, "campus-quest-media", "https://cdn.example")


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def tokens():
    return TokenService(SECRET)


@pytest.fixture
def client(db, storage, mailer, tokens):
    app = create_app(db=db, storage=storage, mailer=mailer, tokens=tokens)
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make_user(login="student", password="pw", verified=True, display_name=None, **fields):
        doc = {
            "login": login,
            "password": password,
            "email": f"{login}@campus.edu",
            "emailVerified": verified,
            "questCompleted": 0,
            "firstName": login.title(),
            "lastName": "Tester",
            "profile": {
                "displayName": display_name or f"{login.title()} Tester",
                "PFP": "images/pfp-default.png",
                "bio": "Make your bio here",
            },
            "settings": {"notifications": True},
            "questPosts": [],
            "friends": [],
        }
        doc.update(fields)
        return str(db["users"].insert_one(doc).inserted_id)

    return _make_user


@pytest.fixture
def token_for(tokens):
    def _token_for(user_id):
        return tokens.create_token("Test", "User", user_id)["accessToken"]

    return _token_for


def make_post(user_id, when=None, **fields):
    post = {
        "_id": ObjectId(),
        "questId": "quest-1",
        "userId": user_id,
        "mediaPath": f"images/{user_id}-post.png",
        "caption": "",
        "questDescription": "Find the oldest tree on campus",
        "likes": 0,
        "flagged": 0,
        "needsReview": False,
        "timeStamp": when or datetime.now(timezone.utc),
        "likedBy": [],
        "flaggedBy": [],
    }
    post.update(fields)
    return post


def yesterday():
    return datetime.now(timezone.utc) - timedelta(days=1)
