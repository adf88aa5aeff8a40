import pytest
from botocore.exceptions import ClientError

import mailer
from mailer import EmailNotConfigured, Mailer, reset_link, verification_email, verification_link
from storage import MediaStorage, UnsupportedMediaType, file_extension, media_folder


class BrokenS3Client:
    def generate_presigned_url(self, ClientMethod, Params, ExpiresIn):
        raise ClientError({"Error": {"Code": "AccessDenied", "Message": "nope"}}, "GetObject")


class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def raise_for_status(self):
        pass

    def json(self):
        return self.payload


def test_media_folder_routes_by_mime_type():
    assert media_folder("image/png") == "images"
    assert media_folder("video/quicktime") == "videos"
    with pytest.raises(UnsupportedMediaType):
        media_folder("application/pdf")
    with pytest.raises(UnsupportedMediaType):
        media_folder(None)


def test_file_extension_uses_last_suffix():
    assert file_extension("holiday.photo.JPG") == "JPG"
    assert file_extension("noext") == "noext"


def test_presigned_url_special_cases(storage):
    assert storage.presigned_url(None) is None
    assert storage.presigned_url("") is None
    assert storage.presigned_url("images/pfp-default.png") == "https://cdn.example/images/pfp-default.png"


def test_presigned_url_failure_is_none():
    storage = MediaStorage(BrokenS3Client(), "bucket", "https://cdn.example")
    assert storage.presigned_url("images/a.png") is None


def test_upload_pfp_only_accepts_images(storage, s3):
    assert storage.upload_pfp(b"x", "image/webp", "me.webp", "u1") == "images/u1-pfp.webp"
    with pytest.raises(UnsupportedMediaType):
        storage.upload_pfp(b"x", "video/mp4", "me.mp4", "u1")
    assert list(s3.objects) == ["images/u1-pfp.webp"]


def test_mailer_without_key_refuses_to_send():
    with pytest.raises(EmailNotConfigured):
        Mailer(None, "team@campus.edu").send("a@campus.edu", "Hi", "<p>hi</p>")


def test_mailer_posts_to_provider(monkeypatch):
    calls = []

    def fake_post(url, json, headers, timeout):
        calls.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        return FakeResponse({"id": "abc"})

    monkeypatch.setattr(mailer.requests, "post", fake_post)

    result = Mailer("re_key", "team@campus.edu").send("a@campus.edu", "Hi", "<p>hi</p>", idempotency_key="k1")

    assert result == {"id": "abc"}
    call = calls[0]
    assert call["url"] == "https://api.resend.com/emails"
    assert call["json"] == {"from": "team@campus.edu", "to": ["a@campus.edu"], "subject": "Hi", "html": "<p>hi</p>"}
    assert call["headers"]["Authorization"] == "Bearer re_key"
    assert call["headers"]["Idempotency-Key"] == "k1"


def test_links_and_escaping():
    assert verification_link("u1", "t.o.k", "https://app.example") == "https://app.example/verify?UserId=u1&Token=t.o.k"
    assert reset_link("abc", "https://app.example") == "https://app.example/reset-password?token=abc"
    assert "&lt;b&gt;" in verification_email("<b>", "https://app.example/verify")
