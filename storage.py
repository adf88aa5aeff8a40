"""
Object storage for quest media and profile pictures.

Works against any S3-compatible endpoint (Cloudflare R2 in production). Objects
are private; clients get time-limited presigned GET links, except for the
shared default profile picture which is served from the public URL.
"""

import logging
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

import config
from schemas import DEFAULT_PFP

logger = logging.getLogger(__name__)

URL_TTL_SECONDS = 900


class UnsupportedMediaType(ValueError):
    pass


def media_folder(content_type: Optional[str]) -> str:
    content_type = content_type or ""
    if content_type.startswith("image/"):
        return "images"
    if content_type.startswith("video/"):
        return "videos"
    raise UnsupportedMediaType("Unsupported file type. Please upload an image or video.")


def file_extension(filename: Optional[str]) -> str:
    return (filename or "").rsplit(".", 1)[-1]


class MediaStorage:
    def __init__(self, client, bucket: str, public_url: str = "", url_ttl: int = URL_TTL_SECONDS):
        self.client = client
        self.bucket = bucket
        self.public_url = public_url.rstrip("/")
        self.url_ttl = url_ttl

    @classmethod
    def from_env(cls) -> "MediaStorage":
        client = boto3.client(
            "s3",
            region_name="auto",
            endpoint_url=config.R2_ENDPOINT,
            aws_access_key_id=config.R2_ACCESS_KEY_ID,
            aws_secret_access_key=config.R2_SECRET_ACCESS_KEY,
        )
        return cls(client, config.R2_BUCKET, config.R2_PUBLIC_URL)

    def public_url_for(self, key: str) -> str:
        return f"{self.public_url}/{key}"

    def presigned_url(self, key: Optional[str]) -> Optional[str]:
        if not key:
            return None
        if key == DEFAULT_PFP:
            return self.public_url_for(key)
        try:
            return self.client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=self.url_ttl,
            )
        except (BotoCoreError, ClientError):
            logger.exception("Failed to get signed URL for key: %s", key)
            return None

    def put(self, key: str, data: bytes, content_type: str) -> str:
        self.client.put_object(Bucket=self.bucket, Key=key, Body=data, ContentType=content_type)
        return key

    def delete(self, key: str) -> None:
        self.client.delete_object(Bucket=self.bucket, Key=key)
        logger.info("Deleted object from storage: %s", key)

    def upload_staged_media(self, data: bytes, content_type: str, filename: str, user_id: str, quest_id: str) -> str:
        folder = media_folder(content_type)
        key = f"{folder}/questId-{quest_id}-userId-{user_id}.{file_extension(filename)}"
        return self.put(key, data, content_type)

    def upload_post_media(self, data: bytes, content_type: str, filename: str, user_id: str, post_id) -> str:
        folder = media_folder(content_type)
        key = f"{folder}/{user_id}-{post_id}.{file_extension(filename)}"
        return self.put(key, data, content_type)

    def upload_pfp(self, data: bytes, content_type: str, filename: str, user_id: str) -> str:
        if not (content_type or "").startswith("image/"):
            raise UnsupportedMediaType("Unsupported file type. Please upload an image.")
        key = f"images/{user_id}-pfp.{file_extension(filename)}"
        return self.put(key, data, content_type)
