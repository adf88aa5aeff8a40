"""
Request dependencies: service lookup and bearer-token validation.

Services live on `app.state` (set up by `main.create_app`) so tests can build
an app around fakes.
"""

import logging
from typing import Optional

from fastapi import Request
from pymongo.database import Database

from mailer import Mailer
from responses import APIError
from storage import MediaStorage
from tokens import TokenService

logger = logging.getLogger(__name__)

EXPIRED_MESSAGE = "The JWT is no longer valid"


def get_db(request: Request) -> Database:
    db = request.app.state.db
    if db is None:
        raise APIError("Database not configured", status_code=500)
    return db


def get_tokens(request: Request) -> TokenService:
    return request.app.state.tokens


def get_storage(request: Request) -> MediaStorage:
    return request.app.state.storage


def get_mailer(request: Request) -> Mailer:
    return request.app.state.mailer


async def read_body(request: Request) -> dict:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(("multipart/form-data", "application/x-www-form-urlencoded")):
        form = await request.form()
        return {k: v for k, v in form.items() if isinstance(v, str)}
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def validate_jwt(tokens: TokenService, jwt_token) -> Optional[str]:
    """Return an error message for a bad token, None for a good one."""
    if not isinstance(jwt_token, str):
        return "Invalid token"
    if tokens.is_expired(jwt_token):
        logger.info("Rejected expired or invalid token")
        return EXPIRED_MESSAGE
    return None


async def require_jwt(request: Request) -> str:
    """Reject the request unless the body carries a valid `jwtToken`."""
    body = await read_body(request)
    jwt_token = body.get("jwtToken")
    if not jwt_token:
        raise APIError("JWT token is required", status_code=400)

    error = validate_jwt(request.app.state.tokens, jwt_token)
    if error:
        raise APIError(error, status_code=200, jwt_token=jwt_token)
    return jwt_token
