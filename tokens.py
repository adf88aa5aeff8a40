"""Signed bearer tokens carrying the user identity (HS256, short-lived)."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
TOKEN_TTL = timedelta(minutes=10)


class TokenService:
    def __init__(self, secret: Optional[str], ttl: timedelta = TOKEN_TTL):
        self.secret = secret
        self.ttl = ttl

    def create_token(self, first_name: Optional[str], last_name: Optional[str], user_id) -> dict:
        now = datetime.now(timezone.utc)
        claims = {
            "userId": str(user_id) if user_id is not None else None,
            "firstName": first_name,
            "lastName": last_name,
            "iat": now,
            "exp": now + self.ttl,
        }
        try:
            access_token = jwt.encode(claims, self.secret, algorithm=ALGORITHM)
        except (jwt.PyJWTError, TypeError, ValueError) as e:
            return {"error": str(e)}
        return {"accessToken": access_token}

    def is_expired(self, token: str) -> bool:
        """True when the token fails signature or expiry verification."""
        try:
            jwt.decode(token, self.secret, algorithms=[ALGORITHM])
        except (jwt.PyJWTError, TypeError, ValueError):
            return True
        return False

    def refresh(self, token: Optional[str]) -> Optional[dict]:
        # The signature is not checked here; callers validate first when it matters.
        if not token:
            return None
        try:
            claims = jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError as e:
            logger.info("Could not refresh token: %s", e)
            return None
        return self.create_token(claims.get("firstName"), claims.get("lastName"), claims.get("userId"))
