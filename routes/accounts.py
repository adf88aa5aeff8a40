import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from bson import ObjectId
from fastapi import APIRouter, Depends
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from auth import get_db, get_mailer, get_tokens, require_jwt
from database import create_document
from engagement import as_utc
from mailer import Mailer, reset_email, reset_link, verification_email, verification_link
from responses import send_error, send_response, send_success
from schemas import Profile, RequestBody, User, UserRequest
from tokens import TokenService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")

RESET_TOKEN_TTL = timedelta(hours=1)
RESET_MESSAGE = "If an account with that email exists, a password reset link has been sent."

# ---------------------- Models ----------------------

class LoginRequest(RequestBody):
    login: Optional[str] = None
    password: Optional[str] = None


class RegisterRequest(RequestBody):
    login: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None


class ForgotPasswordRequest(RequestBody):
    email: Optional[str] = None


class ResetPasswordRequest(RequestBody):
    token: Optional[str] = None
    new_password: Optional[str] = None


class EmailSendRequest(RequestBody):
    login: Optional[str] = None
    email: Optional[str] = None
    user_id: Optional[str] = None


# ---------------------- Routes ----------------------

@router.post("/login")
def login(payload: LoginRequest, db: Database = Depends(get_db), tokens: TokenService = Depends(get_tokens)):
    if not payload.login or not payload.password:
        return send_response({"error": "Login and password are required"}, 400)

    try:
        user = db["users"].find_one({"login": payload.login, "password": payload.password})
    except Exception as e:
        logger.exception("Login error")
        return send_response({"error": str(e)}, 500)

    if not user:
        return send_response({"error": "Login/Password incorrect"})
    if not user.get("emailVerified"):
        return send_response({"error": "Email not yet verified"})

    ret = tokens.create_token(user.get("firstName"), user.get("lastName"), user["_id"])
    ret["userId"] = str(user["_id"])
    return send_response(ret)


@router.post("/register")
def register(payload: RegisterRequest, db: Database = Depends(get_db), tokens: TokenService = Depends(get_tokens)):
    failed = {"userId": None, "firstName": "", "lastName": ""}
    if not payload.login or not payload.password:
        return send_response({**failed, "error": "Login and password are required"}, 400)

    try:
        if db["users"].find_one({"login": payload.login}):
            return send_response({**failed, "error": "User already exists"})

        display_name = " ".join(filter(None, [payload.first_name, payload.last_name])) or payload.login
        user = User(
            login=payload.login,
            password=payload.password,
            email=payload.email or None,
            first_name=payload.first_name,
            last_name=payload.last_name,
            profile=Profile(display_name=display_name),
        )
        user_id = create_document(db, "users", user)
    except DuplicateKeyError:
        return send_response({**failed, "error": "User already exists"})
    except ValueError as e:
        return send_response({**failed, "error": str(e)}, 400)
    except Exception as e:
        logger.exception("Register error")
        return send_response({**failed, "error": str(e)}, 500)

    token = tokens.create_token(payload.first_name, payload.last_name, user_id)
    return send_response({
        "userId": user_id,
        "firstName": payload.first_name,
        "lastName": payload.last_name,
        "accessToken": token.get("accessToken"),
        "error": "",
    })


@router.post("/forgot-password")
def forgot_password(payload: ForgotPasswordRequest, db: Database = Depends(get_db), mailer: Mailer = Depends(get_mailer)):
    if not payload.email:
        return send_response({"error": "Email is required"}, 400)

    try:
        user = db["users"].find_one({"email": payload.email})
        if user:
            token = secrets.token_urlsafe(32)
            db["users"].update_one(
                {"_id": user["_id"]},
                {"$set": {
                    "resetPasswordToken": token,
                    "resetPasswordExpires": datetime.now(timezone.utc) + RESET_TOKEN_TTL,
                }},
            )
            name = (user.get("profile") or {}).get("displayName") or user.get("login", "")
            mailer.send(payload.email, "Reset your Campus Quest password", reset_email(name, reset_link(token)))
    except Exception:
        # Same answer whether or not the account exists.
        logger.exception("Forgot password error")

    return send_response({"message": RESET_MESSAGE})


@router.post("/reset-password")
def reset_password(payload: ResetPasswordRequest, db: Database = Depends(get_db)):
    if not payload.token or not payload.new_password:
        return send_response({"error": "Token and new password are required"}, 400)

    try:
        user = db["users"].find_one({"resetPasswordToken": payload.token})
        expires = user.get("resetPasswordExpires") if user else None
        if not isinstance(expires, datetime) or as_utc(expires) <= datetime.now(timezone.utc):
            return send_response({"error": "Invalid or expired reset token"}, 400)

        db["users"].update_one(
            {"_id": user["_id"], "resetPasswordToken": payload.token},
            {
                "$set": {"password": payload.new_password},
                "$unset": {"resetPasswordToken": "", "resetPasswordExpires": ""},
            },
        )
    except Exception as e:
        logger.exception("Reset password error")
        return send_response({"error": str(e)}, 500)

    return send_response({"message": "Password has been reset.", "error": ""})


@router.post("/emailSend")
def email_send(payload: EmailSendRequest, mailer: Mailer = Depends(get_mailer), tokens: TokenService = Depends(get_tokens)):
    if not payload.email or not payload.user_id or not payload.jwt_token:
        return send_error("email, userId and jwtToken are required", payload.jwt_token, tokens, 400)

    link = verification_link(payload.user_id, payload.jwt_token)
    try:
        email_data = mailer.send(
            payload.email,
            "Verify your Campus Quest account",
            verification_email(payload.login or "", link),
            idempotency_key=payload.jwt_token,
        )
    except Exception as e:
        logger.exception("Verification email error")
        return send_error(str(e), payload.jwt_token, tokens, 500)

    return send_success(email_data, payload.jwt_token, tokens)


@router.post("/emailVerification")
def email_verification(
    payload: UserRequest,
    jwt_token: str = Depends(require_jwt),
    db: Database = Depends(get_db),
    tokens: TokenService = Depends(get_tokens),
):
    if not payload.user_id:
        return send_error("Missing userId", jwt_token, tokens, 400)

    try:
        result = db["users"].update_one({"_id": ObjectId(payload.user_id)}, {"$set": {"emailVerified": True}})
    except Exception as e:
        logger.exception("Email verification error")
        return send_error(str(e), jwt_token, tokens, 500)

    if result.matched_count == 0:
        return send_error("User does not exist", jwt_token, tokens, 404)
    return send_success({"error": ""}, jwt_token, tokens)
