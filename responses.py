"""JSON envelopes shared by every handler: payload fields plus a refreshed `jwtToken`."""

from typing import Optional

from bson import ObjectId
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from tokens import TokenService

ENCODERS = {ObjectId: str}


class APIError(Exception):
    """Raised outside handler bodies (dependencies); rendered as an error envelope."""

    def __init__(self, message: str, status_code: int = 200, jwt_token: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.jwt_token = jwt_token


def send_response(data: dict, status_code: int = 200) -> JSONResponse:
    return JSONResponse(jsonable_encoder(data, custom_encoder=ENCODERS), status_code=status_code)


def send_success(data: dict, jwt_token: Optional[str], tokens: TokenService, status_code: int = 200) -> JSONResponse:
    return send_response({**data, "jwtToken": tokens.refresh(jwt_token)}, status_code)


def send_error(error: str, jwt_token: Optional[str], tokens: TokenService, status_code: int = 200) -> JSONResponse:
    return send_response({"error": error, "jwtToken": tokens.refresh(jwt_token)}, status_code)
