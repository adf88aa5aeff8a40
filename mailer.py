"""Transactional email through the Resend HTTP API."""

import logging
from html import escape
from typing import Optional
from urllib.parse import urlencode

import requests

import config

logger = logging.getLogger(__name__)

RESEND_URL = "https://api.resend.com/emails"


class EmailNotConfigured(RuntimeError):
    pass


class Mailer:
    def __init__(self, api_key: Optional[str], sender: str, url: str = RESEND_URL, timeout: int = 10):
        self.api_key = api_key
        self.sender = sender
        self.url = url
        self.timeout = timeout

    @classmethod
    def from_env(cls) -> "Mailer":
        return cls(config.RESEND_API_KEY, config.EMAIL_FROM)

    def send(self, to: str, subject: str, html: str, idempotency_key: Optional[str] = None) -> dict:
        if not self.api_key:
            raise EmailNotConfigured("Email provider not configured")
        headers = {"Authorization": f"Bearer {self.api_key}", "Accept": "application/json"}
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key[:256]
        res = requests.post(
            self.url,
            json={"from": self.sender, "to": [to], "subject": subject, "html": html},
            headers=headers,
            timeout=self.timeout,
        )
        res.raise_for_status()
        data = res.json()
        logger.info("Sent '%s' email, provider id %s", subject, data.get("id"))
        return data


def verification_link(user_id: str, jwt_token: str, frontend_url: str = config.FRONTEND_URL) -> str:
    return f"{frontend_url}/verify?" + urlencode({"UserId": user_id, "Token": jwt_token})


def reset_link(token: str, frontend_url: str = config.FRONTEND_URL) -> str:
    return f"{frontend_url}/reset-password?" + urlencode({"token": token})


def verification_email(login: str, link: str) -> str:
    return (
        f"<h1>Welcome to Campus Quest, {escape(login)}!</h1>"
        "<p>You're almost ready to begin your journey! Please verify your email by clicking the button below:</p>"
        f'<a href="{link}"><strong>Verify My Account</strong></a>'
    )


def reset_email(display_name: str, link: str) -> str:
    return (
        f"<h1>Hi {escape(display_name)},</h1>"
        "<p>We received a request to reset your Campus Quest password. The link below is valid for one hour:</p>"
        f'<a href="{link}"><strong>Reset My Password</strong></a>'
        "<p>If you did not ask for this, you can ignore this email.</p>"
    )
