from datetime import timedelta

import jwt

from tokens import ALGORITHM, TokenService

SECRET = "unit-test-secret-that-is-long-enough-for-hs256"


def test_create_token_embeds_identity():
    service = TokenService(SECRET)
    token = service.create_token("Ada", "Lovelace", "64b7f0c2a1b2c3d4e5f60718")["accessToken"]

    claims = jwt.decode(token, SECRET, algorithms=[ALGORITHM])
    assert claims["userId"] == "64b7f0c2a1b2c3d4e5f60718"
    assert claims["firstName"] == "Ada"
    assert claims["lastName"] == "Lovelace"
    assert claims["exp"] - claims["iat"] == 600


def test_create_token_reports_signing_failure():
    result = TokenService(None).create_token("Ada", "Lovelace", "1")
    assert "error" in result
    assert "accessToken" not in result


def test_is_expired_for_fresh_token():
    service = TokenService(SECRET)
    token = service.create_token("Ada", "Lovelace", "1")["accessToken"]
    assert service.is_expired(token) is False


def test_is_expired_for_stale_token():
    service = TokenService(SECRET, ttl=timedelta(seconds=-5))
    token = service.create_token("Ada", "Lovelace", "1")["accessToken"]
    assert service.is_expired(token) is True


def test_is_expired_for_wrong_signature_and_garbage():
    token = TokenService("another-secret-that-is-long-enough-for-hs256").create_token("A", "B", "1")["accessToken"]
    service = TokenService(SECRET)
    assert service.is_expired(token) is True
    assert service.is_expired("not-a-jwt") is True


def test_refresh_reissues_same_claims_even_when_expired():
    stale = TokenService(SECRET, ttl=timedelta(seconds=-5)).create_token("Ada", "Lovelace", "42")["accessToken"]
    service = TokenService(SECRET)

    refreshed = service.refresh(stale)["accessToken"]

    assert service.is_expired(refreshed) is False
    claims = jwt.decode(refreshed, SECRET, algorithms=[ALGORITHM])
    assert (claims["userId"], claims["firstName"], claims["lastName"]) == ("42", "Ada", "Lovelace")


def test_refresh_of_missing_or_undecodable_token_is_none():
    service = TokenService(SECRET)
    assert service.refresh(None) is None
    assert service.refresh("") is None
    assert service.refresh("definitely.not.jwt") is None
